"""INI handling, file helpers, string ids, x86-64 length decoding and byte scanning."""

__version__ = "0.1.0"
__all__ = ["ini", "files", "stringid", "hde64", "memory"]