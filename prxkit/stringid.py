"""64-bit string identifiers (FNV-1a style hashes)."""

from __future__ import annotations

from typing import Union

_OFFSET_BASIS = 0xCBF29CE484222325
_PRIME = 0x100000001B3
_MASK = (1 << 64) - 1


def _fold(values) -> int:
    base = _OFFSET_BASIS
    for value in values:
        base = (_PRIME * (base ^ value)) & _MASK
    return base


def string_id64(text: Union[str, bytes]) -> int:
    """Hash a narrow string; bytes above 0x7f are taken as signed chars."""
    data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    data = data.split(b"\0", 1)[0]
    return _fold((byte | 0xFFFFFFFFFFFFFF00) if byte & 0x80 else byte for byte in data)


def string_id64_wide(text: str) -> int:
    """Hash a wide string, one code point at a time."""
    return _fold(ord(ch) for ch in text.split("\0", 1)[0])