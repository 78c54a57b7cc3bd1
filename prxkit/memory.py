"""Byte pattern scanning, jump encoding and prologue hooks over memory buffers."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from .hde64 import disasm

__all__ = [
    "CaveFullError",
    "CodeCave",
    "JMP_STUB",
    "MAX_PATTERN_LENGTH",
    "char_scan",
    "hex_dump",
    "instruction_size",
    "jump32",
    "jump64",
    "parse_pattern",
    "pattern_scan",
    "read_lea32",
    "u64_scan",
]

MAX_PATTERN_LENGTH = 512
JMP_CALL_BYTES = 5
NOP = 0x90
INT3 = 0xCC
JMP_STUB = bytes((0xFF, 0x25, 0x00, 0x00, 0x00, 0x00))  # jmp qword ptr [rip+0]

_OP_CALL = 0xE8
_OP_JMP = 0xE9
_WILDCARD = 0xFF

Buffer = Union[bytes, bytearray, memoryview]

logger = logging.getLogger(__name__)


class CaveFullError(ValueError):
    """Raised when a code cave has no room left for another hook."""


def parse_pattern(pattern: str) -> tuple[Optional[int], ...]:
    """Parse an IDA-style pattern such as ``"48 8b ?? 05"``.

    Wildcards (``?`` or ``??``) become None. A literal ``ff`` is also a
    wildcard, since that byte value marks wildcards in this pattern format.
    """
    parsed: list[Optional[int]] = []
    for token in pattern.split():
        if token in ("?", "??"):
            parsed.append(None)
            continue
        try:
            value = int(token, 16)
        except ValueError:
            raise ValueError(f"bad pattern byte {token!r}") from None
        if not 0 <= value <= 0xFF:
            raise ValueError(f"pattern byte {token!r} out of range")
        parsed.append(None if value == _WILDCARD else value)
    return tuple(parsed)


def pattern_scan(data: Buffer, pattern: str, offset: int = 0) -> Optional[int]:
    """Return the position of the first match of ``pattern`` plus ``offset``, or None."""
    parsed = parse_pattern(pattern)
    if not data or not parsed or len(parsed) >= MAX_PATTERN_LENGTH:
        return None
    buf = bytes(data)
    for start in range(len(buf) - len(parsed) + 1):
        window = buf[start : start + len(parsed)]
        if all(want is None or have == want for have, want in zip(window, parsed)):
            return start + offset
    return None


def u64_scan(data: Buffer, value: int) -> Optional[int]:
    """Find a little-endian 64-bit value; the final 8-byte slot is not searched."""
    needle = (value & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "little")
    buf = bytes(data)
    found = buf.find(needle)
    if found < 0 or found >= len(buf) - len(needle):
        return None
    return found


def char_scan(data: Buffer, value: Union[str, bytes]) -> Optional[int]:
    """Find a string in ``data``; the final slot it could fill is not searched."""
    needle = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    needle = needle.split(b"\0", 1)[0]
    buf = bytes(data)
    found = buf.find(needle)
    if found < 0 or found >= len(buf) - len(needle):
        return None
    return found


def read_lea32(
    data: Buffer,
    address: int,
    offset: int = 0,
    lea_size: int = 3,
    lea_opcode_size: int = 7,
) -> int:
    """Resolve the target of a rip-relative instruction at ``address`` in ``data``.

    The signed 32-bit displacement is read at ``address + lea_size``; the
    result is ``address + offset + displacement + lea_opcode_size``.
    """
    at = address + lea_size
    raw = bytes(data[at : at + 4])
    if len(raw) != 4 or at < 0:
        raise ValueError(f"no displacement at position {at}")
    displacement = int.from_bytes(raw, "little", signed=True)
    return address + offset + displacement + lea_opcode_size


def jump32(src: int, dst: int, length: int = JMP_CALL_BYTES, call: bool = False) -> bytes:
    """Encode a relative jmp or call from ``src`` to ``dst`` padded with nops to ``length``."""
    if length < JMP_CALL_BYTES:
        raise ValueError(f"a relative jump needs {JMP_CALL_BYTES} bytes, got {length}")
    relative = (dst - src - JMP_CALL_BYTES) & 0xFFFFFFFF
    head = bytes((_OP_CALL if call else _OP_JMP,)) + relative.to_bytes(4, "little")
    return head + bytes((NOP,)) * (length - JMP_CALL_BYTES)


def jump64(dst: int) -> bytes:
    """Encode an absolute jump through an inline 64-bit address."""
    return JMP_STUB + (dst & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "little")


def hex_dump(data: Buffer, real: int = 0) -> str:
    """Format ``data`` as 16-byte rows of hex and printable characters."""
    buf = bytes(data)
    lines = [f"offset: {real:x}\n"] if real else []
    for start in range(0, len(buf), 16):
        row = buf[start : start + 16]
        hexes = "".join(f"{byte:02x} " for byte in row) + "   " * (16 - len(row))
        text = "".join(chr(byte) if 0x20 <= byte < 0x7F else "." for byte in row)
        lines.append(f"{start:016x}: {hexes}  |{text}|\n")
    return "".join(lines)


def instruction_size(code: Buffer, min_size: int) -> int:
    """Return the length of the whole instructions that cover ``min_size`` bytes."""
    size = 0
    while size < min_size:
        instruction = disasm(code, size)
        if instruction.error:
            raise ValueError(f"cannot decode instruction at position {size}")
        size += instruction.length
    return size


class CodeCave:
    """A pre-allocated block that holds relocated prologues and their return jumps."""

    def __init__(self, size: int, base: int = 0) -> None:
        if size <= 0:
            raise ValueError("cave size must be positive")
        self.base = base
        self.used = 0
        self._block = bytearray((INT3,)) * size

    @property
    def size(self) -> int:
        return len(self._block)

    @property
    def data(self) -> bytes:
        """The cave's current contents."""
        return bytes(self._block)

    def add_prologue_hook(self, code: Buffer, address: int, min_size: int) -> int:
        """Copy the prologue of the function ``code`` found at ``address`` into the cave.

        The copied instructions are followed by a jump back to the rest of the
        function. Returns the address of the new trampoline.
        """
        if min_size < JMP_CALL_BYTES:
            raise ValueError(f"a hook needs at least {JMP_CALL_BYTES} bytes, got {min_size}")
        prologue_size = instruction_size(code, min_size)
        stub = bytes(code[:prologue_size]) + jump64(address + prologue_size)
        if self.used + len(stub) > self.size:
            raise CaveFullError(
                f"cave of {self.size} bytes cannot hold {len(stub)} more after {self.used}"
            )
        start = self.used
        self._block[start : start + len(stub)] = stub
        self.used += len(stub)
        cave_address = self.base + start
        logger.debug("new cave size %d\n%s", self.used, hex_dump(stub, cave_address))
        return cave_address