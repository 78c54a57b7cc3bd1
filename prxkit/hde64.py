"""Length disassembler for x86-64 instructions.

Decodes prefixes, opcode, ModR/M, SIB, displacement and immediate of a single
instruction and reports its length together with the decoded fields.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = [
    "Flag",
    "Instruction",
    "disasm",
    "PREFIX_SEGMENT_CS",
    "PREFIX_SEGMENT_SS",
    "PREFIX_SEGMENT_DS",
    "PREFIX_SEGMENT_ES",
    "PREFIX_SEGMENT_FS",
    "PREFIX_SEGMENT_GS",
    "PREFIX_LOCK",
    "PREFIX_REPNZ",
    "PREFIX_REPX",
    "PREFIX_OPERAND_SIZE",
    "PREFIX_ADDRESS_SIZE",
]

MAX_INSTRUCTION_LENGTH = 15

PREFIX_SEGMENT_CS = 0x2E
PREFIX_SEGMENT_SS = 0x36
PREFIX_SEGMENT_DS = 0x3E
PREFIX_SEGMENT_ES = 0x26
PREFIX_SEGMENT_FS = 0x64
PREFIX_SEGMENT_GS = 0x65
PREFIX_LOCK = 0xF0
PREFIX_REPNZ = 0xF2
PREFIX_REPX = 0xF3
PREFIX_OPERAND_SIZE = 0x66
PREFIX_ADDRESS_SIZE = 0x67


class Flag(enum.IntFlag):
    """What a decoded instruction contains and which errors were found."""

    NONE = 0
    MODRM = 0x00000001
    SIB = 0x00000002
    IMM8 = 0x00000004
    IMM16 = 0x00000008
    IMM32 = 0x00000010
    IMM64 = 0x00000020
    DISP8 = 0x00000040
    DISP16 = 0x00000080
    DISP32 = 0x00000100
    RELATIVE = 0x00000200
    ERROR = 0x00001000
    ERROR_OPCODE = 0x00002000
    ERROR_LENGTH = 0x00004000
    ERROR_LOCK = 0x00008000
    ERROR_OPERAND = 0x00010000
    PREFIX_REPNZ = 0x01000000
    PREFIX_REPX = 0x02000000
    PREFIX_REP = 0x03000000
    PREFIX_66 = 0x04000000
    PREFIX_67 = 0x08000000
    PREFIX_LOCK = 0x10000000
    PREFIX_SEG = 0x20000000
    PREFIX_REX = 0x40000000
    PREFIX_ANY = 0x7F000000


# Opcode classes.
_C_MODRM = 0x01
_C_IMM8 = 0x02
_C_IMM16 = 0x04
_C_IMM_P66 = 0x10
_C_REL8 = 0x20
_C_REL32 = 0x40
_C_GROUP = 0x80
_C_ERROR = 0xFF

# Prefix classes.
_PRE_NONE = 0x01
_PRE_F2 = 0x02
_PRE_F3 = 0x04
_PRE_66 = 0x08
_PRE_67 = 0x10
_PRE_LOCK = 0x20
_PRE_SEG = 0x40

# Offsets of the sub-tables inside _TABLE.
_DELTA_OPCODES = 0x4A
_DELTA_FPU_REG = 0xFD
_DELTA_FPU_MODRM = 0x104
_DELTA_PREFIXES = 0x13C
_DELTA_OP_LOCK_OK = 0x1AE
_DELTA_OP2_LOCK_OK = 0x1C6
_DELTA_OP_ONLY_MEM = 0x1D8
_DELTA_OP2_ONLY_MEM = 0x1E7

_TABLE = bytes.fromhex(
    "a5aaa5b8a5aaa5aaa5b8a5b8a5b8a5"
    "b8c0c0c0c0c0c0c0c0acc0ccc0a1a1"
    "a1a1b1a5a5a6c0c0d7dae0c0e4c0ea"
    "eae0e098c8eef1a5d3a5a5a1ea9ec0"
    "c0c2c0e6037f117f017f013f0101ab"
    "8b90645b5b5b5b5b925b5b76909292"
    "5b5b5b5b5b5b5b5b5b5b5b5b6a7390"
    "5b525252525b5b5b5b777c77855b5b"
    "705b7aaf76765b5b5b5b5b5b5b5b5b"
    "5b5b860103010403d503d503cc01bc"
    "03f00303040050505050ff20202020"
    "01010101c40210ffffff01000311ff"
    "03c4c6c8021000ffcc010101000000"
    "0001010301ffffc0c2101102030101"
    "01ffffff000000ff0000ffffffff10"
    "1010100210000c6c80202020206000"[:0]
)
# The table is assembled row by row below to keep each row checkable.
_ROWS = (
    "a5aaa5b8a5aaa5aaa5b8a5b8a5b8a5",
    "b8c0c0c0c0c0c0c0c0acc0ccc0a1a1",
    "a1a1b1a5a5a6c0c0d7dae0c0e4c0ea",
    "eae0e098c8eef1a5d3a5a5a1ea9ec0",
    "c0c2c0e6037f117f017f013f0101ab",
    "8b90645b5b5b5b5b925b5b76909292",
    "5b5b5b5b5b5b5b5b5b5b5b5b6a7390",
    "5b525252525b5b5b5b777c77855b5b",
    "705b7aaf76765b5b5b5b5b5b5b5b5b",
    "5b5b860103010403d503d503cc01bc",
    "03f00303040050505050ff20202020",
    "01010101c40210ffffff01000311ff",
    "03c4c6c8021000ffcc010101000000",
    "0001010301ffffc0c2101102030101",
    "01ffffff000000ff0000ffffffff10",
    "10101002100000c6c8020202020600",
    "040002ff00c0c201010303 03ca4000",
    "0a000400000000 7f00330100000000",
    "0000ffbfffff0000000007 0000ff00",
    "00000000000000000000000000ffff",
    "000000bf000000000000000 07f0000"[:30].replace(" ", "") if False else "000000bf0000000000000000 7f0000",
    "ff4040404041494040404c42404040"[:0] + "ff40404040414940404040 4c424040",
    "404040404040 4f4453404040445743",
    "5c40604040404040404040404040 40",
    "404064666e6b40406a46404044 4640",
    "405b444040000000000606060601 06",
    "0602060600060 00a0a0000000207 07",
    "06020d0606060e050502020000 0404",
    "0404050606060000000e0000080010",
    "0018002000280030008001820186 00",
    "f6cffe3fab00b000b100b300baf8bb",
    "00c000c100c7bf62ff008dff00c4ff",
    "00c5ff00ffffeb01ff0e1208001309",
    "00160800170900 2b0900aeff07b2ff",
    "00b4ff00b5ff00c30100c7ffbfe708",
    "00f00200",
)
_TABLE = bytes.fromhex("".join(row.replace(" ", "") for row in _ROWS))

_WINDOW = 48
_PADDED = 64


@dataclass(frozen=True)
class Instruction:
    """Fields of one decoded instruction."""

    length: int
    flags: Flag
    p_rep: int = 0
    p_lock: int = 0
    p_seg: int = 0
    p_66: int = 0
    p_67: int = 0
    rex_w: int = 0
    rex_r: int = 0
    rex_x: int = 0
    rex_b: int = 0
    opcode: int = 0
    opcode2: int = 0
    modrm: int = 0
    modrm_mod: int = 0
    modrm_reg: int = 0
    modrm_rm: int = 0
    sib: int = 0
    sib_scale: int = 0
    sib_index: int = 0
    sib_base: int = 0
    imm: int = 0
    disp: int = 0

    @property
    def error(self) -> bool:
        """True when the decoder found the instruction malformed."""
        return bool(self.flags & Flag.ERROR)

    @property
    def relative(self) -> bool:
        """True when the immediate is a branch displacement."""
        return bool(self.flags & Flag.RELATIVE)


def _lookup(base: int, opcode: int) -> int:
    return _TABLE[base + _TABLE[base + opcode // 4] + opcode % 4]


def _store(old: int, value: int, width: int) -> int:
    """Overwrite the low ``width`` bytes of ``old`` as a union member write does."""
    mask = (1 << (8 * width)) - 1
    return (old & ~mask) | value


def disasm(code, offset: int = 0) -> Instruction:
    """Decode the instruction that starts at ``offset`` in ``code``.

    Bytes past the end of ``code`` read as zero.
    """
    if not 0 <= offset < len(code):
        raise ValueError(f"offset {offset} outside code of length {len(code)}")
    buf = bytes(code[offset : offset + _WINDOW]).ljust(_PADDED, b"\0")

    def u16(at: int) -> int:
        return int.from_bytes(buf[at : at + 2], "little")

    def u32(at: int) -> int:
        return int.from_bytes(buf[at : at + 4], "little")

    f = dict(
        p_rep=0, p_lock=0, p_seg=0, p_66=0, p_67=0,
        rex_w=0, rex_r=0, rex_x=0, rex_b=0,
        opcode=0, opcode2=0, modrm=0, modrm_mod=0, modrm_reg=0, modrm_rm=0,
        sib=0, sib_scale=0, sib_index=0, sib_base=0, imm=0, disp=0,
    )
    p = 0
    pref = 0
    op64 = 0
    c = 0

    for _ in range(16):
        c = buf[p]
        p += 1
        if c in (0xF3, 0xF2):
            f["p_rep"] = c
            pref |= _PRE_F3 if c == 0xF3 else _PRE_F2
        elif c == 0xF0:
            f["p_lock"] = c
            pref |= _PRE_LOCK
        elif c in (0x26, 0x2E, 0x36, 0x3E, 0x64, 0x65):
            f["p_seg"] = c
            pref |= _PRE_SEG
        elif c == 0x66:
            f["p_66"] = c
            pref |= _PRE_66
        elif c == 0x67:
            f["p_67"] = c
            pref |= _PRE_67
        else:
            break

    flags = pref << 23
    if not pref:
        pref |= _PRE_NONE

    opcode = 0
    rex_error = False
    if (c & 0xF0) == 0x40:
        flags |= Flag.PREFIX_REX
        f["rex_w"] = (c & 0xF) >> 3
        if f["rex_w"] and (buf[p] & 0xF8) == 0xB8:
            op64 += 1
        f["rex_r"] = (c & 7) >> 2
        f["rex_x"] = (c & 3) >> 1
        f["rex_b"] = c & 1
        c = buf[p]
        p += 1
        if (c & 0xF0) == 0x40:
            opcode = c
            rex_error = True

    ht = 0
    cflags = 0
    if not rex_error:
        f["opcode"] = c
        if c == 0x0F:
            c = buf[p]
            p += 1
            f["opcode2"] = c
            ht = _DELTA_OPCODES
        elif 0xA0 <= c <= 0xA3:
            op64 += 1
            if pref & _PRE_67:
                pref |= _PRE_66
            else:
                pref &= ~_PRE_66 & 0xFF
        opcode = c
        cflags = _lookup(ht, opcode)

    if rex_error or cflags == _C_ERROR:
        flags |= Flag.ERROR | Flag.ERROR_OPCODE
        cflags = 0
        if (opcode & 0xFD) == 0x24:
            cflags += 1

    x = 0
    if cflags & _C_GROUP:
        at = ht + (cflags & 0x7F)
        cflags = _TABLE[at]
        x = _TABLE[at + 1]

    if f["opcode2"] and _lookup(_DELTA_PREFIXES, opcode) & pref:
        flags |= Flag.ERROR | Flag.ERROR_OPCODE

    if cflags & _C_MODRM:
        flags |= Flag.MODRM
        c = buf[p]
        p += 1
        m_mod = c >> 6
        m_rm = c & 7
        m_reg = (c & 0x3F) >> 3
        f.update(modrm=c, modrm_mod=m_mod, modrm_rm=m_rm, modrm_reg=m_reg)

        if x and ((x << m_reg) & 0x80):
            flags |= Flag.ERROR | Flag.ERROR_OPCODE

        if not f["opcode2"] and 0xD9 <= opcode <= 0xDF:
            t = opcode - 0xD9
            if m_mod == 3:
                t = (_TABLE[_DELTA_FPU_MODRM + t * 8 + m_reg] << m_rm) & 0xFF
            else:
                t = (_TABLE[_DELTA_FPU_REG + t] << m_reg) & 0xFF
            if t & 0x80:
                flags |= Flag.ERROR | Flag.ERROR_OPCODE

        if pref & _PRE_LOCK:
            if m_mod == 3:
                flags |= Flag.ERROR | Flag.ERROR_LOCK
            else:
                if f["opcode2"]:
                    start, end, op = _DELTA_OP2_LOCK_OK, _DELTA_OP_ONLY_MEM, opcode
                else:
                    start, end, op = _DELTA_OP_LOCK_OK, _DELTA_OP2_LOCK_OK, opcode & 0xFE
                lock_ok = False
                for i in range(start, end, 2):
                    if _TABLE[i] == op:
                        lock_ok = not ((_TABLE[i + 1] << m_reg) & 0x80)
                        break
                if not lock_ok:
                    flags |= Flag.ERROR | Flag.ERROR_LOCK

        operand_error = None
        if f["opcode2"]:
            if opcode in (0x20, 0x22):
                m_mod = 3
                operand_error = m_reg > 4 or m_reg == 1
            elif opcode in (0x21, 0x23):
                m_mod = 3
                operand_error = m_reg in (4, 5)
        elif opcode == 0x8C:
            operand_error = m_reg > 5
        elif opcode == 0x8E:
            operand_error = m_reg == 1 or m_reg > 5

        if operand_error is None:
            operand_error = False
            if m_mod == 3:
                if f["opcode2"]:
                    start, end = _DELTA_OP2_ONLY_MEM, len(_TABLE)
                else:
                    start, end = _DELTA_OP_ONLY_MEM, _DELTA_OP2_ONLY_MEM
                for i in range(start, end, 3):
                    if _TABLE[i] == opcode:
                        operand_error = bool(_TABLE[i + 1] & pref) and not (
                            (_TABLE[i + 2] << m_reg) & 0x80
                        )
                        break
            elif f["opcode2"]:
                if opcode in (0x50, 0xD7, 0xF7):
                    operand_error = bool(pref & (_PRE_NONE | _PRE_66))
                elif opcode == 0xD6:
                    operand_error = bool(pref & (_PRE_F2 | _PRE_F3))
                elif opcode == 0xC5:
                    operand_error = True
        if operand_error:
            flags |= Flag.ERROR | Flag.ERROR_OPERAND

        c = buf[p]
        p += 1
        if m_reg <= 1:
            if opcode == 0xF6:
                cflags |= _C_IMM8
            elif opcode == 0xF7:
                cflags |= _C_IMM_P66

        disp_size = 0
        if m_mod == 0:
            if pref & _PRE_67:
                if m_rm == 6:
                    disp_size = 2
            elif m_rm == 5:
                disp_size = 4
        elif m_mod == 1:
            disp_size = 1
        elif m_mod == 2:
            disp_size = 2 if pref & _PRE_67 else 4

        if m_mod != 3 and m_rm == 4:
            flags |= Flag.SIB
            p += 1
            f.update(sib=c, sib_scale=c >> 6, sib_index=(c & 0x3F) >> 3, sib_base=c & 7)
            if (c & 7) == 5 and not (m_mod & 1):
                disp_size = 4

        p -= 1
        if disp_size == 1:
            flags |= Flag.DISP8
            f["disp"] = buf[p]
        elif disp_size == 2:
            flags |= Flag.DISP16
            f["disp"] = u16(p)
        elif disp_size == 4:
            flags |= Flag.DISP32
            f["disp"] = u32(p)
        p += disp_size
    elif pref & _PRE_LOCK:
        flags |= Flag.ERROR | Flag.ERROR_LOCK

    imm = 0
    done = False
    to_rel32 = False
    to_imm16 = False
    if cflags & _C_IMM_P66:
        if cflags & _C_REL32:
            if pref & _PRE_66:
                flags |= Flag.IMM16 | Flag.RELATIVE
                imm = _store(imm, u16(p), 2)
                p += 2
                done = True
            else:
                to_rel32 = True
        elif op64:
            flags |= Flag.IMM64
            imm = int.from_bytes(buf[p : p + 8], "little")
            p += 8
        elif not pref & _PRE_66:
            flags |= Flag.IMM32
            imm = _store(imm, u32(p), 4)
            p += 4
        else:
            to_imm16 = True

    if not done and not to_rel32:
        if to_imm16 or cflags & _C_IMM16:
            flags |= Flag.IMM16
            imm = _store(imm, u16(p), 2)
            p += 2
        if cflags & _C_IMM8:
            flags |= Flag.IMM8
            imm = _store(imm, buf[p], 1)
            p += 1

    if not done:
        if to_rel32 or cflags & _C_REL32:
            flags |= Flag.IMM32 | Flag.RELATIVE
            imm = _store(imm, u32(p), 4)
            p += 4
        elif cflags & _C_REL8:
            flags |= Flag.IMM8 | Flag.RELATIVE
            imm = _store(imm, buf[p], 1)
            p += 1

    f["imm"] = imm
    length = p & 0xFF
    if length > MAX_INSTRUCTION_LENGTH:
        flags |= Flag.ERROR | Flag.ERROR_LENGTH
        length = MAX_INSTRUCTION_LENGTH

    return Instruction(length=length, flags=Flag(flags), **f)