import pytest

from prxkit.hde64 import Flag, disasm


def test_nop_is_single_byte():
    ins = disasm(b"\x90")
    assert ins.length == 1
    assert ins.opcode == 0x90
    assert not ins.error


def test_jmp_stub_length():
    ins = disasm(bytes([0xFF, 0x25, 0x00, 0x00, 0x00, 0x00]))
    assert ins.length == 6
    assert ins.flags & Flag.MODRM
    assert ins.flags & Flag.DISP32
    assert ins.disp == 0


def test_call_rel32():
    ins = disasm(b"\xe8\x78\x56\x34\x12")
    assert ins.length == 5
    assert ins.imm == 0x12345678
    assert ins.relative
    assert ins.flags & Flag.IMM32


def test_rex_mov_register():
    ins = disasm(b"\x48\x89\xe5")
    assert ins.length == 3
    assert ins.flags & Flag.PREFIX_REX
    assert ins.rex_w == 1
    assert (ins.modrm_mod, ins.modrm_reg, ins.modrm_rm) == (3, 4, 5)


def test_sib_with_disp8():
    ins = disasm(b"\x48\x8b\x44\x24\x08")
    assert ins.length == 5
    assert ins.flags & Flag.SIB
    assert ins.flags & Flag.DISP8
    assert ins.sib == 0x24
    assert ins.disp == 0x08


def test_mov_imm64():
    code = b"\x48\xb8" + (0x1122334455667788).to_bytes(8, "little")
    ins = disasm(code)
    assert ins.length == len(code)
    assert ins.flags & Flag.IMM64
    assert ins.imm == 0x1122334455667788


def test_short_jump():
    ins = disasm(b"\xeb\x10")
    assert ins.length == 2
    assert ins.imm == 0x10
    assert ins.flags & Flag.IMM8 and ins.relative


def test_two_byte_opcode():
    ins = disasm(b"\x0f\x0b")
    assert ins.opcode == 0x0F
    assert ins.opcode2 == 0x0B
    assert ins.length == 2


def test_padding_nop_from_pattern():
    code = bytes.fromhex("66 2e 0f 1f 84 00 00 00 00 00")
    ins = disasm(code)
    assert ins.length == len(code)
    assert ins.flags & Flag.PREFIX_66
    assert ins.flags & Flag.PREFIX_SEG
    assert not ins.error


def test_offset_decodes_later_instruction():
    code = b"\x90\xe8\x01\x00\x00\x00"
    assert disasm(code, 1) == disasm(code[1:])
    assert disasm(code, 1).imm == 1


def test_too_many_prefixes_is_length_error():
    ins = disasm(b"\x66" * 15 + b"\x90")
    assert ins.flags & Flag.ERROR_LENGTH
    assert ins.error
    assert ins.length == 15


def test_lock_on_register_operand():
    ins = disasm(b"\xf0\x01\xc0")
    assert ins.flags & Flag.ERROR_LOCK
    assert ins.error


def test_double_rex_is_opcode_error():
    ins = disasm(b"\x48\x48\x90")
    assert bool(ins.flags & Flag.ERROR_OPCODE) is True
    assert bool(ins.error) is True
    assert ins.length == 2


def test_empty_code_rejected():
    with pytest.raises(ValueError):
        disasm(b"")


def test_offset_out_of_range_rejected():
    with pytest.raises(ValueError):
        disasm(b"\x90", 1)


@pytest.mark.parametrize("first", range(256))
def test_length_is_bounded(first):
    ins = disasm(bytes([first]) + bytes(range(1, 20)))
    assert 1 <= ins.length <= 15
    assert ins.error == bool(ins.flags & Flag.ERROR)