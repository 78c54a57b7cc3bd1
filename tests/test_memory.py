import pytest

from prxkit.hde64 import disasm
from prxkit.memory import (
    JMP_STUB,
    MAX_PATTERN_LENGTH,
    CaveFullError,
    CodeCave,
    char_scan,
    hex_dump,
    instruction_size,
    jump32,
    jump64,
    parse_pattern,
    pattern_scan,
    read_lea32,
    u64_scan,
)


def test_parse_pattern_wildcards():
    assert parse_pattern("0f 0b ?? 90 ?") == (0x0F, 0x0B, None, 0x90, None)


def test_parse_pattern_ff_is_wildcard():
    assert parse_pattern("ff 01") == (None, 0x01)


def test_parse_pattern_rejects_bad_token():
    with pytest.raises(ValueError):
        parse_pattern("0f zz")


def test_pattern_scan_finds_first_match_with_offset():
    data = b"\x00\x11\x0f\x0b\x90\x0f\x0b\x90"
    assert pattern_scan(data, "0f 0b 90") == 2
    assert pattern_scan(data, "0f 0b 90", 2) == 4


def test_pattern_scan_wildcard_matches_any_byte():
    data = b"\xaa\xc3\x42\x66\x00"
    assert pattern_scan(data, "c3 ?? 66") == 1


def test_pattern_scan_no_match_and_empty_inputs():
    assert pattern_scan(b"\x01\x02\x03", "04") is None
    assert pattern_scan(b"", "01") is None
    assert pattern_scan(b"\x01\x02", "") is None


def test_pattern_scan_too_long_pattern():
    pattern = " ".join(["00"] * MAX_PATTERN_LENGTH)
    assert pattern_scan(bytes(MAX_PATTERN_LENGTH * 2), pattern) is None


def test_u64_scan_finds_value():
    value = 0x1122334455667788
    data = b"\x00" * 3 + value.to_bytes(8, "little") + b"\x00" * 9
    assert u64_scan(data, value) == 3


def test_u64_scan_skips_last_slot():
    value = 0x0102030405060708
    data = b"\xff" * 4 + value.to_bytes(8, "little")
    assert u64_scan(data, value) is None


def test_char_scan_finds_string():
    data = b"xx\0mono_string_new\0yyyy"
    assert char_scan(data, "mono_string_new") == 3
    assert char_scan(data, b"absent") is None


def test_char_scan_skips_last_slot():
    assert char_scan(b"abcdef", "def") is None


def test_read_lea32_positive_and_negative_displacement():
    data = bytearray(32)
    data[10:13] = b"\x48\x8d\x05"
    data[13:17] = (0x20).to_bytes(4, "little", signed=True)
    assert read_lea32(data, 10, 0, 3, 7) == 10 + 0x20 + 7
    data[13:17] = (-8).to_bytes(4, "little", signed=True)
    assert read_lea32(data, 10, 2, 3, 7) == 10 + 2 - 8 + 7


def test_read_lea32_out_of_range():
    with pytest.raises(ValueError):
        read_lea32(b"\x00\x00", 0, 0, 1, 5)


@pytest.mark.parametrize("src,dst", [(0x1000, 0x2000), (0x5000, 0x100), (0, 5)])
def test_jump32_targets_destination(src, dst):
    encoded = jump32(src, dst)
    assert encoded[0] == 0xE9
    assert len(encoded) == 5
    assert src + 5 + int.from_bytes(encoded[1:5], "little", signed=True) == dst


def test_jump32_call_and_nop_padding():
    encoded = jump32(0x100, 0x200, 8, True)
    assert encoded[0] == 0xE8
    assert encoded[5:] == b"\x90\x90\x90"


def test_jump32_too_short():
    with pytest.raises(ValueError):
        jump32(0x100, 0x200, 4)


def test_jump64_layout():
    dst = 0x1122334455667788
    encoded = jump64(dst)
    assert encoded[:6] == bytes((0xFF, 0x25, 0, 0, 0, 0))
    assert int.from_bytes(encoded[6:], "little") == dst


def test_hex_dump_single_row():
    expected = "0000000000000000: 41 42 00 " + "   " * 13 + "  |AB.|\n"
    assert hex_dump(b"AB\x00") == expected


def test_hex_dump_rows_and_offset_line():
    text = hex_dump(bytes(range(17)), 0x10)
    lines = text.splitlines()
    assert lines[0] == "offset: 10"
    assert len(lines) == 3
    assert lines[2].startswith("0000000000000010: 10 ")


def test_instruction_size_nops():
    assert instruction_size(b"\x90" * 8, 5) == 5


def test_instruction_size_covers_whole_instructions():
    code = b"\x55\x48\x89\xe5\x48\x83\xec\x10\x90\x90"
    size = instruction_size(code, 5)
    assert size >= 5
    total = 0
    while total < 5:
        total += disasm(code, total).length
    assert size == total


def test_instruction_size_decode_error():
    with pytest.raises(ValueError):
        instruction_size(b"\x48\x48\x90\x90\x90\x90\x90", 5)


def test_code_cave_starts_filled_with_int3():
    cave = CodeCave(16)
    assert cave.data == b"\xcc" * 16
    assert cave.used == 0


def test_code_cave_hook_copies_prologue_and_jumps_back():
    cave = CodeCave(64, base=0x1000)
    first = cave.add_prologue_hook(b"\x90" * 8, 0x4000, 5)
    assert first == 0x1000
    assert cave.data[:5] == b"\x90" * 5
    assert cave.data[5:5 + 14] == jump64(0x4005)
    assert cave.used == 5 + len(JMP_STUB) + 8
    used = cave.used
    second = cave.add_prologue_hook(b"\x90" * 8, 0x8000, 5)
    assert second == 0x1000 + used
    assert cave.data[cave.used:] == b"\xcc" * (64 - cave.used)


def test_code_cave_full():
    cave = CodeCave(20)
    cave.add_prologue_hook(b"\x90" * 8, 0x4000, 5)
    with pytest.raises(CaveFullError):
        cave.add_prologue_hook(b"\x90" * 8, 0x4000, 5)


def test_code_cave_rejects_small_hook():
    cave = CodeCave(64)
    with pytest.raises(ValueError):
        cave.add_prologue_hook(b"\x90" * 8, 0x4000, 4)