import pytest

from prxkit.stringid import string_id64, string_id64_wide


def test_empty_is_offset_basis():
    assert string_id64("") == 0xCBF29CE484222325
    assert string_id64_wide("") == 0xCBF29CE484222325


def test_single_char():
    assert string_id64("a") == 0xAF63DC4C8601EC8C


@pytest.mark.parametrize("text", ["a", "hello", "plugin_load", "Some Mixed 123"])
def test_ascii_narrow_matches_wide(text):
    assert string_id64(text) == string_id64_wide(text)


@pytest.mark.parametrize("text", ["a", "hello", "éclair"])
def test_bytes_and_str_agree(text):
    assert string_id64(text) == string_id64(text.encode("utf-8"))


def test_stops_at_nul():
    assert string_id64("abc\0def") == string_id64("abc")
    assert string_id64_wide("abc\0def") == string_id64_wide("abc")


def test_high_bytes_are_sign_extended():
    narrow = string_id64(b"\xe9")
    wide = string_id64_wide("\xe9")
    assert 0 <= narrow < 2**64
    assert narrow != wide


def test_results_fit_64_bits():
    for text in ["x" * 100, "ünïcödé", "z"]:
        assert 0 <= string_id64(text) < 2**64
        assert 0 <= string_id64_wide(text) < 2**64


def test_distinct_strings_differ():
    ids = {string_id64(name) for name in ["alpha", "beta", "gamma", "delta"]}
    assert len(ids) == 4