import pytest

from prxkit import files


def test_write_then_read(tmp_path):
    path = tmp_path / "data.bin"
    data = b"\x01\x02hello"
    files.write_file(path, data)
    assert files.read_file(path, len(data)) == data
    assert files.get_file_size(path) == len(data)


def test_read_pads_with_zeros(tmp_path):
    path = tmp_path / "data.bin"
    data = b"abc"
    files.write_file(path, data)
    assert files.read_file(path, len(data) + 3) == data + b"\0" * 3


def test_read_shorter_than_file(tmp_path):
    path = tmp_path / "data.bin"
    files.write_file(path, b"abcdef")
    assert files.read_file(path, 2) == b"ab"


def test_read_negative_size(tmp_path):
    path = tmp_path / "data.bin"
    files.write_file(path, b"x")
    with pytest.raises(ValueError):
        files.read_file(path, -1)


def test_missing_file_errors(tmp_path):
    missing = tmp_path / "missing"
    with pytest.raises(FileNotFoundError):
        files.get_file_size(missing)
    with pytest.raises(FileNotFoundError):
        files.read_file(missing, 4)


def test_file_exists(tmp_path):
    path = tmp_path / "f"
    assert files.file_exists(path) is False
    files.write_file(path, b"")
    assert files.file_exists(path) is True


def test_touch_creates_and_truncates(tmp_path):
    path = tmp_path / "t"
    files.touch(path)
    assert files.file_exists(path) is True
    files.write_file(path, b"content")
    files.touch(path)
    assert files.get_file_size(path) == 0


def test_touch_in_missing_directory(tmp_path):
    with pytest.raises(OSError):
        files.touch(tmp_path / "no" / "such" / "file")


def test_temp_markers(tmp_path):
    assert files.file_exists_temp("marker", tmp_path) is False
    path = files.touch_temp("marker", tmp_path)
    assert path == f"{tmp_path}/marker"
    assert files.file_exists_temp("marker", tmp_path) is True
    assert files.file_exists_temp("other", tmp_path) is False


def test_touch_temp_failure(tmp_path):
    with pytest.raises(OSError):
        files.touch_temp("marker", tmp_path / "absent")