import pytest

from clevofan.fd import Fd, FdError


def test_read_strips_trailing_newline(tmp_path):
    path = tmp_path / "name"
    path.write_text("package-0\n")
    with Fd(str(path)) as fd:
        assert fd.read(32) == "package-0"


def test_read_is_repeatable(tmp_path):
    path = tmp_path / "temp"
    path.write_text("45000\n")
    with Fd(str(path)) as fd:
        first = fd.read(32)
        second = fd.read(32)
    assert first == second == "45000"


def test_read_sees_updated_content(tmp_path):
    path = tmp_path / "energy_uj"
    path.write_text("100\n")
    with Fd(str(path)) as fd:
        assert fd.read(32) == "100"
        path.write_text("250\n")
        assert fd.read(32) == "250"


def test_read_stops_after_enough_blocks(tmp_path):
    path = tmp_path / "long"
    path.write_text("a" * 200)
    with Fd(str(path)) as fd:
        assert len(fd.read(32)) == 50
        assert len(fd.read(60)) == 100
        assert fd.read(1000) == "a" * 200


def test_read_zero_length_returns_empty(tmp_path):
    path = tmp_path / "value"
    path.write_text("abc")
    with Fd(str(path)) as fd:
        assert fd.read(0) == ""


def test_open_missing_file(tmp_path):
    with pytest.raises(FdError) as info:
        Fd(str(tmp_path / "missing"))
    assert info.value.kind == "open"
    assert str(info.value) == "Failed to open file descriptor"


def test_read_after_close(tmp_path):
    path = tmp_path / "value"
    path.write_text("1")
    fd = Fd(str(path))
    fd.close()
    with pytest.raises(FdError) as info:
        fd.read(10)
    assert info.value.kind == "read"
    assert str(info.value) == "Failed to read from file descriptor"