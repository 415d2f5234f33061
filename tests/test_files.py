import gzip
import os

import pytest

from x16emu.files import (
    SeekOrigin,
    X16File,
    find_extension,
    is_compressed_type,
    open_file,
    shutdown,
)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("game.crt.gz", True),
        ("game-gz", True),
        ("game.z", True),
        ("game-z", True),
        ("game_z", True),
        ("game.Z", True),
        ("game.crt", False),
        ("game.zip", False),
        ("game.GZ", False),
    ],
)
def test_is_compressed_type(path, expected):
    assert is_compressed_type(path) is expected


@pytest.mark.parametrize(
    "path, end, expected",
    [
        ("cart.crt", None, ".crt"),
        ("noext", None, None),
        (".hidden", None, None),
        ("a.crt.gz", None, ".gz"),
        ("a.crt.z", None, ".crt.z"),
        ("a.b.c", 2, ".b.c"),
        (None, None, None),
    ],
)
def test_find_extension(path, end, expected):
    assert find_extension(path, end) == expected


def test_plain_round_trip(tmp_path):
    path = tmp_path / "data.bin"
    with open_file(path, "wb") as handle:
        assert handle.write(b"hello") == 5
        assert handle.tell() == 5
        assert handle.modified
    with open_file(path, "rb") as handle:
        assert handle.size() == 5
        assert handle.read(5) == b"hello"
        assert handle.tell() == 5


def test_write8_and_read8(tmp_path):
    path = tmp_path / "bytes.bin"
    with open_file(path, "wb") as handle:
        for value in (1, 2, 0x1FF):
            assert handle.write8(value) == 1
    with open_file(path) as handle:
        assert [handle.read8() for _ in range(3)] == [1, 2, 0xFF]
        with pytest.raises(EOFError):
            handle.read8()


def test_seek_clamps_to_size(tmp_path):
    data = bytes(range(10))
    path = tmp_path / "seek.bin"
    path.write_bytes(data)
    with open_file(path) as handle:
        handle.seek(4)
        assert handle.tell() == 4
        assert handle.read(2) == data[4:6]
        assert handle.seek(100) == len(data)
        handle.seek(2)
        handle.seek(3, SeekOrigin.CUR)
        assert handle.tell() == 5
        handle.seek(-50, SeekOrigin.CUR)
        assert handle.tell() == len(data)
        handle.seek(3, SeekOrigin.END)
        assert handle.tell() == len(data) - 3
        assert handle.read(3) == data[-3:]
        handle.seek(20, SeekOrigin.END)
        assert handle.tell() == len(data)


def test_compressed_read(tmp_path):
    payload = b"compressed payload" * 100
    path = tmp_path / "cart.crt.gz"
    path.write_bytes(gzip.compress(payload))
    original = path.read_bytes()
    temp = tmp_path / "cart.crt.gz.tmp"

    handle = open_file(path)
    assert temp.exists()
    assert handle.size() == len(payload)
    assert handle.read(len(payload)) == payload
    handle.close()

    assert not temp.exists()
    assert path.read_bytes() == original


def test_compressed_write_is_recompressed(tmp_path):
    payload = b"abcdefgh"
    path = tmp_path / "save.gz"
    path.write_bytes(gzip.compress(payload))
    with open_file(path, "r+b") as handle:
        handle.write(b"XY")
    assert gzip.decompress(path.read_bytes()) == b"XY" + payload[2:]
    assert not os.path.exists(str(path) + ".tmp")


def test_compressed_name_with_plain_content(tmp_path):
    path = tmp_path / "plain.z"
    path.write_bytes(b"not gzip data")
    with open_file(path) as handle:
        assert handle.read(100) == b"not gzip data"


def test_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        open_file(tmp_path / "missing.bin")
    with pytest.raises(OSError):
        open_file(tmp_path / "missing.gz")


def test_closed_file_rejects_io(tmp_path):
    path = tmp_path / "closed.bin"
    path.write_bytes(b"abc")
    handle = X16File(path)
    handle.close()
    handle.close()
    assert handle.closed
    with pytest.raises(ValueError):
        handle.read(1)


def test_shutdown_closes_all(tmp_path):
    first = tmp_path / "first.bin"
    second = tmp_path / "second.bin"
    first.write_bytes(b"1")
    second.write_bytes(b"2")
    handles = [open_file(first), open_file(second)]
    shutdown()
    assert [handle.closed for handle in handles] == [True, True]