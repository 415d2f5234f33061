"""File access with transparent gzip handling.

Files whose names mark them as compressed are inflated to a temporary file
next to the original when opened, and deflated back over the original when
closed, provided something was written to them.
"""

import gzip
import logging
import os
from enum import IntEnum
from typing import List, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]

_log = logging.getLogger(__name__)

_COMPRESSED_SUFFIXES = (".gz", "-gz", ".z", "-z", "_z", ".Z")
_TEMP_SUFFIX = ".tmp"
_CHUNK_SIZE = 16 * 1024 * 1024
_PROGRESS_INCREMENT = 128 * 1024 * 1024
_MEGABYTE = 1024 * 1024
_GZIP_MAGIC = b"\x1f\x8b"

_open_files: List["X16File"] = []


class SeekOrigin(IntEnum):
    """Reference point for :meth:`X16File.seek`."""

    SET = 0
    END = 1
    CUR = 2


def is_compressed_type(path: PathLike) -> bool:
    """Return True if the path's name marks it as a gzip-compressed file."""
    return os.fspath(path).endswith(_COMPRESSED_SUFFIXES)


def find_extension(path: Optional[PathLike], end: Optional[int] = None) -> Optional[str]:
    """Return the text from the last '.' at or before ``end`` to the end of ``path``.

    Without ``end`` the search starts at the end of the name, skipping three
    characters for compressed names. A dot in the first position does not
    count. Returns None when no dot is found.
    """
    if path is None:
        return None
    text = os.fspath(path)
    if end is None:
        end = len(text)
        if is_compressed_type(text):
            end -= 3
    start = min(end, len(text) - 1)
    for index in range(start, 0, -1):
        if text[index] == ".":
            return text[index:]
    return None


def _python_mode(mode: str) -> str:
    kept = "".join(ch for ch in mode if ch in "rwax+b")
    if not kept or kept[0] not in "rwax":
        raise ValueError(f"invalid file mode: {mode!r}")
    if "b" not in kept:
        kept += "b"
    return kept


def _decompress(source: str, target: str) -> int:
    """Inflate ``source`` into ``target`` and return the inflated size.

    A file that is not actually gzip data is copied unchanged.
    """
    with open(source, "rb") as probe:
        is_gzip = probe.read(2) == _GZIP_MAGIC

    _log.info("Decompressing %s", source)
    opener = gzip.open if is_gzip else open
    total = 0
    threshold = _PROGRESS_INCREMENT
    with opener(source, "rb") as reader, open(target, "wb") as writer:
        while True:
            chunk = reader.read(_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > threshold:
                _log.info("%d MB", total // _MEGABYTE)
                threshold += _PROGRESS_INCREMENT
            writer.write(chunk)
    _log.info("%d MB", total // _MEGABYTE)
    return total


def _recompress(source: str, target: str, size: int) -> None:
    _log.info("Recompressing %s", target)
    total = 0
    threshold = _PROGRESS_INCREMENT
    with open(source, "rb") as reader, gzip.open(target, "wb", compresslevel=6) as writer:
        while True:
            chunk = reader.read(_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > threshold and size > 0:
                _log.info("%d%%", total * 100 // size)
                threshold += _PROGRESS_INCREMENT
            writer.write(chunk)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class X16File:
    """An open file, tracking its own position and whether it was written."""

    def __init__(self, path: PathLike, mode: str = "rb") -> None:
        self.path = os.fspath(path)
        python_mode = _python_mode(mode)
        self._temp_path: Optional[str] = None
        self._modified = False
        self._pos = 0

        if is_compressed_type(self.path):
            temp_path = self.path + _TEMP_SUFFIX
            try:
                size = _decompress(self.path, temp_path)
                self._handle = open(temp_path, python_mode)
            except (OSError, EOFError):
                _remove_quietly(temp_path)
                raise
            self._temp_path = temp_path
            self._size = size
        else:
            self._handle = open(self.path, python_mode)
            self._size = os.fstat(self._handle.fileno()).st_size

        _open_files.append(self)

    def __enter__(self) -> "X16File":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<X16File {self.path!r} {state}>"

    @property
    def closed(self) -> bool:
        """Whether the file has been closed."""
        return self._handle is None

    @property
    def modified(self) -> bool:
        """Whether anything has been written to the file."""
        return self._modified

    def _require_open(self):
        if self._handle is None:
            raise ValueError(f"file is closed: {self.path}")
        return self._handle

    def size(self) -> int:
        """Return the size the file had when it was opened."""
        return self._size

    def seek(self, pos: int, origin: SeekOrigin = SeekOrigin.SET) -> int:
        """Move the position, clamping it to the file's size; return the new offset."""
        handle = self._require_open()
        origin = SeekOrigin(origin)
        if origin is SeekOrigin.SET:
            self._pos = min(pos, self._size)
        elif origin is SeekOrigin.CUR:
            self._pos += pos
            if self._pos > self._size or self._pos < 0:
                self._pos = self._size
        else:
            self._pos = self._size - pos
            if self._pos < 0:
                self._pos = self._size
        return handle.seek(self._pos)

    def tell(self) -> int:
        """Return the current position."""
        return self._pos

    def write8(self, value: int) -> int:
        """Write one byte and return the number of bytes written."""
        written = self._require_open().write(bytes((value & 0xFF,)))
        if written:
            self._modified = True
        self._pos += written
        return written

    def read8(self) -> int:
        """Read one byte; raise EOFError at the end of the file."""
        data = self._require_open().read(1)
        if not data:
            raise EOFError(f"end of file: {self.path}")
        self._pos += 1
        return data[0]

    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes written."""
        written = self._require_open().write(data)
        if written:
            self._modified = True
        self._pos += written
        return written

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes."""
        data = self._require_open().read(size)
        self._pos += len(data)
        return data

    def close(self) -> None:
        """Close the file, recompressing it first if it was compressed and written."""
        if self._handle is None:
            return
        self._handle.close()
        self._handle = None
        try:
            if self._temp_path is not None:
                try:
                    if self._modified:
                        _recompress(self._temp_path, self.path, self._size)
                finally:
                    _remove_quietly(self._temp_path)
        finally:
            if self in _open_files:
                _open_files.remove(self)


def open_file(path: PathLike, mode: str = "rb") -> X16File:
    """Open ``path``; raise OSError if it cannot be opened."""
    return X16File(path, mode)


def shutdown() -> None:
    """Close every file that is still open."""
    for handle in list(_open_files):
        handle.close()