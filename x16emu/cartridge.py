"""Cartridge images: a fixed header followed by the contents of up to 224 banks."""

import logging
import os
import random
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, List, Optional, Union

from .files import SeekOrigin, X16File, find_extension, is_compressed_type, open_file

PathLike = Union[str, "os.PathLike[str]"]

_log = logging.getLogger(__name__)

MAX_BANKS = 224
BANK_SIZE = 0x4000
MAX_SIZE = BANK_SIZE * MAX_BANKS
FIRST_BANK = 32
WINDOW_START = 0xC000
WINDOW_END = 0xFFFF

MAGIC_NUMBER_SIZE = 16
VERSION_SIZE = 16
DESCRIPTION_SIZE = 32
AUTHOR_SIZE = 32
COPYRIGHT_SIZE = 32
PROGRAM_VERSION_SIZE = 32
RESERVED_SIZE = 64 + 32
HEADER_SIZE = (
    MAGIC_NUMBER_SIZE + VERSION_SIZE + DESCRIPTION_SIZE + AUTHOR_SIZE
    + COPYRIGHT_SIZE + PROGRAM_VERSION_SIZE + RESERVED_SIZE + MAX_BANKS
)

MAGIC_NUMBER = b"CX16 CARTRIDGE\r\n"
CURRENT_VERSION = b"01.00           "

# Whitespace as the C locale's isspace() sees it.
_C_SPACE = " \t\n\v\f\r"


class BankType(IntEnum):
    """How a cartridge bank is stored and whether it can be written."""

    NONE = 0
    ROM = 1
    UNINITIALIZED_RAM = 2
    INITIALIZED_RAM = 3
    UNINITIALIZED_NVRAM = 4
    INITIALIZED_NVRAM = 5


_NUM_BANK_TYPES = 5
_WRITABLE = frozenset({
    BankType.UNINITIALIZED_RAM,
    BankType.INITIALIZED_RAM,
    BankType.UNINITIALIZED_NVRAM,
    BankType.INITIALIZED_NVRAM,
})
_STORED_IN_IMAGE = frozenset({BankType.ROM, BankType.INITIALIZED_RAM, BankType.INITIALIZED_NVRAM})
_STORED_IN_NVRAM = frozenset({BankType.UNINITIALIZED_NVRAM, BankType.INITIALIZED_NVRAM})
_KNOWN_TYPES = frozenset(int(kind) for kind in BankType)


class CartridgeError(ValueError):
    """A cartridge could not be loaded, saved or changed as asked."""


_FIELDS = (
    ("magic", MAGIC_NUMBER_SIZE),
    ("version", VERSION_SIZE),
    ("description", DESCRIPTION_SIZE),
    ("author", AUTHOR_SIZE),
    ("copyright", COPYRIGHT_SIZE),
    ("program_version", PROGRAM_VERSION_SIZE),
    ("reserved", RESERVED_SIZE),
)


@dataclass
class CartridgeHeader:
    """The raw header of a cartridge image."""

    magic: bytes = MAGIC_NUMBER
    version: bytes = CURRENT_VERSION
    description: bytes = bytes(DESCRIPTION_SIZE)
    author: bytes = bytes(AUTHOR_SIZE)
    copyright: bytes = bytes(COPYRIGHT_SIZE)
    program_version: bytes = bytes(PROGRAM_VERSION_SIZE)
    reserved: bytes = bytes(RESERVED_SIZE)
    bank_info: List[int] = field(default_factory=lambda: [0] * MAX_BANKS)

    def __post_init__(self) -> None:
        for name, size in _FIELDS:
            value = bytes(getattr(self, name))
            if len(value) != size:
                raise ValueError(f"header field {name} must be {size} bytes, got {len(value)}")
            setattr(self, name, value)
        self.bank_info = list(self.bank_info)
        if len(self.bank_info) != MAX_BANKS:
            raise ValueError(f"bank_info must have {MAX_BANKS} entries")
        if any(not 0 <= kind <= 0xFF for kind in self.bank_info):
            raise ValueError("bank types must fit in a byte")

    def to_bytes(self) -> bytes:
        """Serialise the header to its on-disk layout."""
        parts = [getattr(self, name) for name, _ in _FIELDS]
        parts.append(bytes(self.bank_info))
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "CartridgeHeader":
        """Parse a header from the first bytes of ``data``."""
        if len(data) < HEADER_SIZE:
            raise CartridgeError(f"header needs {HEADER_SIZE} bytes, got {len(data)}")
        values = {}
        offset = 0
        for name, size in _FIELDS:
            values[name] = bytes(data[offset:offset + size])
            offset += size
        values["bank_info"] = list(data[offset:offset + MAX_BANKS])
        return cls(**values)


def _bank_index(bank: int) -> Optional[int]:
    if FIRST_BANK <= bank < FIRST_BANK + MAX_BANKS:
        return bank - FIRST_BANK
    return None


def _check_byte(name: str, value: int) -> int:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must fit in a byte: {value}")
    return value


def _text_field(name: str, size: int, doc: str) -> property:
    def getter(self: "Cartridge") -> str:
        raw = getattr(self.header, name)
        return raw.split(b"\0", 1)[0].decode("latin-1").rstrip(_C_SPACE)

    def setter(self: "Cartridge", text: str) -> None:
        encoded = text.encode("latin-1")[:size]
        setattr(self.header, name, encoded.ljust(size, b" "))

    return property(getter, setter, doc=doc)


class Cartridge:
    """A cartridge image in memory: its header and the contents of every bank."""

    description = _text_field("description", DESCRIPTION_SIZE, "Description, space padded on disk.")
    author = _text_field("author", AUTHOR_SIZE, "Author, space padded on disk.")
    copyright = _text_field("copyright", COPYRIGHT_SIZE, "Copyright notice, space padded on disk.")
    program_version = _text_field(
        "program_version", PROGRAM_VERSION_SIZE, "Program version, space padded on disk."
    )

    def __init__(
        self,
        header: Optional[CartridgeHeader] = None,
        data: Optional[bytearray] = None,
    ) -> None:
        self.header = header if header is not None else CartridgeHeader()
        self.data = bytearray(data) if data is not None else bytearray(MAX_SIZE)
        if len(self.data) != MAX_SIZE:
            raise ValueError(f"cartridge data must be {MAX_SIZE} bytes")
        self.path: Optional[str] = None
        self.nvram_path: Optional[str] = None

    # -- loading ------------------------------------------------------------

    @classmethod
    def load(cls, path: PathLike, randomize: bool = False) -> "Cartridge":
        """Load a cartridge image, taking NVRAM banks from a sibling .nvram file if present."""
        path = os.fspath(path)
        extension = find_extension(path)
        if extension is None or extension.lower() != ".crt":
            raise CartridgeError(f'Path "{path}" does not appear to be a cartridge (.crt) file.')
        nvram_path = path[:-3] + "nvram"

        with ExitStack() as stack:
            try:
                cart = stack.enter_context(open_file(path, "rb"))
            except OSError as exc:
                raise CartridgeError(
                    f'Could not load cartridge "{path}": Could not read header.'
                ) from exc
            try:
                nvram: Optional[X16File] = stack.enter_context(open_file(nvram_path, "rb"))
            except OSError:
                nvram = None

            raw_header = cart.read(HEADER_SIZE)
            if len(raw_header) < HEADER_SIZE:
                raise CartridgeError(f'Could not load cartridge "{path}": Could not read header.')
            header = CartridgeHeader.from_bytes(raw_header)
            if header.magic != MAGIC_NUMBER:
                raise CartridgeError(f'Could not load cartridge "{path}": Not a cartridge file.')
            if header.version != CURRENT_VERSION:
                raise CartridgeError(f'Could not load cartridge "{path}": Unsupported version.')

            def read_bank(source: X16File) -> bytes:
                chunk = source.read(BANK_SIZE)
                if len(chunk) < BANK_SIZE:
                    raise CartridgeError(f'Could not load cartridge "{path}": Bank data is truncated.')
                return chunk

            data = bytearray(MAX_SIZE)
            for index, kind in enumerate(header.bank_info):
                chunk: Optional[bytes] = None
                if kind in (BankType.ROM, BankType.INITIALIZED_RAM):
                    chunk = read_bank(cart)
                elif kind in (BankType.UNINITIALIZED_RAM, BankType.UNINITIALIZED_NVRAM):
                    if randomize:
                        chunk = random.randbytes(BANK_SIZE)
                elif kind == BankType.INITIALIZED_NVRAM:
                    if nvram is not None:
                        chunk = read_bank(nvram)
                        cart.seek(BANK_SIZE, SeekOrigin.CUR)
                    else:
                        chunk = read_bank(cart)
                elif kind != BankType.NONE:
                    _log.warning("Unknown cartridge bank type at %d", index)
                if chunk is not None:
                    offset = index * BANK_SIZE
                    data[offset:offset + BANK_SIZE] = chunk

        cartridge = cls(header, data)
        cartridge.path = path
        cartridge.nvram_path = nvram_path
        return cartridge

    # -- building -----------------------------------------------------------

    def _range(self, start_bank: int, end_bank: int) -> range:
        start = _bank_index(start_bank)
        end = _bank_index(end_bank)
        if start is None or end is None:
            raise CartridgeError(f"bank range {start_bank}-{end_bank} is outside the cartridge")
        if start > end:
            raise CartridgeError(f"bank range {start_bank}-{end_bank} is reversed")
        return range(start, end + 1)

    def define_bank_range(self, start_bank: int, end_bank: int, bank_type: int) -> None:
        """Mark banks ``start_bank``..``end_bank`` (inclusive) with ``bank_type``."""
        _check_byte("bank type", bank_type)
        banks = self._range(start_bank, end_bank)
        if bank_type > _NUM_BANK_TYPES:
            _log.warning("Attempting to define unknown cartridge bank type %d", bank_type)
        for index in banks:
            self.header.bank_info[index] = int(bank_type)

    def import_files(
        self,
        paths: Iterable[PathLike],
        start_bank: int,
        bank_type: int,
        fill_value: int = 0,
    ) -> None:
        """Copy files back to back from ``start_bank`` on, padding the last bank with ``fill_value``."""
        _check_byte("bank type", bank_type)
        _check_byte("fill value", fill_value)
        start_index = _bank_index(start_bank)
        if start_index is None:
            raise CartridgeError(f"bank {start_bank} is outside the cartridge")

        address = start_index * BANK_SIZE
        available = MAX_SIZE - address
        for path in paths:
            if available == 0:
                raise CartridgeError("cartridge is full")
            try:
                with open_file(path, "rb") as source:
                    chunk = source.read(available)
            except OSError as exc:
                raise CartridgeError(f"could not read {os.fspath(path)}") from exc
            self.data[address:address + len(chunk)] = chunk
            address += len(chunk)
            available -= len(chunk)

        fill_end = min((address + BANK_SIZE - 1) & (0xFF << 14), MAX_SIZE)
        if fill_end > address:
            self.data[address:fill_end] = bytes((fill_value,)) * (fill_end - address)

        last_index = (address - 1) >> 14
        for index in range(start_index, last_index + 1):
            self.header.bank_info[index] = int(bank_type)

    def fill(self, start_bank: int, end_bank: int, bank_type: int, fill_value: int = 0) -> None:
        """Fill banks ``start_bank``..``end_bank`` with ``fill_value`` and mark their type."""
        _check_byte("bank type", bank_type)
        _check_byte("fill value", fill_value)
        banks = self._range(start_bank, end_bank)
        begin = banks.start * BANK_SIZE
        end = banks.stop * BANK_SIZE
        self.data[begin:end] = bytes((fill_value,)) * (end - begin)
        for index in banks:
            self.header.bank_info[index] = int(bank_type)

    # -- saving -------------------------------------------------------------

    def _banks(self, wanted: frozenset) -> Iterable[bytes]:
        for index, kind in enumerate(self.header.bank_info):
            if kind not in _KNOWN_TYPES:
                _log.warning("Unknown cartridge bank type at %d", index)
            elif kind in wanted:
                offset = index * BANK_SIZE
                yield bytes(self.data[offset:offset + BANK_SIZE])

    def save(self, path: PathLike) -> None:
        """Write the header and every stored bank to a .crt image."""
        path = os.fspath(path)
        compressed = is_compressed_type(path)
        extension = find_extension(path)
        if extension is None or not extension.startswith(".crt"):
            raise CartridgeError(f'Path "{path}" does not appear to be a cartridge (.crt) file.')
        try:
            target = open_file(path, "wb6" if compressed else "wb")
        except OSError as exc:
            raise CartridgeError(
                f'Could not save cartridge "{path}": Could not write header.'
            ) from exc
        with target:
            header = self.header.to_bytes()
            if target.write(header) != len(header):
                raise CartridgeError(f'Could not save cartridge "{path}": Could not write header.')
            for bank in self._banks(_STORED_IN_IMAGE):
                if target.write(bank) != BANK_SIZE:
                    raise CartridgeError(
                        "Failed to save some cartridge data. The cartridge may be corrupt."
                    )

    def save_nvram(self) -> None:
        """Write the NVRAM banks to the .nvram file next to the loaded image."""
        if self.nvram_path is None:
            raise CartridgeError("cartridge was not loaded from a file; it has no nvram path")
        try:
            target = open_file(self.nvram_path, "wb")
        except OSError as exc:
            raise CartridgeError(f"could not open {self.nvram_path}") from exc
        with target:
            for bank in self._banks(_STORED_IN_NVRAM):
                if target.write(bank) != BANK_SIZE:
                    raise CartridgeError(
                        "Failed to save some nvram data. The nvram may be corrupt."
                    )

    # -- bus access ---------------------------------------------------------

    @staticmethod
    def _offset(index: int, address: int) -> int:
        if not WINDOW_START <= address <= WINDOW_END:
            raise ValueError(f"address ${address:04X} is outside the cartridge window")
        return index * BANK_SIZE + address - WINDOW_START

    def read(self, address: int, bank: int) -> int:
        """Read a byte through the $C000-$FFFF window; banks outside the cartridge read 0."""
        index = _bank_index(bank)
        if index is None:
            return 0
        return self.data[self._offset(index, address)]

    def write(self, address: int, bank: int, value: int) -> None:
        """Write a byte through the window; only RAM and NVRAM banks take writes."""
        index = _bank_index(bank)
        if index is None:
            return
        if self.header.bank_info[index] in _WRITABLE:
            self.data[self._offset(index, address)] = value & 0xFF

    def bank_type(self, bank: int) -> int:
        """Return the type of ``bank``; banks outside the cartridge are NONE."""
        index = _bank_index(bank)
        if index is None:
            return BankType.NONE
        kind = self.header.bank_info[index]
        return BankType(kind) if kind in _KNOWN_TYPES else kind