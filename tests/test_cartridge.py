import gzip

import pytest

from x16emu.cartridge import (
    BANK_SIZE,
    HEADER_SIZE,
    MAGIC_NUMBER,
    BankType,
    Cartridge,
    CartridgeError,
    CartridgeHeader,
)


def test_header_layout_pins_magic_and_version():
    raw = CartridgeHeader().to_bytes()
    assert len(raw) == 480
    assert raw[:16] == b"CX16 CARTRIDGE\r\n"
    assert raw[16:32] == b"01.00           "


def test_header_round_trip():
    header = CartridgeHeader()
    header.bank_info[3] = BankType.ROM
    header.description = b"x" * 32
    parsed = CartridgeHeader.from_bytes(header.to_bytes())
    assert parsed == header


def test_header_from_short_data_raises():
    with pytest.raises(CartridgeError):
        CartridgeHeader.from_bytes(b"CX16")


def test_header_rejects_wrong_field_size():
    with pytest.raises(ValueError):
        CartridgeHeader(author=b"short")


def test_text_fields_pad_and_trim():
    cart = Cartridge()
    assert cart.description == ""
    cart.description = "Hello"
    assert cart.header.description == b"Hello".ljust(32, b" ")
    assert cart.description == "Hello"


def test_text_fields_truncate():
    cart = Cartridge()
    cart.author = "a" * 40
    assert cart.author == "a" * 32
    cart.copyright = "c" * 50
    assert cart.copyright == "c" * 32
    cart.program_version = "v1  "
    assert cart.program_version == "v1"


def test_define_bank_range_sets_types():
    cart = Cartridge()
    cart.define_bank_range(32, 34, BankType.ROM)
    assert [cart.bank_type(b) for b in (32, 33, 34, 35)] == [
        BankType.ROM, BankType.ROM, BankType.ROM, BankType.NONE,
    ]


@pytest.mark.parametrize("start,end", [(31, 40), (40, 31), (41, 40), (32, 256)])
def test_define_bank_range_invalid(start, end):
    with pytest.raises(CartridgeError):
        Cartridge().define_bank_range(start, end, BankType.ROM)


def test_unknown_bank_type_is_kept():
    cart = Cartridge()
    cart.define_bank_range(50, 50, 9)
    assert cart.bank_type(50) == 9


def test_bank_type_outside_range_is_none():
    cart = Cartridge()
    assert cart.bank_type(5) == BankType.NONE


def test_fill_sets_data_and_types():
    cart = Cartridge()
    cart.fill(32, 33, BankType.ROM, 0xAB)
    assert cart.read(0xC000, 32) == 0xAB
    assert cart.read(0xFFFF, 33) == 0xAB
    assert cart.read(0xC000, 34) == 0
    assert cart.bank_type(33) == BankType.ROM


def test_fill_invalid_range_raises():
    with pytest.raises(CartridgeError):
        Cartridge().fill(20, 40, BankType.ROM, 0)


def test_write_only_affects_ram_banks():
    cart = Cartridge()
    cart.fill(32, 32, BankType.ROM, 0x11)
    cart.fill(33, 33, BankType.UNINITIALIZED_RAM, 0x00)
    cart.write(0xC010, 32, 0x55)
    cart.write(0xC010, 33, 0x55)
    assert cart.read(0xC010, 32) == 0x11
    assert cart.read(0xC010, 33) == 0x55


def test_read_below_cartridge_banks_is_zero():
    cart = Cartridge()
    cart.fill(32, 32, BankType.ROM, 0x77)
    assert cart.read(0xC000, 31) == 0


def test_read_outside_window_raises():
    with pytest.raises(ValueError):
        Cartridge().read(0x8000, 32)


def test_import_files_places_data_and_pads(tmp_path):
    payload = bytes(range(256)) * 80  # spans into a second bank
    source = tmp_path / "prog.bin"
    source.write_bytes(payload)
    cart = Cartridge()
    cart.import_files([source], 40, BankType.ROM, 0xEE)
    assert cart.read(0xC000, 40) == payload[0]
    assert cart.read(0xC0FF, 40) == payload[255]
    overflow = len(payload) - BANK_SIZE
    assert cart.read(0xC000 + overflow - 1, 41) == payload[-1]
    assert cart.read(0xC000 + overflow, 41) == 0xEE
    assert cart.read(0xFFFF, 41) == 0xEE
    assert cart.bank_type(40) == BankType.ROM
    assert cart.bank_type(41) == BankType.ROM
    assert cart.bank_type(42) == BankType.NONE


def test_import_files_concatenates(tmp_path):
    first = tmp_path / "a.bin"
    second = tmp_path / "b.bin"
    first.write_bytes(b"\x01\x02")
    second.write_bytes(b"\x03")
    cart = Cartridge()
    cart.import_files([first, second], 32, BankType.ROM, 0)
    assert [cart.read(0xC000 + i, 32) for i in range(3)] == [1, 2, 3]


def test_import_missing_file_raises(tmp_path):
    with pytest.raises(CartridgeError):
        Cartridge().import_files([tmp_path / "missing.bin"], 32, BankType.ROM, 0)


def test_import_bad_start_bank_raises(tmp_path):
    with pytest.raises(CartridgeError):
        Cartridge().import_files([], 10, BankType.ROM, 0)


def _sample_cart():
    cart = Cartridge()
    cart.description = "Demo"
    cart.fill(32, 32, BankType.ROM, 0x11)
    cart.fill(33, 33, BankType.INITIALIZED_RAM, 0x22)
    cart.fill(34, 34, BankType.UNINITIALIZED_RAM, 0x33)
    cart.fill(35, 35, BankType.INITIALIZED_NVRAM, 0x44)
    return cart


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "game.crt"
    _sample_cart().save(path)
    raw = path.read_bytes()
    assert raw.startswith(MAGIC_NUMBER)
    assert len(raw) == HEADER_SIZE + 3 * BANK_SIZE

    loaded = Cartridge.load(path)
    assert loaded.description == "Demo"
    assert loaded.read(0xC000, 32) == 0x11
    assert loaded.read(0xFFFF, 33) == 0x22
    assert loaded.read(0xC000, 34) == 0
    assert loaded.read(0xC000, 35) == 0x44
    assert loaded.bank_type(34) == BankType.UNINITIALIZED_RAM
    assert loaded.path == str(path)
    assert loaded.nvram_path == str(tmp_path / "game.nvram")


def test_load_accepts_uppercase_extension(tmp_path):
    path = tmp_path / "GAME.CRT"
    _sample_cart().save(tmp_path / "GAME.crt")
    (tmp_path / "GAME.crt").rename(path)
    assert Cartridge.load(path).read(0xC000, 32) == 0x11


def test_nvram_save_and_reload(tmp_path):
    path = tmp_path / "game.crt"
    _sample_cart().save(path)
    loaded = Cartridge.load(path)
    loaded.write(0xC000, 35, 0x99)
    loaded.save_nvram()
    nvram = (tmp_path / "game.nvram").read_bytes()
    assert len(nvram) == BANK_SIZE
    assert nvram[0] == 0x99

    reloaded = Cartridge.load(path)
    assert reloaded.read(0xC000, 35) == 0x99
    assert reloaded.read(0xC001, 35) == 0x44


def test_save_nvram_without_path_raises():
    with pytest.raises(CartridgeError):
        Cartridge().save_nvram()


def test_load_wrong_extension_raises(tmp_path):
    path = tmp_path / "game.bin"
    path.write_bytes(CartridgeHeader().to_bytes())
    with pytest.raises(CartridgeError):
        Cartridge.load(path)


def test_load_compressed_name_is_rejected(tmp_path):
    with pytest.raises(CartridgeError):
        Cartridge.load(tmp_path / "game.crt.gz")


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(CartridgeError):
        Cartridge.load(tmp_path / "none.crt")


def test_load_bad_magic_raises(tmp_path):
    path = tmp_path / "bad.crt"
    path.write_bytes(CartridgeHeader(magic=b"X" * 16).to_bytes())
    with pytest.raises(CartridgeError, match="Not a cartridge"):
        Cartridge.load(path)


def test_load_bad_version_raises(tmp_path):
    path = tmp_path / "bad.crt"
    path.write_bytes(CartridgeHeader(version=b"99.00".ljust(16, b" ")).to_bytes())
    with pytest.raises(CartridgeError, match="Unsupported version"):
        Cartridge.load(path)


def test_load_truncated_header_raises(tmp_path):
    path = tmp_path / "short.crt"
    path.write_bytes(MAGIC_NUMBER)
    with pytest.raises(CartridgeError, match="header"):
        Cartridge.load(path)


def test_load_truncated_bank_raises(tmp_path):
    header = CartridgeHeader()
    header.bank_info[0] = BankType.ROM
    path = tmp_path / "trunc.crt"
    path.write_bytes(header.to_bytes() + b"\x00" * 10)
    with pytest.raises(CartridgeError):
        Cartridge.load(path)


def test_save_wrong_extension_raises(tmp_path):
    with pytest.raises(CartridgeError):
        Cartridge().save(tmp_path / "game.bin")


def test_randomize_false_leaves_uninitialized_ram_zero(tmp_path):
    cart = Cartridge()
    cart.define_bank_range(32, 32, BankType.UNINITIALIZED_RAM)
    path = tmp_path / "ram.crt"
    cart.save(path)
    loaded = Cartridge.load(path, randomize=False)
    assert all(loaded.read(0xC000 + i, 32) == 0 for i in range(64))