# x16emu

Components for building a Commander X16 emulator. The package is pure Python
and has no third-party dependencies.

## What is included

- `x16emu.opcodes` holds the 65C02 opcode tables. For any opcode from 0 to 255,
  `mnemonic(opcode)` returns its printf-style disassembly template, for example
  `"lda #$%02x"`. `address_mode(opcode)` returns an `AddressMode`,
  `operation(opcode)` returns the operation name, for example `"lda"`, and
  `base_cycles(opcode)` returns its base cycle count. An opcode outside that
  range raises `ValueError`.
- `x16emu.disasm` provides `disassemble(read, pc, x=0, y=0)`. It decodes one
  instruction, reading bytes through the `read(address)` callable, and returns
  a frozen `Disassembly` with three fields:
  - `text`: the disassembled instruction.
  - `length`: the instruction's length in bytes. BRK counts as 2.
  - `effective_address`: the operand address computed with the given X and Y,
    or `None` for immediate, implied and branch instructions.
- `x16emu.files` provides `open_file(path, mode="rb")`, which returns an
  `X16File`. It has `read`, `write`, `read8`, `write8`, `seek` (with
  `SeekOrigin`), `tell`, `size` and `close`, and it works as a context manager.
  - Compressed names are handled transparently. These are names ending in
    `.gz`, `-gz`, `.z`, `-z`, `_z` or `.Z`. Such a file is inflated to
    `<name>.tmp` when opened. If something was written to it, it is
    gzip-compressed back over the original when closed.
  - `shutdown()` closes every file still open.
  - `is_compressed_type` and `find_extension` inspect file names.
- `x16emu.i2c` provides the I2C bus and the input buffers.
  - `I2CBus(devices)` is a bit-level I2C target, driven by `step(clk, data)`.
    `devices` maps 7-bit addresses to objects that have `read(offset)` and
    `write(offset, value)`. Addresses with no device get no acknowledge and
    read as `0xFF`.
  - `RingBuffer` is a power-of-two byte ring buffer. It holds at most
    `size - 1` values.
  - `Mouse` queues PS/2-style movement packets into a `RingBuffer`. Device id
    3 sends four-byte packets that carry the wheel; device id 0 sends
    three-byte packets.
- `x16emu.cartridge` reads and writes `.crt` cartridge images.
  - `Cartridge` holds a `CartridgeHeader` and up to 224 banks of 16 KiB each,
    numbered from bank 32. Each bank has a `BankType`.
  - Images are built with `define_bank_range`, `fill` and `import_files`.
  - `Cartridge.load` and `save` read and write images. `save_nvram` writes the
    NVRAM banks to the `.nvram` file that sits next to a loaded image.
  - `read(address, bank)` and `write(address, bank, value)` access the
    `$C000-$FFFF` window. Only RAM and NVRAM banks accept writes.
  - Failures raise `CartridgeError`.

## Installing

```
pip install .
```

## Examples

Disassembling an instruction:

```python
from x16emu.disasm import disassemble

memory = bytearray(0x10000)
memory[0x0200:0x0202] = (0xA9, 0x42)  # lda #$42

result = disassemble(lambda address: memory[address], 0x0200)
print(result.text, result.length)     # lda #$42 2
```

Building, saving and loading a cartridge:

```python
from x16emu.cartridge import BankType, Cartridge

cart = Cartridge()
cart.description = "Demo cartridge"
cart.fill(32, 33, BankType.ROM, 0xEA)
cart.define_bank_range(34, 34, BankType.UNINITIALIZED_NVRAM)
cart.save("demo.crt")

loaded = Cartridge.load("demo.crt")
assert loaded.description == "Demo cartridge"
assert loaded.read(0xC000, 32) == 0xEA
```

Queuing mouse packets:

```python
from x16emu.i2c import Mouse

mouse = Mouse()
mouse.button_down(0)
mouse.move(5, -3)
mouse.send_state()
packet = [mouse.buffer.next() for _ in range(4)]
```

## What the package does not do

The package does not execute 65C02 code. It has the opcode tables and a
disassembler, but no CPU core. It has no audio output or mixing, no video,
no SMC or RTC device implementations to attach to `I2CBus`, and no window,
debugger or command-line program. These components need to be combined with
such parts to make a running emulator.

## Running the tests

```
pip install ".[test]"
pytest
```