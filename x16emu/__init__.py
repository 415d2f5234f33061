"""Commander X16 emulator components: opcode tables, disassembler, files, I2C and cartridges."""

__version__ = "0.1.0"