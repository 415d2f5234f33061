[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "x16emu"
version = "0.1.0"
description = "Commander X16 emulator components: 65C02 opcode tables and disassembler, I2C bus and mouse, cartridge images and gzip-aware file access"
requires-python = ">=3.10"
dependencies = []
keywords = ["emulator", "65c02", "6502", "commander-x16", "disassembler", "cartridge", "i2c", "retro"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["x16emu"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
