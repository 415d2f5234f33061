"""Single-instruction 65C02 disassembler."""

from dataclasses import dataclass
from typing import Callable, Optional

from .opcodes import mnemonic

Reader = Callable[[int], int]

# Opcodes whose operand is indexed by X, including (zp,x) and (abs,x).
_X_RELATIVE = frozenset({
    0x01, 0x15, 0x16, 0x1D, 0x1E, 0x21, 0x34, 0x35, 0x36, 0x3C, 0x3D,
    0x41, 0x55, 0x56, 0x5D, 0x5E, 0x61, 0x74, 0x75, 0x76, 0x7C, 0x7D,
    0x7E, 0x81, 0x94, 0x95, 0x9D, 0x9E, 0xA1, 0xB4, 0xB5, 0xBC, 0xBD,
    0xC1, 0xD5, 0xD6, 0xDD, 0xDE, 0xE1, 0xF5, 0xF6, 0xFD, 0xFE,
})


@dataclass(frozen=True)
class Disassembly:
    """One disassembled instruction.

    ``effective_address`` is the operand address the instruction would touch
    with the given index registers, or None when there is none to show.
    """

    text: str
    length: int
    effective_address: Optional[int] = None


def _signed8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


def disassemble(read: Reader, pc: int, x: int = 0, y: int = 0) -> Disassembly:
    """Disassemble the instruction at ``pc`` using ``read`` to fetch bytes."""
    pc &= 0xFFFF

    def byte(address: int) -> int:
        return read(address & 0xFFFF) & 0xFF

    def word(address: int) -> int:
        return byte(address) | (byte(address + 1) << 8)

    opcode = byte(pc)
    template = mnemonic(opcode)

    is_branch = opcode == 0x80 or (opcode & 0x1F) == 0x10
    is_zprel = (opcode & 0x0F) == 0x0F
    is_xrel = opcode in _X_RELATIVE
    is_immediate = (opcode & 0x1F) == 0x09 or opcode in (0xA0, 0xA2, 0xC0, 0xE0)
    is_yrel = (opcode & 0x17) == 0x11 or opcode in (0x96, 0xB6)
    is_indirect = (
        (opcode & 0x0F) == 0x01
        or (opcode & 0x1F) == 0x12
        or opcode in (0x6C, 0x7C)
    )

    if is_zprel:
        target = (pc + 3 + _signed8(byte(pc + 2))) & 0xFFFFFFFF
        return Disassembly(template % (byte(pc + 1), target), 3)

    text = template
    length = 1
    effective: Optional[int] = None

    if "%02x" in template:
        length = 2
        if is_branch:
            target = (pc + 2 + _signed8(byte(pc + 1))) & 0xFFFFFFFF
            text = template % target
        else:
            operand = byte(pc + 1)
            text = template % operand
            if is_indirect:
                pointer = operand
                if is_xrel:
                    pointer = (pointer + x) & 0xFFFF
                effective = word(pointer)
                if is_yrel:
                    effective += y
            elif not is_immediate:
                effective = operand
                if is_xrel:
                    effective += x
                if is_yrel:
                    effective += y
    elif "%04x" in template:
        length = 3
        operand = word(pc + 1)
        text = template % operand
        if is_indirect:
            pointer = operand
            if is_xrel:
                pointer = (pointer + x) & 0xFFFF
            effective = word(pointer)
            if is_yrel:
                effective += y
        else:
            effective = operand
            if is_xrel:
                effective += x
            if is_yrel:
                effective += y

    if opcode == 0x00:
        # BRK skips a signature byte when executed.
        length = 2

    return Disassembly(text, length, effective)