"""CHIP-8 Instruction Decoder

Maps raw 16-bit instruction words to tagged Instruction values.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class InvalidInstructionException(Exception):
    """Exception for instruction words that cannot be executed."""
    pass


class DecodeError(InvalidInstructionException):
    """Raised when a word matches no known opcode pattern."""

    def __init__(self, word: int):
        self.word = word & 0xFFFF
        super().__init__(f"Unsupported opcode 0x{self.word:04X}")


@dataclass
class Instruction:
    """Represents a decoded instruction.

    ``opcode`` is the mnemonic tag for the opcode family and ``operands``
    holds the fields extracted from the word, in the order the executor
    expects them (registers first, then immediates).
    """
    opcode: str
    operands: List[int] = field(default_factory=list)
    raw_data: int = 0
    address: Optional[int] = None


# ALU family (8xyN), keyed by the low nibble
ALU_OPCODES = {
    0x0: 'LD_REG',
    0x1: 'OR',
    0x2: 'AND',
    0x3: 'XOR',
    0x4: 'ADD_REG',
    0x5: 'SUB',
    0x6: 'SHR',
    0x7: 'SUBN',
    0xE: 'SHL',
}

# Fx__ family, keyed by the low byte
MISC_OPCODES = {
    0x07: 'LD_V_DT',
    0x0A: 'LD_V_K',
    0x15: 'LD_DT_V',
    0x18: 'LD_ST_V',
    0x1E: 'ADD_I',
    0x29: 'LD_F',
    0x33: 'LD_B',
    0x55: 'LD_I_V',
    0x65: 'LD_V_I',
}


def split_nibbles(word: int):
    """Split a word into its four nibbles, most significant first."""
    return (
        (word & 0xF000) >> 12,
        (word & 0x0F00) >> 8,
        (word & 0x00F0) >> 4,
        word & 0x000F,
    )


def decode(word: int, address: Optional[int] = None) -> Instruction:
    """Decode a 16-bit instruction word.

    Args:
        word: Raw big-endian instruction word
        address: Optional address the word was fetched from

    Returns:
        The decoded Instruction

    Raises:
        DecodeError: If the word matches no opcode pattern
    """
    word &= 0xFFFF
    n1, x, y, n = split_nibbles(word)
    nn = word & 0x00FF
    nnn = word & 0x0FFF

    def make(opcode: str, *operands: int) -> Instruction:
        return Instruction(opcode, list(operands), word, address)

    if n1 == 0x0:
        if word == 0x00E0:
            return make('CLS')
        if word == 0x00EE:
            return make('RET')
        return make('SYS', nnn)
    if n1 == 0x1:
        return make('JP', nnn)
    if n1 == 0x2:
        return make('CALL', nnn)
    if n1 == 0x3:
        return make('SE_BYTE', x, nn)
    if n1 == 0x4:
        return make('SNE_BYTE', x, nn)
    if n1 == 0x5 and n == 0x0:
        return make('SE_REG', x, y)
    if n1 == 0x6:
        return make('LD_BYTE', x, nn)
    if n1 == 0x7:
        return make('ADD_BYTE', x, nn)
    if n1 == 0x8 and n in ALU_OPCODES:
        opcode = ALU_OPCODES[n]
        # Shifts operate on Vx only
        if opcode in ('SHR', 'SHL'):
            return make(opcode, x)
        return make(opcode, x, y)
    if n1 == 0x9 and n == 0x0:
        return make('SNE_REG', x, y)
    if n1 == 0xA:
        return make('LD_I', nnn)
    if n1 == 0xB:
        return make('JP_V0', nnn)
    if n1 == 0xC:
        return make('RND', x, nn)
    if n1 == 0xD:
        return make('DRW', x, y, n)
    if n1 == 0xE:
        if nn == 0x9E:
            return make('SKP', x)
        if nn == 0xA1:
            return make('SKNP', x)
    if n1 == 0xF and nn in MISC_OPCODES:
        return make(MISC_OPCODES[nn], x)

    raise DecodeError(word)
