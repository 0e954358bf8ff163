"""CHIP-8 Memory

4 KB byte-addressable memory holding the built-in font and the loaded program.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable


logger = logging.getLogger(__name__)


MEMORY_SIZE = 0x1000
FONT_START = 0x000
PROGRAM_START = 0x200
FONT_SPRITE_SIZE = 5

# Digits 0-F, five rows of four pixels each (high nibble)
FONT = [
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
]


class MemoryException(Exception):
    """Base exception for memory-related errors."""
    pass


class InvalidAddressException(MemoryException):
    """Exception for accesses outside the 4 KB address space."""

    def __init__(self, address: int, message: str = None):
        self.address = address
        super().__init__(message or f"Address out of range: 0x{address:04X}")


@dataclass
class MemoryRegion:
    """Represents a region of memory."""
    start_address: int
    size: int
    name: str = ""

    @property
    def end_address(self) -> int:
        return self.start_address + self.size - 1


class Memory:
    """CHIP-8 memory unit."""

    def __init__(self, size: int = MEMORY_SIZE):
        """Initialize memory and write the built-in font.

        Args:
            size: Size of memory in bytes (default 4 KB)
        """
        self.regions = {
            'font': MemoryRegion(FONT_START, len(FONT), "Font"),
            'program': MemoryRegion(PROGRAM_START, size - PROGRAM_START, "Program"),
        }

        self.data = bytearray(size)
        self.program_size = 0
        self._write_font()

    def __len__(self) -> int:
        return len(self.data)

    def _write_font(self) -> None:
        self.data[FONT_START:FONT_START + len(FONT)] = bytes(FONT)

    def load_program(self, program: bytes) -> None:
        """Copy a program into memory starting at 0x200.

        A program that runs past the end of memory is a caller error. It
        surfaces as an out-of-range write before any byte is copied and is
        never truncated.

        Args:
            program: Raw program bytes
        """
        region = self.regions['program']
        if len(program) > region.size:
            logger.warning("Program of %d bytes runs past 0x%03X",
                           len(program), region.end_address)
        self.write_block(PROGRAM_START, program)
        self.program_size = len(program)

    def check_range(self, address: int, count: int = 1) -> None:
        """Raise unless every byte in [address, address + count) exists.

        Raises:
            InvalidAddressException: If any address is out of range
        """
        if address < 0 or address >= len(self.data):
            raise InvalidAddressException(address)
        end = address + count - 1
        if count > 0 and end >= len(self.data):
            raise InvalidAddressException(end)

    def read(self, address: int) -> int:
        """Read a byte from memory."""
        self.check_range(address)
        return self.data[address]

    def write(self, address: int, value: int) -> None:
        """Write a byte to memory."""
        self.check_range(address)
        self.data[address] = value & 0xFF

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word."""
        self.check_range(address, 2)
        return (self.data[address] << 8) | self.data[address + 1]

    def read_block(self, address: int, count: int) -> bytes:
        """Read ``count`` bytes starting at ``address``."""
        self.check_range(address, count)
        return bytes(self.data[address:address + count])

    def write_block(self, address: int, values: Iterable[int]) -> None:
        """Write a sequence of bytes starting at ``address``.

        The whole range is validated before anything is written.
        """
        values = [value & 0xFF for value in values]
        self.check_range(address, len(values))
        self.data[address:address + len(values)] = bytes(values)

    def font_address(self, digit: int) -> int:
        """Address of the font glyph for a hexadecimal digit."""
        return self.regions['font'].start_address + (digit & 0xF) * FONT_SPRITE_SIZE

    def dump(self, start: int = PROGRAM_START, count: int = 16) -> Dict[int, int]:
        """Dump memory contents for error reports.

        Args:
            start: Starting address
            count: Number of bytes to dump

        Returns:
            Dictionary mapping addresses to values
        """
        return {
            addr: self.data[addr]
            for addr in range(start, min(start + count, len(self.data)))
            if addr >= 0
        }

    def clear(self) -> None:
        """Zero all memory and rewrite the font."""
        self.data = bytearray(len(self.data))
        self.program_size = 0
        self._write_font()

