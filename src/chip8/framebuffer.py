"""CHIP-8 Framebuffer

64x32 monochrome pixel grid mutated by the clear and draw instructions.
"""

from typing import Iterable, List


DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8


class Framebuffer:
    """Row-major grid of on/off pixels.

    Sprites are XOR-blitted and wrap around both edges of the screen.
    """

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT):
        self.width = width
        self.height = height
        self.pixels: List[bool] = [False] * (width * height)

    def clear(self) -> None:
        """Turn every pixel off."""
        self.pixels = [False] * (self.width * self.height)

    def get_pixel(self, x: int, y: int) -> bool:
        return self.pixels[(y % self.height) * self.width + (x % self.width)]

    def draw_sprite(self, x: int, y: int, sprite: Iterable[int]) -> bool:
        """XOR a sprite onto the grid.

        Each sprite byte is one row, most significant bit leftmost.
        Coordinates wrap modulo the grid size instead of clipping.

        Args:
            x: Column of the sprite's left edge
            y: Row of the sprite's top edge
            sprite: Sprite rows, one byte each

        Returns:
            True if any lit pixel was turned off
        """
        collision = False
        for row, byte in enumerate(sprite):
            target_y = (y + row) % self.height
            for bit in range(SPRITE_WIDTH):
                if not (byte >> (SPRITE_WIDTH - 1 - bit)) & 1:
                    continue
                index = target_y * self.width + (x + bit) % self.width
                if self.pixels[index]:
                    collision = True
                self.pixels[index] = not self.pixels[index]
        return collision

    def rows(self) -> List[List[bool]]:
        """Copy of the grid as a list of rows."""
        return [
            self.pixels[y * self.width:(y + 1) * self.width]
            for y in range(self.height)
        ]

    def lit_count(self) -> int:
        return sum(self.pixels)

    def __str__(self) -> str:
        return '\n'.join(
            ''.join('#' if pixel else '.' for pixel in row)
            for row in self.rows()
        )
