"""CHIP-8 Display

pygame window that presents the framebuffer and samples the keypad.
"""

import logging
from typing import FrozenSet, Optional

import pygame

from .framebuffer import Framebuffer, DISPLAY_WIDTH, DISPLAY_HEIGHT
from .keypad import pressed_codes


logger = logging.getLogger(__name__)

PIXEL_SIZE = 15
ON_COLOR = (255, 255, 255)
OFF_COLOR = (0, 0, 0)


class DisplayInitError(Exception):
    """Raised when the display or input subsystem cannot start."""
    pass


class Display:
    """pygame display and keypad input collaborator."""

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT,
                 scale: int = PIXEL_SIZE, title: str = "chip8"):
        """Prepare the display; the window opens in ``initialize_display``.

        Args:
            width: Framebuffer width in pixels
            height: Framebuffer height in pixels
            scale: Size of one framebuffer pixel on screen
            title: Window caption
        """
        self.width = width
        self.height = height
        self.scale = scale
        self.title = title

        self.pygame_initialized = False
        self.screen: Optional[pygame.Surface] = None
        self.running = False
        self.frame_count = 0

    def initialize_display(self) -> None:
        """Open the window and clear it to black.

        Raises:
            DisplayInitError: If pygame cannot provide video or input
        """
        try:
            pygame.display.init()
            self.screen = pygame.display.set_mode(
                (self.width * self.scale, self.height * self.scale)
            )
            pygame.display.set_caption(self.title)
        except pygame.error as e:
            pygame.display.quit()
            raise DisplayInitError(f"Could not initialize video: {e}")

        self.screen.fill(OFF_COLOR)
        pygame.display.flip()

        self.pygame_initialized = True
        self.running = True
        logger.debug("Display initialized at %dx%d",
                     self.width * self.scale, self.height * self.scale)

    def shutdown_display(self) -> None:
        """Shutdown pygame display."""
        if self.pygame_initialized:
            pygame.display.quit()
            self.pygame_initialized = False
            self.running = False

    def poll_events(self) -> bool:
        """Process pending window events.

        Returns:
            False once the window was closed or Escape pressed
        """
        if not self.pygame_initialized:
            return False

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                self.running = False
        return self.running

    def pressed_keys(self) -> FrozenSet[int]:
        """Keypad codes currently held down."""
        if not self.pygame_initialized:
            return frozenset()
        return pressed_codes(pygame.key.get_pressed())

    def render(self, framebuffer: Framebuffer) -> None:
        """Blit the framebuffer, one scaled rectangle per pixel."""
        if not self.pygame_initialized:
            return

        for y, row in enumerate(framebuffer.rows()):
            for x, pixel in enumerate(row):
                rect = pygame.Rect(x * self.scale, y * self.scale, self.scale, self.scale)
                pygame.draw.rect(self.screen, ON_COLOR if pixel else OFF_COLOR, rect)

        pygame.display.flip()
        self.frame_count += 1
