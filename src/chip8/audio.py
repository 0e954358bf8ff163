"""CHIP-8 Audio Cue

Rings the terminal bell while the sound timer is active.
"""

import time
from typing import Callable, Optional

from rich.console import Console

from .timers import TICK_NS


class Buzzer:
    """Audible cue for the sound timer.

    The driver calls ``update`` every step; the bell rings at most once
    per timer tick while sound is active.
    """

    def __init__(self, console: Optional[Console] = None,
                 clock: Optional[Callable[[], int]] = None):
        self.console = console or Console(stderr=True)
        self.clock = clock or time.monotonic_ns
        self.last_ring: Optional[int] = None
        self.ring_count = 0

    def update(self, sound_active: bool) -> None:
        if not sound_active:
            self.last_ring = None
            return

        now = self.clock()
        if self.last_ring is not None and now - self.last_ring < TICK_NS:
            return
        self.console.bell()
        self.last_ring = now
        self.ring_count += 1
