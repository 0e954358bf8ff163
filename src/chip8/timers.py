"""CHIP-8 Timers

Delay and sound timers decremented at 60 Hz from elapsed clock time.
"""

import time
from typing import Callable, Optional


# One 1/60 second tick, in nanoseconds
TICK_NS = 1_000_000_000 // 60

Clock = Callable[[], int]


class Timers:
    """Delay (DT) and sound (ST) countdown timers.

    Elapsed time is read from ``clock``, a callable returning a monotonic
    timestamp in nanoseconds. Only whole ticks are consumed; the fraction
    of a tick left over is carried into the next update.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or time.monotonic_ns
        self.delay = 0
        self.sound = 0
        self.last_tick = self.clock()

    def reset(self) -> None:
        """Zero both timers and restart the tick clock."""
        self.delay = 0
        self.sound = 0
        self.last_tick = self.clock()

    def update(self) -> int:
        """Apply every whole tick elapsed since the last update.

        Returns:
            Number of ticks applied
        """
        now = self.clock()
        ticks = (now - self.last_tick) // TICK_NS
        if ticks <= 0:
            return 0

        self.delay = max(0, self.delay - ticks)
        self.sound = max(0, self.sound - ticks)
        self.last_tick += ticks * TICK_NS
        return ticks

    @property
    def sound_active(self) -> bool:
        return self.sound != 0
