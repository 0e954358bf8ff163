"""
Tests for the delay and sound timers and Fx07 / Fx15 / Fx18.

Timers decrement once per 1/60 s of elapsed clock time, never below zero,
and carry partial ticks forward.
"""

import unittest
from test_program_framework import FakeClock, make_machine

from chip8.timers import Timers, TICK_NS


class TestTimers(unittest.TestCase):
    """Test the timer unit with a controllable clock."""

    def setUp(self):
        self.clock = FakeClock(start=1_000_000)
        self.timers = Timers(self.clock)

    def test_one_tick_decrements_both(self):
        self.timers.delay = 5
        self.timers.sound = 3
        self.clock.advance_ticks(1)
        self.assertEqual(self.timers.update(), 1)
        self.assertEqual((self.timers.delay, self.timers.sound), (4, 2))

    def test_partial_tick_does_nothing(self):
        self.timers.delay = 5
        self.clock.advance(TICK_NS - 1)
        self.assertEqual(self.timers.update(), 0)
        self.assertEqual(self.timers.delay, 5)

    def test_partial_ticks_accumulate(self):
        self.timers.delay = 5
        self.clock.advance(TICK_NS // 2)
        self.timers.update()
        self.clock.advance(TICK_NS // 2)
        self.timers.update()
        self.assertEqual(self.timers.delay, 4)

    def test_leftover_fraction_is_kept(self):
        self.timers.delay = 10
        self.clock.advance(TICK_NS + TICK_NS // 2)
        self.timers.update()
        self.assertEqual(self.timers.delay, 9)
        self.clock.advance(TICK_NS // 2)
        self.timers.update()
        self.assertEqual(self.timers.delay, 8)

    def test_several_ticks_at_once(self):
        self.timers.delay = 10
        self.timers.sound = 10
        self.clock.advance_ticks(7)
        self.timers.update()
        self.assertEqual((self.timers.delay, self.timers.sound), (3, 3))

    def test_floor_at_zero(self):
        self.timers.delay = 1
        self.timers.sound = 0
        self.clock.advance_ticks(300)
        self.timers.update()
        self.assertEqual((self.timers.delay, self.timers.sound), (0, 0))

    def test_independent_countdown(self):
        self.timers.delay = 2
        self.timers.sound = 5
        self.clock.advance_ticks(3)
        self.timers.update()
        self.assertEqual((self.timers.delay, self.timers.sound), (0, 2))
        self.assertTrue(self.timers.sound_active)

    def test_reset(self):
        self.timers.delay = 9
        self.clock.advance(TICK_NS // 2)
        self.timers.reset()
        self.clock.advance(TICK_NS // 2)
        self.timers.delay = 9
        self.timers.update()
        self.assertEqual(self.timers.delay, 9)


class TestTimerInstructions(unittest.TestCase):
    """Test timer instructions through the machine."""

    def test_set_and_read_delay(self):
        clock = FakeClock()
        # V5 = 5; DT = V5; ST = V5; V6 = DT; V6 = DT
        machine = make_machine([0x6505, 0xF515, 0xF518, 0xF607, 0xF607], clock=clock)
        machine.step()
        machine.step()
        result = machine.step()
        self.assertEqual(machine.delay_timer, 5)
        self.assertEqual(machine.sound_timer, 5)
        self.assertTrue(result.sound)

        machine.step()
        self.assertEqual(machine.v[6], 5)

        clock.advance_ticks(1)
        machine.step()
        self.assertEqual(machine.v[6], 4)
        self.assertEqual(machine.sound_timer, 4)

    def test_sound_reported_only_while_active(self):
        clock = FakeClock()
        machine = make_machine([0x6101, 0xF118, 0x1204], clock=clock)
        self.assertFalse(machine.step().sound)
        self.assertTrue(machine.step().sound)
        clock.advance_ticks(1)
        self.assertFalse(machine.step().sound)

    def test_timers_update_before_execution(self):
        clock = FakeClock()
        machine = make_machine([0x6102, 0xF115, 0xF207], clock=clock)
        machine.step()
        machine.step()
        clock.advance_ticks(1)
        machine.step()
        self.assertEqual(machine.v[2], 1)


if __name__ == '__main__':
    unittest.main()
