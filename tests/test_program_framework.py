"""
Program execution test framework for CHIP-8 instructions.

Tests instruction execution by running small programs and checking machine state.
"""

import unittest
import random
import sys
import os
from typing import Callable, Dict, Iterable, List, Any, Optional

# Add src to path to import the interpreter package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from chip8.machine import Machine
from chip8.timers import TICK_NS


class FakeClock:
    """Controllable nanosecond clock for timer tests."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ns: int) -> None:
        self.now += ns

    def advance_ticks(self, ticks: int) -> None:
        self.now += ticks * TICK_NS


def assemble(words: Iterable[int]) -> bytes:
    """Pack 16-bit instruction words big-endian."""
    data = bytearray()
    for word in words:
        data.append((word >> 8) & 0xFF)
        data.append(word & 0xFF)
    return bytes(data)


def make_machine(words: Iterable[int] = (), clock: Optional[FakeClock] = None,
                 seed: int = 0) -> Machine:
    """Create a machine with a fake clock and the given program loaded."""
    machine = Machine(clock=clock or FakeClock(), rng=random.Random(seed))
    machine.load(assemble(words))
    return machine


class ProgramTestCase:
    """Represents a single program test case."""

    def __init__(self, name: str, program: List[int], expected_registers: Dict[int, int],
                 expected_memory: Dict[int, int] = None, steps: int = None,
                 setup: Callable[[Machine], None] = None,
                 expected_i: int = None, expected_pc: int = None):
        self.name = name
        self.program = program
        self.expected_registers = expected_registers
        self.expected_memory = expected_memory or {}
        self.steps = len(program) if steps is None else steps
        self.setup = setup
        self.expected_i = expected_i
        self.expected_pc = expected_pc


def run_program_test(test_case: ProgramTestCase) -> Dict[str, Any]:
    """Run a program test case and return results."""
    machine = make_machine(test_case.program)
    if test_case.setup:
        test_case.setup(machine)

    results = {
        'success': True,
        'registers': None,
        'errors': []
    }

    try:
        for _ in range(test_case.steps):
            machine.step()
    except Exception as e:
        results['success'] = False
        results['error'] = f"{type(e).__name__}: {e}"
        results['errors'].append(results['error'])
        return results

    results['registers'] = machine.v.copy()

    for reg_id, expected_value in test_case.expected_registers.items():
        actual_value = machine.v[reg_id]
        if actual_value != expected_value:
            results['errors'].append(
                f"Register V{reg_id:X}: expected 0x{expected_value:02X}, got 0x{actual_value:02X}"
            )

    for addr, expected_value in test_case.expected_memory.items():
        actual_value = machine.memory.read(addr)
        if actual_value != expected_value:
            results['errors'].append(
                f"Memory[0x{addr:03X}]: expected 0x{expected_value:02X}, got 0x{actual_value:02X}"
            )

    if test_case.expected_i is not None and machine.i != test_case.expected_i:
        results['errors'].append(f"I: expected 0x{test_case.expected_i:04X}, got 0x{machine.i:04X}")

    if test_case.expected_pc is not None and machine.pc != test_case.expected_pc:
        results['errors'].append(f"PC: expected 0x{test_case.expected_pc:04X}, got 0x{machine.pc:04X}")

    if results['errors']:
        results['success'] = False

    return results


class BaseProgramTestCase(unittest.TestCase):
    """Base class for instruction tests."""

    def run_test_cases(self, test_cases: List[ProgramTestCase]):
        """Run a list of test cases."""
        for test_case in test_cases:
            with self.subTest(test_case.name):
                results = run_program_test(test_case)

                if not results['success']:
                    error_msg = f"Test '{test_case.name}' failed:\n"
                    for error in results.get('errors', []):
                        error_msg += f"  - {error}\n"
                    self.fail(error_msg)


if __name__ == '__main__':
    # Test the framework with a simple case
    test = ProgramTestCase(
        "simple_load",
        [0x602A],
        {0: 0x2A}
    )

    results = run_program_test(test)
    print(f"Test results: {results}")
