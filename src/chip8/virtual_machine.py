"""CHIP-8 Virtual Machine

Driver that paces the Machine and connects it to display, keypad and sound.
"""

import argparse
import logging
import random
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pygame
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .audio import Buzzer
from .display import Display, DisplayInitError, PIXEL_SIZE
from .loader import ProgramLoadError, load_program_file
from .machine import Machine, FATAL_EXCEPTIONS
from .memory import MemoryException
from .timers import Clock


logger = logging.getLogger(__name__)

DEFAULT_SPEED = 500


class VMException(Exception):
    """Base exception for virtual machine driver errors."""
    pass


class MissingProgramError(VMException):
    """No program was given to run."""
    pass


class VirtualMachine:
    """Runs a Machine at a fixed cadence against its collaborators."""

    def __init__(self,
                 speed: float = DEFAULT_SPEED,
                 scale: int = PIXEL_SIZE,
                 enable_display: bool = True,
                 enable_sound: bool = True,
                 seed: Optional[int] = None,
                 title: str = "chip8",
                 clock: Optional[Clock] = None):
        """Initialize virtual machine.

        Args:
            speed: Steps per second; 0 runs unthrottled
            scale: Display pixel-size multiplier
            enable_display: Whether to open a pygame window for output and input
            enable_sound: Whether to ring the bell while the sound timer runs
            seed: Seed for the random instruction
            title: Window caption
            clock: Nanosecond clock for the timers
        """
        self.machine = Machine(clock=clock, rng=random.Random(seed))
        self.display = Display(scale=scale, title=title) if enable_display else None
        self.buzzer = Buzzer() if enable_sound else None

        self.speed = speed
        self.running = False
        self.cycle_count = 0
        self.stop_reason: Optional[str] = None

    def load_program(self, filename: Union[str, Path]) -> None:
        """Load a program image from disk into memory at 0x200."""
        self.load_program_bytes(load_program_file(filename))

    def load_program_bytes(self, program: bytes) -> None:
        """Load a program image into memory at 0x200.

        Raises:
            ProgramLoadError: If the program runs past the end of memory
        """
        try:
            self.machine.load(program)
        except MemoryException as e:
            raise ProgramLoadError(f"Program of {len(program)} bytes does not fit in memory: {e}")

    def start(self, max_cycles: Optional[int] = None) -> None:
        """Run until quit, max_cycles, or a fatal machine error.

        Args:
            max_cycles: Maximum steps to execute (None for unlimited)

        Raises:
            DisplayInitError: If the display cannot be opened
            CPUException: On a fatal machine error
        """
        if self.running:
            return

        if self.display and not self.display.pygame_initialized:
            self.display.initialize_display()

        self.running = True
        self.stop_reason = None
        logger.debug("Starting execution at %s steps/s", self.speed or "unlimited")
        try:
            self._execution_loop(max_cycles)
        except FATAL_EXCEPTIONS as e:
            self.stop_reason = f"Execution error: {e}"
            raise
        finally:
            self.running = False
            logger.debug("Stopped after %d cycles: %s", self.cycle_count, self.stop_reason)

    def stop(self) -> None:
        """Ask the execution loop to finish after the current step."""
        if self.running:
            self.running = False
            self.stop_reason = "Stopped"

    def _execution_loop(self, max_cycles: Optional[int]) -> None:
        """Step, render, poll; sleep out the rest of each period."""
        period = 1.0 / self.speed if self.speed else 0.0
        deadline = time.perf_counter()

        while self.running:
            if max_cycles is not None and self.cycle_count >= max_cycles:
                self.stop_reason = "Max cycles reached"
                break

            keys = self.display.pressed_keys() if self.display else frozenset()
            result = self.machine.step(keys)
            self.cycle_count += 1

            if result.draw and self.display:
                self.display.render(self.machine.framebuffer)
            if self.buzzer:
                self.buzzer.update(result.sound)

            if self.display and not self.display.poll_events():
                self.stop_reason = "Quit"
                break

            if period:
                # Deadlines advance from the period start so sleeps do not drift
                deadline += period
                remaining = deadline - time.perf_counter()
                if remaining > 0:
                    time.sleep(remaining)
                else:
                    deadline = time.perf_counter()

    def get_state(self) -> Dict[str, Any]:
        """Get driver and machine state."""
        return {
            'vm': {
                'running': self.running,
                'cycle_count': self.cycle_count,
                'stop_reason': self.stop_reason,
            },
            'machine': self.machine.get_state(),
        }

    def shutdown(self) -> None:
        """Shutdown the virtual machine."""
        self.stop()

        if self.display:
            self.display.shutdown_display()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()


def create_vm(config: Optional[Dict[str, Any]] = None) -> VirtualMachine:
    """Create a virtual machine with optional configuration.

    Args:
        config: Optional configuration dictionary

    Returns:
        Configured VirtualMachine instance
    """
    if config is None:
        config = {}

    return VirtualMachine(
        speed=config.get('speed', DEFAULT_SPEED),
        scale=config.get('scale', PIXEL_SIZE),
        enable_display=config.get('enable_display', True),
        enable_sound=config.get('enable_sound', True),
        seed=config.get('seed'),
        title=config.get('title', "chip8"),
        clock=config.get('clock'),
    )


def state_table(state: Dict[str, Any]) -> Table:
    """Render a machine state snapshot as a rich table."""
    table = Table(title="Machine state", show_header=False)
    table.add_column("Register", style="bold")
    table.add_column("Value")
    table.add_row("PC", f"0x{state['pc']:04X}")
    table.add_row("I", f"0x{state['i']:04X}")
    table.add_row("DT / ST", f"{state['dt']} / {state['st']}")
    table.add_row("Stack", ' '.join(f"0x{addr:03X}" for addr in state['stack']) or "-")
    for reg, value in enumerate(state['v']):
        table.add_row(f"V{reg:X}", f"0x{value:02X}")
    return table


def memory_table(dump: Dict[int, int], width: int = 8) -> Table:
    """Render a memory dump as rows of ``width`` bytes."""
    table = Table(title="Memory", show_header=False)
    table.add_column("Address", style="bold")
    table.add_column("Bytes")
    addresses = sorted(dump)
    for offset in range(0, len(addresses), width):
        row = addresses[offset:offset + width]
        table.add_row(f"0x{row[0]:03X}", ' '.join(f"{dump[addr]:02X}" for addr in row))
    return table


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the interpreter."""
    parser = argparse.ArgumentParser(prog='chip8', description='CHIP-8 Interpreter')
    parser.add_argument('program', nargs='?', help='Program image to run')
    parser.add_argument('--scale', type=int, default=PIXEL_SIZE, help='Display scale factor')
    parser.add_argument('--speed', type=float, default=DEFAULT_SPEED,
                        help='Steps per second (0 for unthrottled)')
    parser.add_argument('--headless', action='store_true', help='Run without display or keypad')
    parser.add_argument('--mute', action='store_true', help='Do not ring the bell')
    parser.add_argument('--max-cycles', type=int, default=None, help='Stop after N steps')
    parser.add_argument('--seed', type=int, default=None, help='Random number seed')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    args = parser.parse_args(argv)
    console = Console(stderr=True)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    vm: Optional[VirtualMachine] = None
    try:
        if not args.program:
            raise MissingProgramError("Missing program argument. Usage: chip8 program.ch8")

        config = {
            'speed': args.speed,
            'scale': args.scale,
            'enable_display': not args.headless,
            'enable_sound': not args.mute,
            'seed': args.seed,
            'title': Path(args.program).name,
        }
        vm = create_vm(config)
        with vm:
            vm.load_program(args.program)
            vm.start(max_cycles=args.max_cycles)

    except KeyboardInterrupt:
        console.print("\nInterrupted by user")
        return 0
    except FATAL_EXCEPTIONS as e:
        state = vm.machine.get_state()
        console.print(f"[red]Execution error:[/red] {escape(str(e))}")
        console.print(state_table(state))
        console.print(memory_table(vm.machine.memory.dump(max(0, state['pc'] - 8), 16)))
        return 1
    except (VMException, ProgramLoadError, DisplayInitError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    except pygame.error as e:
        console.print(f"[red]Display error:[/red] {escape(str(e))}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
