#!/usr/bin/env python3
"""CHIP-8 Interpreter Runner Script

This script sets up the Python path and runs the interpreter.

Usage:
    python chip8_vm.py <program.ch8> [--scale N] [--speed HZ] [--headless] [--mute]
                                     [--max-cycles N] [--seed N] [--verbose]

Flags:
    --scale N       Display scale factor (default: 15)
    --speed HZ      Steps per second (default: 500, 0 for unthrottled)
    --headless      Run without a graphical display or keypad
    --mute          Do not ring the bell while the sound timer runs
    --max-cycles N  Stop after N steps
    --seed N        Seed for the random instruction
    --verbose       Enable debug logging
"""

import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / 'src'))

from chip8.virtual_machine import main

if __name__ == '__main__':
    sys.exit(main())
