"""CHIP-8 Keypad Mapping

Bidirectional table between host keyboard keys and the 16 keypad codes.

Keypad layout and its host keys:

    1 2 3 C        1 2 3 4
    4 5 6 D   <->  Q W E R
    7 8 9 E        A S D F
    A 0 B F        Z X C V
"""

from typing import Dict, FrozenSet, Optional, Sequence

import pygame


KEYPAD_LAYOUT = [
    [0x1, 0x2, 0x3, 0xC],
    [0x4, 0x5, 0x6, 0xD],
    [0x7, 0x8, 0x9, 0xE],
    [0xA, 0x0, 0xB, 0xF],
]

HOST_LAYOUT = [
    [pygame.K_1, pygame.K_2, pygame.K_3, pygame.K_4],
    [pygame.K_q, pygame.K_w, pygame.K_e, pygame.K_r],
    [pygame.K_a, pygame.K_s, pygame.K_d, pygame.K_f],
    [pygame.K_z, pygame.K_x, pygame.K_c, pygame.K_v],
]

KEY_TO_CODE: Dict[int, int] = {
    host_key: code
    for host_row, code_row in zip(HOST_LAYOUT, KEYPAD_LAYOUT)
    for host_key, code in zip(host_row, code_row)
}

CODE_TO_KEY: Dict[int, int] = {code: key for key, code in KEY_TO_CODE.items()}


def key_to_code(key: int) -> Optional[int]:
    """Keypad code for a host key, or None if the key is not mapped."""
    return KEY_TO_CODE.get(key)


def code_to_key(code: int) -> Optional[int]:
    """Host key for a keypad code, or None outside 0x0-0xF."""
    return CODE_TO_KEY.get(code)


def pressed_codes(key_state: Sequence[bool]) -> FrozenSet[int]:
    """Convert a pygame ``key.get_pressed()`` state into keypad codes."""
    return frozenset(code for key, code in KEY_TO_CODE.items() if key_state[key])
