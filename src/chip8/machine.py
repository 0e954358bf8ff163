"""CHIP-8 Machine

Owns all virtual machine state and executes one instruction per step.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .framebuffer import Framebuffer
from .instructions import Instruction, InvalidInstructionException, decode
from .memory import Memory, InvalidAddressException, PROGRAM_START
from .timers import Timers, Clock


logger = logging.getLogger(__name__)

NUM_REGISTERS = 16
FLAG_REGISTER = 0xF
NUM_KEYS = 16


class CPUException(Exception):
    """Base exception for fatal machine conditions."""
    pass


class StackUnderflowException(CPUException):
    """Return executed with an empty call stack."""
    pass


class MemoryAccessException(CPUException):
    """Index-relative or fetch access outside memory."""

    def __init__(self, address: int, message: str):
        self.address = address
        super().__init__(message)


class MachineHaltedException(CPUException):
    """Step requested after the machine halted on a fatal error."""
    pass


# Decode failures are raised by the decoder and are fatal as well
FATAL_EXCEPTIONS = (CPUException, InvalidInstructionException)


class MachineState(Enum):
    """Machine execution states."""
    RUNNING = "running"
    ERROR = "error"


@dataclass
class StepResult:
    """Outcome of a single step."""
    draw: bool = False
    sound: bool = False


class Machine:
    """CHIP-8 virtual machine."""

    def __init__(self, clock: Optional[Clock] = None, rng: Optional[random.Random] = None):
        """Initialize machine state.

        Args:
            clock: Monotonic nanosecond clock driving the timers
            rng: Random source for the RND instruction
        """
        self.memory = Memory()
        self.framebuffer = Framebuffer()
        self.timers = Timers(clock)
        self.rng = rng or random.Random()

        # V0-VF, index register and program counter
        self.v = [0] * NUM_REGISTERS
        self.i = 0
        self.pc = PROGRAM_START
        self.stack: List[int] = []

        # Pressed keypad codes this step and the step before
        self.keys: FrozenSet[int] = frozenset()
        self.old_keys: FrozenSet[int] = frozenset()

        self.state = MachineState.RUNNING
        self.halt_reason: Optional[str] = None
        self.instruction_count = 0

        # Set by instructions that change the framebuffer
        self._draw_pending = False

        self.instruction_handlers = {
            'SYS': self._exec_sys,
            'CLS': self._exec_cls,
            'RET': self._exec_ret,
            'JP': self._exec_jp,
            'CALL': self._exec_call,
            'SE_BYTE': self._exec_se_byte,
            'SNE_BYTE': self._exec_sne_byte,
            'SE_REG': self._exec_se_reg,
            'SNE_REG': self._exec_sne_reg,
            'LD_BYTE': self._exec_ld_byte,
            'ADD_BYTE': self._exec_add_byte,
            'LD_REG': self._exec_ld_reg,
            'OR': self._exec_or,
            'AND': self._exec_and,
            'XOR': self._exec_xor,
            'ADD_REG': self._exec_add_reg,
            'SUB': self._exec_sub,
            'SHR': self._exec_shr,
            'SUBN': self._exec_subn,
            'SHL': self._exec_shl,
            'LD_I': self._exec_ld_i,
            'JP_V0': self._exec_jp_v0,
            'RND': self._exec_rnd,
            'DRW': self._exec_drw,
            'SKP': self._exec_skp,
            'SKNP': self._exec_sknp,
            'LD_V_DT': self._exec_ld_v_dt,
            'LD_V_K': self._exec_ld_v_k,
            'LD_DT_V': self._exec_ld_dt_v,
            'LD_ST_V': self._exec_ld_st_v,
            'ADD_I': self._exec_add_i,
            'LD_F': self._exec_ld_f,
            'LD_B': self._exec_ld_b,
            'LD_I_V': self._exec_ld_i_v,
            'LD_V_I': self._exec_ld_v_i,
        }

    def load(self, program: bytes) -> None:
        """Copy a program into memory at 0x200."""
        self.memory.load_program(program)

    def reset(self) -> None:
        """Restore power-on state, keeping the loaded program."""
        self.v = [0] * NUM_REGISTERS
        self.i = 0
        self.pc = PROGRAM_START
        self.stack = []
        self.keys = frozenset()
        self.old_keys = frozenset()
        self.framebuffer.clear()
        self.timers.reset()
        self.state = MachineState.RUNNING
        self.halt_reason = None
        self.instruction_count = 0
        self._draw_pending = False

    @property
    def delay_timer(self) -> int:
        return self.timers.delay

    @property
    def sound_timer(self) -> int:
        return self.timers.sound

    def step(self, pressed_keys: Iterable[int] = ()) -> StepResult:
        """Execute one instruction.

        Args:
            pressed_keys: Keypad codes (0x0-0xF) currently held down

        Returns:
            StepResult reporting a pending redraw and active sound

        Raises:
            CPUException: On stack underflow, addressing faults, or when
                the machine has already halted
            DecodeError: When the fetched word is not a valid opcode
        """
        if self.state != MachineState.RUNNING:
            raise MachineHaltedException(f"Machine halted: {self.halt_reason}")

        try:
            self.timers.update()

            self.old_keys = self.keys
            self.keys = frozenset(pressed_keys)

            instruction = self._fetch()
            self._draw_pending = False
            self._execute_instruction(instruction)
            self.instruction_count += 1

            return StepResult(draw=self._draw_pending, sound=self.timers.sound_active)
        except FATAL_EXCEPTIONS as e:
            self.state = MachineState.ERROR
            self.halt_reason = str(e)
            logger.debug("Machine halted at PC=0x%03X: %s", self.pc, e)
            raise

    def _fetch(self) -> Instruction:
        """Fetch and decode the word at PC, advancing PC past it."""
        address = self.pc
        try:
            word = self.memory.read_word(address)
        except InvalidAddressException as e:
            raise MemoryAccessException(
                e.address, f"Instruction fetch out of range at PC=0x{address:04X}")
        self.pc = address + 2
        return decode(word, address)

    def _execute_instruction(self, instruction: Instruction) -> None:
        handler = self.instruction_handlers.get(instruction.opcode)
        if not handler:
            raise InvalidInstructionException(f"Unknown instruction: {instruction.opcode}")
        handler(*instruction.operands)

    # Helpers

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.pc += 2

    def _set_flag_then_result(self, x: int, flag: int, result: int) -> None:
        """Write VF first and Vx second, so Vx == VF keeps the result."""
        self.v[FLAG_REGISTER] = flag
        self.v[x] = result & 0xFF

    def _index_range(self, count: int, what: str) -> None:
        """Fault unless memory[I..I+count) is addressable."""
        try:
            self.memory.check_range(self.i, count)
        except InvalidAddressException as e:
            raise MemoryAccessException(
                e.address,
                f"{what} out of range: I=0x{self.i:04X}, {count} byte(s)")

    # Instruction implementations

    def _exec_sys(self, addr: int) -> None:
        """0nnn - machine code routine, ignored"""
        pass

    def _exec_cls(self) -> None:
        """00E0 - clear the display"""
        self.framebuffer.clear()
        self._draw_pending = True

    def _exec_ret(self) -> None:
        """00EE - return from subroutine"""
        if not self.stack:
            raise StackUnderflowException(
                f"Stack underflow: return with empty stack at 0x{self.pc - 2:03X}")
        self.pc = self.stack.pop()

    def _exec_jp(self, addr: int) -> None:
        """1nnn - jump to nnn"""
        self.pc = addr

    def _exec_call(self, addr: int) -> None:
        """2nnn - call subroutine at nnn"""
        self.stack.append(self.pc)
        self.pc = addr

    def _exec_se_byte(self, x: int, byte: int) -> None:
        """3xnn - skip if Vx == nn"""
        self._skip_if(self.v[x] == byte)

    def _exec_sne_byte(self, x: int, byte: int) -> None:
        """4xnn - skip if Vx != nn"""
        self._skip_if(self.v[x] != byte)

    def _exec_se_reg(self, x: int, y: int) -> None:
        """5xy0 - skip if Vx == Vy"""
        self._skip_if(self.v[x] == self.v[y])

    def _exec_sne_reg(self, x: int, y: int) -> None:
        """9xy0 - skip if Vx != Vy"""
        self._skip_if(self.v[x] != self.v[y])

    def _exec_ld_byte(self, x: int, byte: int) -> None:
        """6xnn - Vx = nn"""
        self.v[x] = byte

    def _exec_add_byte(self, x: int, byte: int) -> None:
        """7xnn - Vx += nn, wrapping, VF untouched"""
        self.v[x] = (self.v[x] + byte) & 0xFF

    def _exec_ld_reg(self, x: int, y: int) -> None:
        """8xy0 - Vx = Vy"""
        self.v[x] = self.v[y]

    def _exec_or(self, x: int, y: int) -> None:
        """8xy1 - Vx |= Vy"""
        self.v[x] |= self.v[y]

    def _exec_and(self, x: int, y: int) -> None:
        """8xy2 - Vx &= Vy"""
        self.v[x] &= self.v[y]

    def _exec_xor(self, x: int, y: int) -> None:
        """8xy3 - Vx ^= Vy"""
        self.v[x] ^= self.v[y]

    def _exec_add_reg(self, x: int, y: int) -> None:
        """8xy4 - Vx += Vy, VF = carry"""
        a, b = self.v[x], self.v[y]
        total = a + b
        self._set_flag_then_result(x, 1 if total > 0xFF else 0, total)

    def _exec_sub(self, x: int, y: int) -> None:
        """8xy5 - Vx -= Vy, VF = not borrow"""
        a, b = self.v[x], self.v[y]
        self._set_flag_then_result(x, 1 if a >= b else 0, a - b)

    def _exec_shr(self, x: int) -> None:
        """8xy6 - Vx >>= 1, VF = bit shifted out"""
        a = self.v[x]
        self._set_flag_then_result(x, a & 0x01, a >> 1)

    def _exec_subn(self, x: int, y: int) -> None:
        """8xy7 - Vx = Vy - Vx, VF = not borrow"""
        a, b = self.v[x], self.v[y]
        self._set_flag_then_result(x, 1 if b >= a else 0, b - a)

    def _exec_shl(self, x: int) -> None:
        """8xyE - Vx <<= 1, VF = bit shifted out"""
        a = self.v[x]
        self._set_flag_then_result(x, (a & 0x80) >> 7, a << 1)

    def _exec_ld_i(self, addr: int) -> None:
        """Annn - I = nnn"""
        self.i = addr

    def _exec_jp_v0(self, addr: int) -> None:
        """Bnnn - jump to V0 + nnn"""
        self.pc = self.v[0] + addr

    def _exec_rnd(self, x: int, mask: int) -> None:
        """Cxnn - Vx = random byte & nn"""
        self.v[x] = self.rng.randrange(256) & mask

    def _exec_drw(self, x: int, y: int, n: int) -> None:
        """Dxyn - draw n-byte sprite from memory[I] at (Vx, Vy), VF = collision"""
        self._index_range(n, "Sprite read")
        sprite = self.memory.read_block(self.i, n)
        collision = self.framebuffer.draw_sprite(self.v[x], self.v[y], sprite)
        self.v[FLAG_REGISTER] = 1 if collision else 0
        self._draw_pending = True

    def _exec_skp(self, x: int) -> None:
        """Ex9E - skip if key Vx is pressed"""
        code = self.v[x]
        self._skip_if(code < NUM_KEYS and code in self.keys)

    def _exec_sknp(self, x: int) -> None:
        """ExA1 - skip if key Vx is not pressed"""
        code = self.v[x]
        self._skip_if(code >= NUM_KEYS or code not in self.keys)

    def _exec_ld_v_dt(self, x: int) -> None:
        """Fx07 - Vx = DT"""
        self.v[x] = self.timers.delay

    def _exec_ld_v_k(self, x: int) -> None:
        """Fx0A - wait for a key press, store its code in Vx

        Without a new key edge the PC is rewound so this instruction runs
        again on the next step.
        """
        new_keys = [code for code in self.keys - self.old_keys if code < NUM_KEYS]
        if new_keys:
            self.v[x] = min(new_keys)
        else:
            self.pc -= 2

    def _exec_ld_dt_v(self, x: int) -> None:
        """Fx15 - DT = Vx"""
        self.timers.delay = self.v[x]

    def _exec_ld_st_v(self, x: int) -> None:
        """Fx18 - ST = Vx"""
        self.timers.sound = self.v[x]

    def _exec_add_i(self, x: int) -> None:
        """Fx1E - I += Vx"""
        self.i = (self.i + self.v[x]) & 0xFFFF

    def _exec_ld_f(self, x: int) -> None:
        """Fx29 - I = address of font glyph for (Vx mod 10)"""
        self.i = self.memory.font_address(self.v[x] % 10)

    def _exec_ld_b(self, x: int) -> None:
        """Fx33 - store BCD of Vx at I, I+1, I+2"""
        self._index_range(3, "BCD store")
        value = self.v[x]
        self.memory.write_block(self.i, [value // 100, value // 10 % 10, value % 10])

    def _exec_ld_i_v(self, x: int) -> None:
        """Fx55 - store V0..Vx at memory[I..I+x]"""
        self._index_range(x + 1, "Register dump")
        self.memory.write_block(self.i, self.v[:x + 1])

    def _exec_ld_v_i(self, x: int) -> None:
        """Fx65 - load V0..Vx from memory[I..I+x]"""
        self._index_range(x + 1, "Register load")
        self.v[:x + 1] = list(self.memory.read_block(self.i, x + 1))

    def get_state(self) -> Dict[str, Any]:
        """Get machine state for error reports."""
        return {
            'pc': self.pc,
            'i': self.i,
            'v': self.v.copy(),
            'stack': self.stack.copy(),
            'dt': self.timers.delay,
            'st': self.timers.sound,
            'state': self.state.value,
            'halt_reason': self.halt_reason,
            'instruction_count': self.instruction_count,
        }
