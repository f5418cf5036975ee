"""
CHIP-8 CPU core.

The CPU owns memory, registers, the call stack and both timers. It
borrows a Framebuffer for CLS/DRW and a Keypad for key queries. One
``step()`` fetches, decodes and executes a single opcode; the driver
calls ``tick_timers()`` at 60Hz independently of the instruction rate.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .constants import (
    ADDRESS_MASK,
    FLAG,
    FONT_START,
    FONTSET,
    GLYPH_SIZE,
    MAX_ROM_SIZE,
    MEMORY_SIZE,
    NUM_REGISTERS,
    PROGRAM_START,
    STACK_SIZE,
)
from .errors import RomLoadError, StackOverflowError, StackUnderflowError
from .framebuffer import Framebuffer
from .instructions import Instruction, decode
from .keypad import Keypad

logger = logging.getLogger(__name__)


@dataclass
class CPUState:
    """CHIP-8 CPU state container"""
    # Memory
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))

    # Registers
    V: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)  # V0-VF
    I: int = 0              # Index register (12-bit)
    PC: int = PROGRAM_START # Program counter
    SP: int = 0             # Stack pointer

    # Stack
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)

    # Timers (60Hz)
    delay_timer: int = 0
    sound_timer: int = 0

    # Register index waiting on FX0A, None while executing normally
    awaiting_key: Optional[int] = None


class Chip8CPU:
    """CHIP-8 interpreter"""

    def __init__(self, framebuffer: Optional[Framebuffer] = None,
                 keypad: Optional[Keypad] = None,
                 rng: Optional[random.Random] = None):
        self.framebuffer = framebuffer if framebuffer is not None else Framebuffer()
        self.keypad = keypad if keypad is not None else Keypad()
        self.rng = rng if rng is not None else random
        self.state = CPUState()
        self.rom = b''
        self.running = False
        self.paused = False

        self._handlers: Dict[Instruction, Callable[..., None]] = {
            Instruction.SYS_ADDR: self._op_sys,
            Instruction.CLS: self._op_cls,
            Instruction.RET: self._op_ret,
            Instruction.JP_ADDR: self._op_jp,
            Instruction.CALL_ADDR: self._op_call,
            Instruction.SE_VX_NN: self._op_se_vx_nn,
            Instruction.SNE_VX_NN: self._op_sne_vx_nn,
            Instruction.SE_VX_VY: self._op_se_vx_vy,
            Instruction.LD_VX_NN: self._op_ld_vx_nn,
            Instruction.ADD_VX_NN: self._op_add_vx_nn,
            Instruction.LD_VX_VY: self._op_ld_vx_vy,
            Instruction.OR_VX_VY: self._op_or,
            Instruction.AND_VX_VY: self._op_and,
            Instruction.XOR_VX_VY: self._op_xor,
            Instruction.ADD_VX_VY: self._op_add_vx_vy,
            Instruction.SUB_VX_VY: self._op_sub,
            Instruction.SHR_VX: self._op_shr,
            Instruction.SUBN_VX_VY: self._op_subn,
            Instruction.SHL_VX: self._op_shl,
            Instruction.SNE_VX_VY: self._op_sne_vx_vy,
            Instruction.LD_I_ADDR: self._op_ld_i,
            Instruction.JP_V0_ADDR: self._op_jp_v0,
            Instruction.RND_VX_NN: self._op_rnd,
            Instruction.DRW_VX_VY_N: self._op_drw,
            Instruction.SKP_VX: self._op_skp,
            Instruction.SKNP_VX: self._op_sknp,
            Instruction.LD_VX_DT: self._op_ld_vx_dt,
            Instruction.LD_VX_K: self._op_ld_vx_k,
            Instruction.LD_DT_VX: self._op_ld_dt_vx,
            Instruction.LD_ST_VX: self._op_ld_st_vx,
            Instruction.ADD_I_VX: self._op_add_i_vx,
            Instruction.LD_F_VX: self._op_ld_f_vx,
            Instruction.LD_B_VX: self._op_ld_b_vx,
            Instruction.LD_I_VX: self._op_store,
            Instruction.LD_VX_I: self._op_load,
        }

        self._load_fontset()

    def _load_fontset(self):
        """Load built-in font sprites to memory"""
        self.state.memory[FONT_START:FONT_START + len(FONTSET)] = bytes(FONTSET)

    # ─── Lifecycle ───

    def reset(self):
        """Reset CPU to initial state"""
        self.state = CPUState()
        self._load_fontset()
        self.framebuffer.clear()
        self.keypad.clear_presses()
        self.running = False
        self.paused = False

    def load_rom(self, data: bytes):
        """Load ROM data into memory at 0x200"""
        if len(data) > MAX_ROM_SIZE:
            self.running = False
            raise RomLoadError(
                f"ROM is {len(data)} bytes, at most {MAX_ROM_SIZE} fit in memory")

        self.reset()
        self.rom = bytes(data)
        self.state.memory[PROGRAM_START:PROGRAM_START + len(data)] = self.rom
        self.running = True
        logger.info("Loaded %d byte ROM", len(data))

    def restart(self):
        """Reset and reload the last ROM"""
        self.load_rom(self.rom)

    def load_rom_file(self, filepath: str):
        """Load ROM from file"""
        try:
            with open(filepath, 'rb') as f:
                data = f.read()
        except OSError as e:
            self.running = False
            raise RomLoadError(f"Failed to read ROM {filepath}: {e}") from e
        self.load_rom(data)

    # ─── Execution ───

    def fetch(self) -> int:
        """Read the 16-bit opcode at PC without advancing"""
        mem = self.state.memory
        pc = self.state.PC & ADDRESS_MASK
        return (mem[pc] << 8) | mem[(pc + 1) & ADDRESS_MASK]

    def step(self) -> Optional[Instruction]:
        """
        Execute one instruction.

        Returns the executed instruction, or None if the CPU is idle,
        waiting for a key or the opcode was unknown.
        """
        if not self.running or self.paused:
            return None

        if self.state.awaiting_key is not None:
            self._poll_key()
            return None

        opcode = self.fetch()
        instruction, operands = decode(opcode)
        if instruction is None:
            logger.debug("Unknown opcode $%04X at $%03X", opcode, self.state.PC)
            self.state.PC += 2
            return None

        self._handlers[instruction](*operands)
        return instruction

    def tick_timers(self):
        """Decrement timers (call at 60Hz)"""
        if self.state.delay_timer > 0:
            self.state.delay_timer -= 1

        if self.state.sound_timer > 0:
            self.state.sound_timer -= 1

    @property
    def sound_active(self) -> bool:
        return self.state.sound_timer > 0

    def key_down(self, key: int):
        self.keypad.key_down(key)

    def key_up(self, key: int):
        self.keypad.key_up(key)

    def _poll_key(self):
        key = self.keypad.next_press()
        if key is None:
            return
        reg = self.state.awaiting_key
        self.state.V[reg] = key
        self.state.awaiting_key = None
        self.state.PC += 2
        logger.debug("Key %X captured into V%X", key, reg)

    def _skip_if(self, condition: bool):
        self.state.PC += 4 if condition else 2

    # ─── 0NNN / 00E0 / 00EE ───

    def _op_sys(self, addr: int):
        # Machine-code routines are not emulated
        self.state.PC += 2

    def _op_cls(self):
        self.framebuffer.clear()
        self.state.PC += 2

    def _op_ret(self):
        s = self.state
        if s.SP == 0:
            raise StackUnderflowError("RET with empty stack", s.PC)
        s.SP -= 1
        s.PC = s.stack[s.SP]

    # ─── Flow control ───

    def _op_jp(self, addr: int):
        self.state.PC = addr

    def _op_call(self, addr: int):
        s = self.state
        if s.SP >= STACK_SIZE:
            raise StackOverflowError(f"CALL ${addr:03X} exceeds {STACK_SIZE} levels", s.PC)
        s.stack[s.SP] = s.PC + 2
        s.SP += 1
        s.PC = addr

    def _op_jp_v0(self, addr: int):
        self.state.PC = addr + self.state.V[0]

    # ─── Conditional skips ───

    def _op_se_vx_nn(self, x: int, nn: int):
        self._skip_if(self.state.V[x] == nn)

    def _op_sne_vx_nn(self, x: int, nn: int):
        self._skip_if(self.state.V[x] != nn)

    def _op_se_vx_vy(self, x: int, y: int):
        self._skip_if(self.state.V[x] == self.state.V[y])

    def _op_sne_vx_vy(self, x: int, y: int):
        self._skip_if(self.state.V[x] != self.state.V[y])

    def _op_skp(self, x: int):
        self._skip_if(self.keypad.is_pressed(self.state.V[x]))

    def _op_sknp(self, x: int):
        self._skip_if(not self.keypad.is_pressed(self.state.V[x]))

    # ─── Register loads and ALU ───

    def _op_ld_vx_nn(self, x: int, nn: int):
        self.state.V[x] = nn
        self.state.PC += 2

    def _op_add_vx_nn(self, x: int, nn: int):
        V = self.state.V
        V[x] = (V[x] + nn) & 0xFF
        self.state.PC += 2

    def _op_ld_vx_vy(self, x: int, y: int):
        self.state.V[x] = self.state.V[y]
        self.state.PC += 2

    def _op_or(self, x: int, y: int):
        self.state.V[x] |= self.state.V[y]
        self.state.PC += 2

    def _op_and(self, x: int, y: int):
        self.state.V[x] &= self.state.V[y]
        self.state.PC += 2

    def _op_xor(self, x: int, y: int):
        self.state.V[x] ^= self.state.V[y]
        self.state.PC += 2

    # Flag writes come last so VF as an operand still sees its old value
    # and VF as the destination ends up holding the flag.

    def _op_add_vx_vy(self, x: int, y: int):
        V = self.state.V
        result = V[x] + V[y]
        V[x] = result & 0xFF
        V[FLAG] = 1 if result > 0xFF else 0
        self.state.PC += 2

    def _op_sub(self, x: int, y: int):
        V = self.state.V
        no_borrow = V[x] >= V[y]
        V[x] = (V[x] - V[y]) & 0xFF
        V[FLAG] = 1 if no_borrow else 0
        self.state.PC += 2

    def _op_subn(self, x: int, y: int):
        V = self.state.V
        no_borrow = V[y] >= V[x]
        V[x] = (V[y] - V[x]) & 0xFF
        V[FLAG] = 1 if no_borrow else 0
        self.state.PC += 2

    def _op_shr(self, x: int, y: int):
        V = self.state.V
        out = V[x] & 0x1
        V[x] = V[x] >> 1
        V[FLAG] = out
        self.state.PC += 2

    def _op_shl(self, x: int, y: int):
        V = self.state.V
        out = (V[x] >> 7) & 0x1
        V[x] = (V[x] << 1) & 0xFF
        V[FLAG] = out
        self.state.PC += 2

    def _op_rnd(self, x: int, nn: int):
        self.state.V[x] = self.rng.randint(0, 255) & nn
        self.state.PC += 2

    # ─── Index register and memory ───

    def _op_ld_i(self, addr: int):
        self.state.I = addr
        self.state.PC += 2

    def _op_add_i_vx(self, x: int):
        s = self.state
        s.I = (s.I + s.V[x]) & ADDRESS_MASK
        s.PC += 2

    def _op_ld_f_vx(self, x: int):
        s = self.state
        s.I = FONT_START + (s.V[x] & 0xF) * GLYPH_SIZE
        s.PC += 2

    def _op_ld_b_vx(self, x: int):
        s = self.state
        value = s.V[x]
        s.memory[s.I & ADDRESS_MASK] = value // 100
        s.memory[(s.I + 1) & ADDRESS_MASK] = (value // 10) % 10
        s.memory[(s.I + 2) & ADDRESS_MASK] = value % 10
        s.PC += 2

    def _op_store(self, x: int):
        s = self.state
        for i in range(x + 1):
            s.memory[(s.I + i) & ADDRESS_MASK] = s.V[i]
        s.PC += 2

    def _op_load(self, x: int):
        s = self.state
        for i in range(x + 1):
            s.V[i] = s.memory[(s.I + i) & ADDRESS_MASK]
        s.PC += 2

    # ─── Timers and keys ───

    def _op_ld_vx_dt(self, x: int):
        self.state.V[x] = self.state.delay_timer
        self.state.PC += 2

    def _op_ld_dt_vx(self, x: int):
        self.state.delay_timer = self.state.V[x]
        self.state.PC += 2

    def _op_ld_st_vx(self, x: int):
        self.state.sound_timer = self.state.V[x]
        self.state.PC += 2

    def _op_ld_vx_k(self, x: int):
        # PC stays on FX0A until a key arrives, see _poll_key
        self.keypad.clear_presses()
        self.state.awaiting_key = x
        logger.debug("Waiting for key into V%X", x)

    # ─── Display ───

    def _op_drw(self, x: int, y: int, n: int):
        s = self.state
        sprite = bytes(s.memory[(s.I + row) & ADDRESS_MASK] for row in range(n))
        collision = self.framebuffer.draw(s.V[x], s.V[y], sprite)
        s.V[FLAG] = 1 if collision else 0
        s.PC += 2
