"""Cat's CHIP-8 emulator - "Meow Machine" edition."""

from .cpu import Chip8CPU, CPUState
from .errors import (
    Chip8Error,
    RomLoadError,
    StackError,
    StackOverflowError,
    StackUnderflowError,
)
from .framebuffer import Framebuffer
from .instructions import Instruction, decode, disassemble, disassemble_program
from .keypad import Keypad

__version__ = "0.2.0"

__all__ = [
    "Chip8CPU",
    "CPUState",
    "Chip8Error",
    "RomLoadError",
    "StackError",
    "StackOverflowError",
    "StackUnderflowError",
    "Framebuffer",
    "Instruction",
    "decode",
    "disassemble",
    "disassemble_program",
    "Keypad",
]
