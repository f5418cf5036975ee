"""
Instruction table, decoder and disassembler.

Every CHIP-8 opcode is a 16-bit big-endian word. An entry of the table
matches an opcode when ``opcode & mask == pattern``; its operand
extractors then pull the fields out as ``(opcode & mask) >> shift``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .constants import PROGRAM_START


class Instruction(Enum):
    """The 35 canonical CHIP-8 instructions"""
    SYS_ADDR = 'SYS addr'
    CLS = 'CLS'
    RET = 'RET'
    JP_ADDR = 'JP addr'
    CALL_ADDR = 'CALL addr'
    SE_VX_NN = 'SE Vx, byte'
    SNE_VX_NN = 'SNE Vx, byte'
    SE_VX_VY = 'SE Vx, Vy'
    LD_VX_NN = 'LD Vx, byte'
    ADD_VX_NN = 'ADD Vx, byte'
    LD_VX_VY = 'LD Vx, Vy'
    OR_VX_VY = 'OR Vx, Vy'
    AND_VX_VY = 'AND Vx, Vy'
    XOR_VX_VY = 'XOR Vx, Vy'
    ADD_VX_VY = 'ADD Vx, Vy'
    SUB_VX_VY = 'SUB Vx, Vy'
    SHR_VX = 'SHR Vx'
    SUBN_VX_VY = 'SUBN Vx, Vy'
    SHL_VX = 'SHL Vx'
    SNE_VX_VY = 'SNE Vx, Vy'
    LD_I_ADDR = 'LD I, addr'
    JP_V0_ADDR = 'JP V0, addr'
    RND_VX_NN = 'RND Vx, byte'
    DRW_VX_VY_N = 'DRW Vx, Vy, nibble'
    SKP_VX = 'SKP Vx'
    SKNP_VX = 'SKNP Vx'
    LD_VX_DT = 'LD Vx, DT'
    LD_VX_K = 'LD Vx, K'
    LD_DT_VX = 'LD DT, Vx'
    LD_ST_VX = 'LD ST, Vx'
    ADD_I_VX = 'ADD I, Vx'
    LD_F_VX = 'LD F, Vx'
    LD_B_VX = 'LD B, Vx'
    LD_I_VX = 'LD [I], Vx'
    LD_VX_I = 'LD Vx, [I]'


@dataclass(frozen=True)
class Operand:
    """Bit field of an opcode"""
    mask: int
    shift: int

    def extract(self, opcode: int) -> int:
        return (opcode & self.mask) >> self.shift


@dataclass(frozen=True)
class TableEntry:
    instruction: Instruction
    mask: int
    pattern: int
    operands: Tuple[Operand, ...] = ()

    def matches(self, opcode: int) -> bool:
        return (opcode & self.mask) == self.pattern


X = Operand(0x0F00, 8)      # 4-bit register index
Y = Operand(0x00F0, 4)      # 4-bit register index
N = Operand(0x000F, 0)      # 4-bit constant
NN = Operand(0x00FF, 0)     # 8-bit constant
NNN = Operand(0x0FFF, 0)    # 12-bit address

ins = Instruction

# Scanned in order. 00E0/00EE must precede the 0NNN catch-all.
INSTRUCTION_TABLE: Tuple[TableEntry, ...] = (
    TableEntry(ins.CLS,         0xFFFF, 0x00E0),
    TableEntry(ins.RET,         0xFFFF, 0x00EE),
    TableEntry(ins.SYS_ADDR,    0xF000, 0x0000, (NNN,)),
    TableEntry(ins.JP_ADDR,     0xF000, 0x1000, (NNN,)),
    TableEntry(ins.CALL_ADDR,   0xF000, 0x2000, (NNN,)),
    TableEntry(ins.SE_VX_NN,    0xF000, 0x3000, (X, NN)),
    TableEntry(ins.SNE_VX_NN,   0xF000, 0x4000, (X, NN)),
    TableEntry(ins.SE_VX_VY,    0xF00F, 0x5000, (X, Y)),
    TableEntry(ins.LD_VX_NN,    0xF000, 0x6000, (X, NN)),
    TableEntry(ins.ADD_VX_NN,   0xF000, 0x7000, (X, NN)),
    TableEntry(ins.LD_VX_VY,    0xF00F, 0x8000, (X, Y)),
    TableEntry(ins.OR_VX_VY,    0xF00F, 0x8001, (X, Y)),
    TableEntry(ins.AND_VX_VY,   0xF00F, 0x8002, (X, Y)),
    TableEntry(ins.XOR_VX_VY,   0xF00F, 0x8003, (X, Y)),
    TableEntry(ins.ADD_VX_VY,   0xF00F, 0x8004, (X, Y)),
    TableEntry(ins.SUB_VX_VY,   0xF00F, 0x8005, (X, Y)),
    TableEntry(ins.SHR_VX,      0xF00F, 0x8006, (X, Y)),
    TableEntry(ins.SUBN_VX_VY,  0xF00F, 0x8007, (X, Y)),
    TableEntry(ins.SHL_VX,      0xF00F, 0x800E, (X, Y)),
    TableEntry(ins.SNE_VX_VY,   0xF00F, 0x9000, (X, Y)),
    TableEntry(ins.LD_I_ADDR,   0xF000, 0xA000, (NNN,)),
    TableEntry(ins.JP_V0_ADDR,  0xF000, 0xB000, (NNN,)),
    TableEntry(ins.RND_VX_NN,   0xF000, 0xC000, (X, NN)),
    TableEntry(ins.DRW_VX_VY_N, 0xF000, 0xD000, (X, Y, N)),
    TableEntry(ins.SKP_VX,      0xF0FF, 0xE09E, (X,)),
    TableEntry(ins.SKNP_VX,     0xF0FF, 0xE0A1, (X,)),
    TableEntry(ins.LD_VX_DT,    0xF0FF, 0xF007, (X,)),
    TableEntry(ins.LD_VX_K,     0xF0FF, 0xF00A, (X,)),
    TableEntry(ins.LD_DT_VX,    0xF0FF, 0xF015, (X,)),
    TableEntry(ins.LD_ST_VX,    0xF0FF, 0xF018, (X,)),
    TableEntry(ins.ADD_I_VX,    0xF0FF, 0xF01E, (X,)),
    TableEntry(ins.LD_F_VX,     0xF0FF, 0xF029, (X,)),
    TableEntry(ins.LD_B_VX,     0xF0FF, 0xF033, (X,)),
    TableEntry(ins.LD_I_VX,     0xF0FF, 0xF055, (X,)),
    TableEntry(ins.LD_VX_I,     0xF0FF, 0xF065, (X,)),
)

del ins


def decode(opcode: int) -> Tuple[Optional[Instruction], List[int]]:
    """
    Decode a raw opcode

    Returns:
        (instruction, operands), or (None, []) when nothing matches
    """
    for entry in INSTRUCTION_TABLE:
        if entry.matches(opcode):
            return entry.instruction, [op.extract(opcode) for op in entry.operands]
    return None, []


# ═══════════════════════════════════════════════════════════════════════════════
# DISASSEMBLER
# ═══════════════════════════════════════════════════════════════════════════════

_MNEMONICS = {
    Instruction.SYS_ADDR: "SYS ${0:03X}",
    Instruction.CLS: "CLS",
    Instruction.RET: "RET",
    Instruction.JP_ADDR: "JP ${0:03X}",
    Instruction.CALL_ADDR: "CALL ${0:03X}",
    Instruction.SE_VX_NN: "SE V{0:X}, ${1:02X}",
    Instruction.SNE_VX_NN: "SNE V{0:X}, ${1:02X}",
    Instruction.SE_VX_VY: "SE V{0:X}, V{1:X}",
    Instruction.LD_VX_NN: "LD V{0:X}, ${1:02X}",
    Instruction.ADD_VX_NN: "ADD V{0:X}, ${1:02X}",
    Instruction.LD_VX_VY: "LD V{0:X}, V{1:X}",
    Instruction.OR_VX_VY: "OR V{0:X}, V{1:X}",
    Instruction.AND_VX_VY: "AND V{0:X}, V{1:X}",
    Instruction.XOR_VX_VY: "XOR V{0:X}, V{1:X}",
    Instruction.ADD_VX_VY: "ADD V{0:X}, V{1:X}",
    Instruction.SUB_VX_VY: "SUB V{0:X}, V{1:X}",
    Instruction.SHR_VX: "SHR V{0:X}",
    Instruction.SUBN_VX_VY: "SUBN V{0:X}, V{1:X}",
    Instruction.SHL_VX: "SHL V{0:X}",
    Instruction.SNE_VX_VY: "SNE V{0:X}, V{1:X}",
    Instruction.LD_I_ADDR: "LD I, ${0:03X}",
    Instruction.JP_V0_ADDR: "JP V0, ${0:03X}",
    Instruction.RND_VX_NN: "RND V{0:X}, ${1:02X}",
    Instruction.DRW_VX_VY_N: "DRW V{0:X}, V{1:X}, {2}",
    Instruction.SKP_VX: "SKP V{0:X}",
    Instruction.SKNP_VX: "SKNP V{0:X}",
    Instruction.LD_VX_DT: "LD V{0:X}, DT",
    Instruction.LD_VX_K: "LD V{0:X}, K",
    Instruction.LD_DT_VX: "LD DT, V{0:X}",
    Instruction.LD_ST_VX: "LD ST, V{0:X}",
    Instruction.ADD_I_VX: "ADD I, V{0:X}",
    Instruction.LD_F_VX: "LD F, V{0:X}",
    Instruction.LD_B_VX: "LD B, V{0:X}",
    Instruction.LD_I_VX: "LD [I], V{0:X}",
    Instruction.LD_VX_I: "LD V{0:X}, [I]",
}


def disassemble(opcode: int) -> str:
    """Disassemble opcode to human-readable string"""
    instruction, operands = decode(opcode)
    if instruction is None:
        return f"??? ${opcode:04X}"
    return _MNEMONICS[instruction].format(*operands)


def disassemble_program(data: bytes, start: int = PROGRAM_START) -> List[str]:
    """
    Convert a program image into listing lines.
    Each line: "ADDR:  OPCODE  MNEMONIC"
    """
    lines = []
    addr = start
    i = 0
    while i + 1 < len(data):
        op = (data[i] << 8) | data[i + 1]
        lines.append(f"{addr:04X}:  {op:04X}  {disassemble(op)}")
        addr += 2
        i += 2
    # Odd trailing byte is shown as data
    if i < len(data):
        lines.append(f"{addr:04X}:  {data[i]:02X}    .byte ${data[i]:02X}")
    return lines
