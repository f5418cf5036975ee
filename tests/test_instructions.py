"""Instruction table, decoder and disassembler."""

import pytest

from meowchip8.instructions import (
    INSTRUCTION_TABLE,
    Instruction,
    decode,
    disassemble,
    disassemble_program,
)


# ═══════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════

class TestTable:

    def test_covers_every_instruction_once(self):
        """35 entries, one per Instruction member"""
        assert len(INSTRUCTION_TABLE) == 35
        assert {e.instruction for e in INSTRUCTION_TABLE} == set(Instruction)

    def test_patterns_fit_their_masks(self):
        """A pattern with bits outside its mask could never match"""
        for entry in INSTRUCTION_TABLE:
            assert entry.pattern & ~entry.mask & 0xFFFF == 0, entry.instruction

    def test_cls_and_ret_shadow_sys(self):
        """00E0/00EE decode to CLS/RET, not the 0NNN catch-all"""
        assert decode(0x00E0) == (Instruction.CLS, [])
        assert decode(0x00EE) == (Instruction.RET, [])
        assert decode(0x0123) == (Instruction.SYS_ADDR, [0x123])


# ═══════════════════════════════════════════════
# Decoding
# ═══════════════════════════════════════════════

class TestDecode:

    @pytest.mark.parametrize("opcode, expected", [
        (0x1ABC, (Instruction.JP_ADDR, [0xABC])),
        (0x2300, (Instruction.CALL_ADDR, [0x300])),
        (0x3A42, (Instruction.SE_VX_NN, [0xA, 0x42])),
        (0x4B07, (Instruction.SNE_VX_NN, [0xB, 0x07])),
        (0x5120, (Instruction.SE_VX_VY, [1, 2])),
        (0x6CFF, (Instruction.LD_VX_NN, [0xC, 0xFF])),
        (0x7301, (Instruction.ADD_VX_NN, [3, 1])),
        (0x8120, (Instruction.LD_VX_VY, [1, 2])),
        (0x8121, (Instruction.OR_VX_VY, [1, 2])),
        (0x8122, (Instruction.AND_VX_VY, [1, 2])),
        (0x8123, (Instruction.XOR_VX_VY, [1, 2])),
        (0x8AB4, (Instruction.ADD_VX_VY, [0xA, 0xB])),
        (0x8125, (Instruction.SUB_VX_VY, [1, 2])),
        (0x8406, (Instruction.SHR_VX, [4, 0])),
        (0x8127, (Instruction.SUBN_VX_VY, [1, 2])),
        (0x840E, (Instruction.SHL_VX, [4, 0])),
        (0x9DE0, (Instruction.SNE_VX_VY, [0xD, 0xE])),
        (0xA2F0, (Instruction.LD_I_ADDR, [0x2F0])),
        (0xB210, (Instruction.JP_V0_ADDR, [0x210])),
        (0xC50F, (Instruction.RND_VX_NN, [5, 0x0F])),
        (0xD125, (Instruction.DRW_VX_VY_N, [1, 2, 5])),
        (0xE59E, (Instruction.SKP_VX, [5])),
        (0xE5A1, (Instruction.SKNP_VX, [5])),
        (0xF607, (Instruction.LD_VX_DT, [6])),
        (0xF60A, (Instruction.LD_VX_K, [6])),
        (0xF615, (Instruction.LD_DT_VX, [6])),
        (0xF618, (Instruction.LD_ST_VX, [6])),
        (0xF61E, (Instruction.ADD_I_VX, [6])),
        (0xF629, (Instruction.LD_F_VX, [6])),
        (0xF633, (Instruction.LD_B_VX, [6])),
        (0xF655, (Instruction.LD_I_VX, [6])),
        (0xF665, (Instruction.LD_VX_I, [6])),
    ])
    def test_operands(self, opcode, expected):
        assert decode(opcode) == expected

    @pytest.mark.parametrize("opcode", [0x5121, 0x8128, 0x812F, 0x9121, 0xE000, 0xE5FF, 0xF0FF, 0xF666])
    def test_unknown_opcode(self, opcode):
        """Encodings outside the table yield no instruction"""
        assert decode(opcode) == (None, [])


# ═══════════════════════════════════════════════
# Disassembler
# ═══════════════════════════════════════════════

class TestDisassemble:

    @pytest.mark.parametrize("opcode, text", [
        (0x00E0, "CLS"),
        (0x00EE, "RET"),
        (0x0123, "SYS $123"),
        (0x12A0, "JP $2A0"),
        (0x631F, "LD V3, $1F"),
        (0x8AB4, "ADD VA, VB"),
        (0x8406, "SHR V4"),
        (0xB210, "JP V0, $210"),
        (0xD015, "DRW V0, V1, 5"),
        (0xF455, "LD [I], V4"),
        (0xF465, "LD V4, [I]"),
        (0xF20A, "LD V2, K"),
    ])
    def test_mnemonic(self, opcode, text):
        assert disassemble(opcode) == text

    def test_unknown(self):
        assert disassemble(0x5121) == "??? $5121"

    def test_program_listing(self):
        """Addresses start at 0x200 and advance by two"""
        lines = disassemble_program(bytes([0x00, 0xE0, 0x12, 0x00]))
        assert lines == [
            "0200:  00E0  CLS",
            "0202:  1200  JP $200",
        ]

    def test_odd_trailing_byte(self):
        lines = disassemble_program(bytes([0x60, 0x05, 0xAB]), start=0x300)
        assert lines[0] == "0300:  6005  LD V0, $05"
        assert lines[1] == "0302:  AB    .byte $AB"
