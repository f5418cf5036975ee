import random

import pytest

from meowchip8.cpu import Chip8CPU


def assemble(*opcodes):
    """Pack 16-bit opcodes into a big-endian program image"""
    return b''.join(op.to_bytes(2, 'big') for op in opcodes)


@pytest.fixture
def cpu():
    return Chip8CPU(rng=random.Random(1234))


@pytest.fixture
def run(cpu):
    """Load opcodes at 0x200 and return the CPU"""
    def _run(*opcodes, steps=0):
        cpu.load_rom(assemble(*opcodes))
        for _ in range(steps):
            cpu.step()
        return cpu
    return _run
