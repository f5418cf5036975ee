"""Emulator exceptions."""


class Chip8Error(Exception):
    """Base class for emulator faults."""


class RomLoadError(Chip8Error):
    """The program image is oversized or could not be read."""


class StackError(Chip8Error):
    """A subroutine call or return left the 16-entry stack."""

    def __init__(self, message: str, pc: int):
        super().__init__(f"{message} at ${pc:03X}")
        self.pc = pc


class StackOverflowError(StackError):
    pass


class StackUnderflowError(StackError):
    pass
