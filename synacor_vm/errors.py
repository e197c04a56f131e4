"""
Synacor VM: Error Taxonomy

  LoadError        malformed or oversized program image (before execution)
  InvalidOpcode    unknown instruction word in strict execution
  InvalidOperand   raw word outside literal/register range
  DivisionByZero   MOD with a zero divisor
  InputExhausted   IN executed after the input source ran dry
  InvalidInput     IN read a character that does not fit in one byte
  PCOutOfRange     an instruction would run past the last memory word
  StackUnderflow   only raised by PopResult.unwrap(); the engine treats an
                   empty pop as HALT and never raises it
"""


def _fmt(value: int) -> str:
    return f"${value:04X} ({value})"


class VMError(Exception):
    """Base class for every fatal VM condition."""
    pass


class LoadError(VMError):
    pass


class InvalidOpcode(VMError):
    """Raised when the word at pc is not one of the 22 opcodes."""

    def __init__(self, pc: int, value: int):
        self.pc = pc
        self.value = value
        super().__init__(f"Invalid opcode {_fmt(value)} at {_fmt(pc)}")


class InvalidOperand(VMError):
    """Raised for raw words 32776..65535, which are neither literal nor register."""

    def __init__(self, value: int, pc: int = None):
        self.value = value
        self.pc = pc
        where = f" at {_fmt(pc)}" if pc is not None else ""
        super().__init__(f"Invalid operand {_fmt(value)}{where}")


class DivisionByZero(VMError):

    def __init__(self, pc: int):
        self.pc = pc
        super().__init__(f"MOD by zero at {_fmt(pc)}")


class InputExhausted(VMError):
    pass


class StackUnderflow(VMError):
    pass


class InvalidInput(VMError):

    def __init__(self, char: str):
        self.char = char
        super().__init__(f"Input character {char!r} (U+{ord(char):04X}) is not a single byte")


class PCOutOfRange(VMError):
    """Raised when pc, or one of its operand slots, is past address 32767."""

    def __init__(self, pc: int):
        self.pc = pc
        super().__init__(f"Instruction at {_fmt(pc)} runs past the end of memory")
