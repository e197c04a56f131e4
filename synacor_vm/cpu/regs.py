"""
Synacor VM: Register Numbering + Register View

Register model:
  r0..r7 live in the address space at 32768..32775. A raw word in that
  range, found in an operand slot, is a register reference. The slot
  itself only ever holds a plain word (no further indirection).

RegisterView gives index-style access (regs[0] .. regs[7]) over a Memory
without copying, so the emulator and tests can read/write registers
without doing address arithmetic.
"""

from ..config import REGISTER_BASE, REGISTER_LIMIT, NUM_REGISTERS


def is_register(raw: int) -> bool:
    return REGISTER_BASE <= raw <= REGISTER_LIMIT


def register_index(raw: int) -> int:
    """32768 -> 0 ... 32775 -> 7"""
    return raw - REGISTER_BASE


def register_address(index: int) -> int:
    """0 -> 32768 ... 7 -> 32775"""
    if not 0 <= index < NUM_REGISTERS:
        raise IndexError(f"register index {index} out of range 0..{NUM_REGISTERS - 1}")
    return REGISTER_BASE + index


def register_name(raw: int) -> str:
    return f"r{register_index(raw)}"


class RegisterView:
    """Live view of the 8 register slots of a Memory."""

    __slots__ = ('_mem',)

    def __init__(self, memory):
        self._mem = memory

    def __getitem__(self, index: int) -> int:
        return self._mem.read_raw(register_address(index))

    def __setitem__(self, index: int, value: int):
        self._mem.write(register_address(index), value)

    def __len__(self) -> int:
        return NUM_REGISTERS

    def __iter__(self):
        return (self[i] for i in range(NUM_REGISTERS))

    def as_list(self) -> list:
        return list(self)

    def display(self) -> str:
        """One-line register dump for traces: 'r0=0000 r1=0001 ...'"""
        return " ".join(f"r{i}={value:04X}" for i, value in enumerate(self))
