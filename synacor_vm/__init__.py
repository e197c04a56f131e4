"""
Synacor VM
==========
Interpreter for the Synacor challenge architecture: 15-bit words,
32768 words of memory, 8 registers, an unbounded stack and 22 opcodes.

Layout:
    config.py          architecture constants, run defaults
    errors.py          VMError taxonomy
    cpu/regs.py        register numbering, RegisterView
    cpu/alu.py         word arithmetic (all masking lives here)
    cpu/decoder.py     opcode table, decode_opcode()
    mem/memory.py      word array + register slots + stack
    periph/console.py  OUT/IN character I/O
    emu.py             VirtualMachine: execute(), step(), run()
    disassembler.py    listing view of a loaded image
"""

__version__ = "0.4.0"

from .errors import (
    VMError, LoadError, InvalidOpcode, InvalidOperand, DivisionByZero,
    InputExhausted, InvalidInput, PCOutOfRange, StackUnderflow,
)
from .mem.memory import Memory, PopResult, STACK_UNDERFLOW
from .periph.console import Console
from .emu import VirtualMachine, StopReason
from .disassembler import Disassembler, DisassembledInstruction


def run_image(path_or_data, *, max_steps=None, console=None) -> VirtualMachine:
    """Load a program image, run it to a stop, return the VM for inspection."""
    vm = VirtualMachine(console=console)
    vm.load_binary(path_or_data)
    vm.run(max_steps=max_steps)
    return vm
