"""
Synacor VM: Main Emulator Class

This is the top-level class that integrates:
  - Memory map + value stack (mem/memory.py)
  - Opcode decoder (cpu/decoder.py)
  - Word arithmetic (cpu/alu.py)
  - Console I/O (periph/console.py)

Execution model:
  1. Decode the opcode word at pc
  2. Run the handler; operands are read through Memory (raw for
     destinations, resolved for values)
  3. Handler returns the next pc, or None for fall-through
     (pc + 1 + operand count), or HALT_PC

Termination reasons:
  - HALT:     HALT, or POP/RET on an empty stack
  - BREAK:    breakpoint address hit
  - TIMEOUT:  max_steps exceeded
  - DONE:     expected console output seen

Fatal errors (InvalidOpcode, InvalidOperand, PCOutOfRange, DivisionByZero,
InputExhausted, InvalidInput) are raised out of step()/run(); pc is left
pointing at the faulting instruction, and the stack is untouched when an
operand faults.
"""

from collections import deque
from typing import Optional, Set
from pathlib import Path
from enum import Enum
import logging

from .config import ENTRY_PC, HALT_PC, MEMORY_SIZE, TRACE_DEPTH
from .cpu import alu
from .cpu.decoder import decode_opcode
from .cpu.regs import RegisterView
from .disassembler import Disassembler
from .errors import DivisionByZero, InvalidOperand, PCOutOfRange
from .mem.memory import Memory
from .periph.console import Console

log = logging.getLogger(__name__)


class StopReason(Enum):
    HALT = 'HALT'
    BREAK = 'BREAK'
    TIMEOUT = 'TIMEOUT'
    DONE = 'DONE'


class VirtualMachine:
    """Synacor-architecture virtual machine.

    Usage:
        vm = VirtualMachine()
        vm.load_binary('challenge.bin')
        result = vm.run(max_steps=1_000_000)
        print(vm.console.output)
    """

    def __init__(self, console: Optional[Console] = None):
        self.mem = Memory()
        self.regs = RegisterView(self.mem)
        self.console = console if console is not None else Console()
        self.pc: int = ENTRY_PC
        self.steps: int = 0

        # Breakpoints: set of pc values that trigger BREAK
        self._breakpoints: Set[int] = set()
        # Set after a BREAK so the next step() executes the instruction
        self._resume_from_break = False

        # Trace output
        self._trace = False
        self._trace_output = deque(maxlen=TRACE_DEPTH)
        self._disassembler = Disassembler()

        # Instruction dispatch table (built in _build_dispatch)
        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_binary(self, path_or_data):
        """Load a program image file or bytes at address 0 and reset pc."""
        if isinstance(path_or_data, (str, Path)):
            data = Path(path_or_data).read_bytes()
        else:
            data = bytes(path_or_data)
        self.mem.load(data)
        self.pc = ENTRY_PC
        self.steps = 0
        log.info("Program loaded: %d words", self.mem.program_length)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    @property
    def halted(self) -> bool:
        return self.pc == HALT_PC

    def execute(self, pc: int) -> int:
        """Execute the instruction at pc and return the next pc (HALT_PC to stop)."""
        try:
            if not 0 <= pc < MEMORY_SIZE:
                raise PCOutOfRange(pc)
            mnem, count, next_pc = decode_opcode(self.mem, pc)
            if pc + count >= MEMORY_SIZE:
                raise PCOutOfRange(pc)
            ops = tuple(range(pc + 1, pc + 1 + count))
            if self._trace:
                self._record_trace(pc)
            target = self._dispatch[mnem](pc, ops)
        except InvalidOperand as exc:
            if exc.pc is None:
                raise InvalidOperand(exc.value, pc) from None
            raise
        return next_pc if target is None else target

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if stopped, else None."""
        if self.halted:
            return StopReason.HALT

        if self.pc in self._breakpoints and not self._resume_from_break:
            self._resume_from_break = True
            return StopReason.BREAK
        self._resume_from_break = False

        self.pc = self.execute(self.pc)
        self.steps += 1

        if self.halted:
            log.info("Halted after %d steps", self.steps)
            return StopReason.HALT
        return None

    def run(self, max_steps: Optional[int] = None,
            expected_output: Optional[bytes] = None) -> StopReason:
        """Run until termination condition.

        Args:
            max_steps: Instructions to execute before TIMEOUT (None = no limit)
            expected_output: console bytes to watch for → DONE

        Returns:
            StopReason indicating why execution stopped
        """
        executed = 0
        while max_steps is None or executed < max_steps:
            reason = self.step()
            if reason is not None:
                return reason
            executed += 1

            if expected_output and expected_output in self.console.tx_buffer:
                return StopReason.DONE

        log.warning("Step budget of %d exhausted at pc=%04X", max_steps, self.pc)
        return StopReason.TIMEOUT

    # ══════════════════════════════════════════════
    # Operand access
    # ══════════════════════════════════════════════
    # ops[n] is the ADDRESS of the n-th operand slot, not its value.

    def _val(self, slot: int) -> int:
        return self.mem.read_operand(slot)

    def _dest(self, slot: int) -> int:
        return self.mem.read_raw(slot)

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(pc, ops) -> next pc or None (fall through)

    def _build_dispatch(self) -> dict:
        """Build mnemonic → handler dispatch table."""
        return {
            'HALT': self._op_halt,
            'SET':  self._op_set,
            'PUSH': self._op_push,
            'POP':  self._op_pop,
            'EQ':   self._op_eq,
            'GT':   self._op_gt,
            'JMP':  self._op_jmp,
            'JT':   self._op_jt,
            'JF':   self._op_jf,
            'ADD':  self._op_add,
            'MULT': self._op_mult,
            'MOD':  self._op_mod,
            'AND':  self._op_and,
            'OR':   self._op_or,
            'NOT':  self._op_not,
            'RMEM': self._op_rmem,
            'WMEM': self._op_wmem,
            'CALL': self._op_call,
            'RET':  self._op_ret,
            'OUT':  self._op_out,
            'IN':   self._op_in,
            'NOOP': self._op_noop,
        }

    # ── Control ──

    def _op_halt(self, pc, ops):
        return HALT_PC

    def _op_noop(self, pc, ops):
        pass

    def _op_jmp(self, pc, ops):
        return self._val(ops[0])

    def _op_jt(self, pc, ops):
        if self._val(ops[0]) != 0:
            return self._val(ops[1])

    def _op_jf(self, pc, ops):
        if self._val(ops[0]) == 0:
            return self._val(ops[1])

    def _op_call(self, pc, ops):
        target = self._val(ops[0])
        self.mem.push(pc + 2)
        return target

    def _op_ret(self, pc, ops):
        popped = self.mem.pop()
        if popped.underflow:
            log.debug("RET on empty stack at %04X, halting", pc)
            return HALT_PC
        return popped.value

    # ── Data movement ──

    def _op_set(self, pc, ops):
        self.mem.write(self._dest(ops[0]), self._val(ops[1]))

    def _op_push(self, pc, ops):
        self.mem.push(self._val(ops[0]))

    def _op_pop(self, pc, ops):
        dest = self._dest(ops[0])
        popped = self.mem.pop()
        if popped.underflow:
            log.debug("POP on empty stack at %04X, halting", pc)
            return HALT_PC
        self.mem.write(dest, popped.value)

    def _op_rmem(self, pc, ops):
        self.mem.write(self._dest(ops[0]), self.mem.read_raw(self._val(ops[1])))

    def _op_wmem(self, pc, ops):
        # Destination is an address taken by value, so it is resolved
        self.mem.write(self._val(ops[0]), self._val(ops[1]))

    # ── Arithmetic / logic ──

    def _binary(self, ops, fn):
        self.mem.write(self._dest(ops[0]), fn(self._val(ops[1]), self._val(ops[2])))

    def _op_eq(self, pc, ops):
        self._binary(ops, alu.eq)

    def _op_gt(self, pc, ops):
        self._binary(ops, alu.gt)

    def _op_add(self, pc, ops):
        self._binary(ops, alu.add)

    def _op_mult(self, pc, ops):
        self._binary(ops, alu.mult)

    def _op_mod(self, pc, ops):
        if self._val(ops[2]) == 0:
            raise DivisionByZero(pc)
        self._binary(ops, alu.mod)

    def _op_and(self, pc, ops):
        self._binary(ops, alu.and_)

    def _op_or(self, pc, ops):
        self._binary(ops, alu.or_)

    def _op_not(self, pc, ops):
        self.mem.write(self._dest(ops[0]), alu.not_(self._val(ops[1])))

    # ── I/O ──

    def _op_out(self, pc, ops):
        self.console.write_char(self._val(ops[0]))

    def _op_in(self, pc, ops):
        self.mem.write(self._dest(ops[0]), self.console.read_char())

    # ══════════════════════════════════════════════
    # Breakpoint API
    # ══════════════════════════════════════════════

    def add_breakpoint(self, addr: int):
        """Add a breakpoint at pc address. Execution stops when pc hits this."""
        self._breakpoints.add(addr)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr)

    def clear_breakpoints(self):
        self._breakpoints.clear()

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Enable instruction trace logging."""
        self._trace = enable

    def _record_trace(self, pc: int):
        line = f"{self._disassembler.decode_one(self.mem, pc).format()}  | {self.regs.display()}"
        self._trace_output.append(line)
        log.debug(line)

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def reset(self):
        """Full VM reset: memory, registers, stack, console, pc."""
        self.mem.reset()
        self.console.reset()
        self.pc = ENTRY_PC
        self.steps = 0
        self._breakpoints.clear()
        self._resume_from_break = False
        self._trace_output.clear()
