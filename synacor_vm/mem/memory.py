"""
Synacor VM: Word Memory, Register Slots and Value Stack

Memory map:
  0     .. 32767   Memory words (program image loaded at 0)
  32768 .. 32775   Registers r0..r7

The two read paths are the invariant the whole instruction set depends on:

  read_operand(addr)  value to CONSUME. A raw register reference is
                      followed one level to the register's contents.
  read_raw(addr)      word as stored. Used for destination operands,
                      which name a slot to write rather than a value.

write() stores whatever it is given; callers mask (see cpu/alu.py).

The stack is unbounded and separate from the address space. pop() never
raises: an empty stack comes back as the STACK_UNDERFLOW outcome, which
POP and RET turn into a halt.
"""

from typing import Callable, Dict, List, NamedTuple, Optional, Tuple
import logging

from ..config import (
    ADDRESS_SPACE, BYTES_PER_WORD, MEMORY_SIZE, REGISTER_BASE, REGISTER_LIMIT,
)
from ..errors import InvalidOperand, LoadError, StackUnderflow

log = logging.getLogger(__name__)


class PopResult(NamedTuple):
    """Tagged outcome of Memory.pop(): a value, or underflow."""
    value: Optional[int]

    @property
    def underflow(self) -> bool:
        return self.value is None

    def unwrap(self) -> int:
        if self.value is None:
            raise StackUnderflow("pop from empty stack")
        return self.value


STACK_UNDERFLOW = PopResult(None)


class Memory:
    """32768 memory words + 8 register slots + value stack."""

    def __init__(self):
        self._mem: List[int] = [0] * ADDRESS_SPACE
        self._stack: List[int] = []
        self.program_length: int = 0

        # Watchpoints: addr → [callback(addr, old_val, new_val)]
        self._watchpoints: Dict[int, List[Callable]] = {}

    # --- Loading ---

    def load(self, data: bytes):
        """Copy a program image into memory starting at address 0.

        Every two bytes are one little-endian word. Registers, stack and
        the rest of memory are cleared first.
        """
        data = bytes(data)
        if len(data) % BYTES_PER_WORD:
            raise LoadError(f"Program image has odd length ({len(data)} bytes)")
        words = len(data) // BYTES_PER_WORD
        if words > MEMORY_SIZE:
            raise LoadError(
                f"Program image too large ({words} words, capacity {MEMORY_SIZE})")

        self.reset()
        for i in range(words):
            self._mem[i] = data[2 * i] | (data[2 * i + 1] << 8)
        self.program_length = words
        log.debug("Loaded %d words", words)

    def load_words(self, words, base_addr: int = 0):
        """Poke a list of words in place (test fixtures, patching).

        Does not clear anything. program_length grows to cover the
        written range if it extends past the loaded image.
        """
        for i, word in enumerate(words):
            self.write(base_addr + i, word)
        end = base_addr + len(words)
        if end <= MEMORY_SIZE:
            self.program_length = max(self.program_length, end)

    # --- Core read/write ---

    def _check(self, addr: int) -> int:
        if not 0 <= addr < ADDRESS_SPACE:
            raise InvalidOperand(addr)
        return addr

    def read_raw(self, addr: int) -> int:
        """Stored word at addr, no register resolution."""
        return self._mem[self._check(addr)]

    def read_operand(self, addr: int) -> int:
        """Effective value of the operand slot at addr.

        Literals 0..32767 pass through. 32768..32775 are replaced by the
        register's contents (one level only). Anything above is invalid.
        """
        raw = self._mem[self._check(addr)]
        if raw < REGISTER_BASE:
            return raw
        if raw <= REGISTER_LIMIT:
            return self._mem[raw]
        raise InvalidOperand(raw)

    def write(self, addr: int, value: int):
        """Store value at a memory slot (0..32767) or register slot (32768..32775)."""
        self._check(addr)
        watchers = self._watchpoints.get(addr)
        if watchers:
            old = self._mem[addr]
            for cb in watchers:
                cb(addr, old, value)
        self._mem[addr] = value

    # --- Stack ---

    def push(self, value: int):
        self._stack.append(value)

    def pop(self) -> PopResult:
        if not self._stack:
            return STACK_UNDERFLOW
        return PopResult(self._stack.pop())

    def peek_stack(self) -> Tuple[int, ...]:
        """Stack contents, bottom first."""
        return tuple(self._stack)

    @property
    def stack_depth(self) -> int:
        return len(self._stack)

    # --- Watchpoints ---

    def add_watchpoint(self, addr: int, callback: Callable):
        """Call callback(addr, old_val, new_val) on every write to addr."""
        self._watchpoints.setdefault(self._check(addr), []).append(callback)

    def remove_watchpoint(self, addr: int, callback: Optional[Callable] = None):
        """Remove a watchpoint. If callback is None, removes all on that addr."""
        if addr in self._watchpoints:
            if callback is None:
                del self._watchpoints[addr]
            else:
                self._watchpoints[addr] = [
                    cb for cb in self._watchpoints[addr] if cb != callback
                ]

    # --- Snapshots ---

    def snapshot(self) -> Tuple[int, ...]:
        """Copy of every word and register slot (stack not included)."""
        return tuple(self._mem)

    @staticmethod
    def diff_snapshots(snap_a, snap_b) -> Dict[int, tuple]:
        """Compare two snapshots, return {addr: (old, new)} for changes."""
        return {
            addr: (a, b)
            for addr, (a, b) in enumerate(zip(snap_a, snap_b))
            if a != b
        }

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 64) -> str:
        """Word dump, 8 words per line, printable low bytes on the right."""
        lines = []
        end = min(start + length, ADDRESS_SPACE)
        for addr in range(start, end, 8):
            row = self._mem[addr:min(addr + 8, end)]
            hex_words = ' '.join(f'{w:04X}' for w in row)
            text = ''.join(chr(w) if 0x20 <= w < 0x7F else '.' for w in row)
            lines.append(f'{addr:04X}  {hex_words:<39}  {text}')
        return '\n'.join(lines)

    def reset(self):
        """Zero all words and registers, empty the stack."""
        self._mem = [0] * ADDRESS_SPACE
        self._stack.clear()
        self.program_length = 0
