"""
Synacor VM: Disassembler
========================
Renders decoded instructions as text without executing them.

API Usage:
    from synacor_vm.disassembler import Disassembler

    dis = Disassembler()
    for inst in dis.disassemble(vm.mem):
        print(inst.format())   # "0000: 0013 0057       OUT    87  ; 'W'"

    inst = dis.decode_one(vm.mem, pc=0x0000)

Operands are shown as stored (never resolved): registers as r0..r7,
literals in decimal. An address-by-value operand (WMEM target) carries an
@ prefix, so "WMEM @r0 42" reads as "store 42 at the address held in r0".
Unknown opcodes do not stop a scan; they come out as
one-word DW entries so data tables interleaved with code stay readable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import MEMORY_SIZE, REGISTER_BASE, REGISTER_LIMIT
from .cpu.decoder import INVALID, decode_opcode, operand_kinds
from .cpu.regs import register_name


@dataclass
class DisassembledInstruction:
    """One decoded instruction with all formatting data."""
    address: int
    raw_words: Tuple[int, ...]
    mnemonic: str
    operand_str: str
    comment: str = ""

    @property
    def length(self) -> int:
        return len(self.raw_words)

    @property
    def hex_str(self) -> str:
        """Raw words formatted like '0009 8000 8001 0004'."""
        return " ".join(f"{w:04X}" for w in self.raw_words)

    def format(self, hex_width: int = 19) -> str:
        """Format as a single listing line."""
        asm = f"{self.mnemonic:6s} {self.operand_str}".rstrip()
        line = f"{self.address:04X}: {self.hex_str.ljust(hex_width)} {asm}"
        if self.comment:
            line += f"  ; {self.comment}"
        return line


def format_operand(raw: int) -> str:
    if raw < REGISTER_BASE:
        return str(raw)
    if raw <= REGISTER_LIMIT:
        return register_name(raw)
    return f"?{raw}"


def _char_comment(raw: int) -> str:
    if raw >= REGISTER_BASE:
        return ""
    code = raw & 0xFF
    if code == 0x0A:
        return "'\\n'"
    if 0x20 <= code < 0x7F:
        return repr(chr(code))
    return f"chr({code})"


class Disassembler:
    """Linear-sweep disassembler over a Memory.

    Usage:
        dis = Disassembler()
        listing = dis.disassemble(memory)
        text = dis.listing(memory, start=0x0100, end=0x0140)
    """

    def decode_one(self, memory, pc: int) -> DisassembledInstruction:
        """Decode exactly one instruction at pc (lenient: never raises for bad opcodes)."""
        mnem, count, _ = decode_opcode(memory, pc, strict=False)
        opcode = memory.read_raw(pc)

        if mnem == INVALID:
            return DisassembledInstruction(
                address=pc,
                raw_words=(opcode,),
                mnemonic="DW",
                operand_str=str(opcode),
                comment="unknown opcode",
            )

        # Operands that would run past memory are shown as far as they go
        last = min(pc + count, MEMORY_SIZE - 1)
        operands = tuple(memory.read_raw(a) for a in range(pc + 1, last + 1))

        comment = ""
        if mnem == 'OUT' and operands:
            comment = _char_comment(operands[0])

        return DisassembledInstruction(
            address=pc,
            raw_words=(opcode,) + operands,
            mnemonic=mnem,
            operand_str=" ".join(
                ("@" if kind == "A" else "") + format_operand(w)
                for w, kind in zip(operands, operand_kinds(mnem))
            ),
            comment=comment,
        )

    def disassemble(self, memory, start: int = 0,
                    end: Optional[int] = None) -> List[DisassembledInstruction]:
        """Disassemble [start, end). end defaults to the loaded program length."""
        if end is None:
            end = memory.program_length
        end = min(end, MEMORY_SIZE)
        results: List[DisassembledInstruction] = []
        pc = start
        while pc < end:
            inst = self.decode_one(memory, pc)
            results.append(inst)
            pc += inst.length
        return results

    def listing(self, memory, start: int = 0, end: Optional[int] = None) -> str:
        return "\n".join(i.format() for i in self.disassemble(memory, start, end))
