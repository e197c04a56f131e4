"""
Synacor VM: Opcode Decoder

Maps an opcode word to (mnemonic, operand_count). Every instruction is
one opcode word followed by operand_count operand words, so the fall-through
next pc is always pc + 1 + operand_count.

Operand kinds; the disassembler marks A operands with an @ prefix:
  D   destination, read raw (names a register or memory slot to write)
  V   value, read through register resolution
  A   address-by-value (WMEM's first operand: resolved, then written to)
"""

from typing import Dict, Tuple

from ..errors import InvalidOpcode


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────
# Format: opcode -> (mnemonic, operand kinds)

OPCODES: Dict[int, Tuple[str, str]] = {
    0:  ('HALT', ''),
    1:  ('SET',  'DV'),
    2:  ('PUSH', 'V'),
    3:  ('POP',  'D'),
    4:  ('EQ',   'DVV'),
    5:  ('GT',   'DVV'),
    6:  ('JMP',  'V'),
    7:  ('JT',   'VV'),
    8:  ('JF',   'VV'),
    9:  ('ADD',  'DVV'),
    10: ('MULT', 'DVV'),
    11: ('MOD',  'DVV'),
    12: ('AND',  'DVV'),
    13: ('OR',   'DVV'),
    14: ('NOT',  'DV'),
    15: ('RMEM', 'DV'),
    16: ('WMEM', 'AV'),
    17: ('CALL', 'V'),
    18: ('RET',  ''),
    19: ('OUT',  'V'),
    20: ('IN',   'D'),
    21: ('NOOP', ''),
}

MNEMONIC_TO_OPCODE = {mnem: code for code, (mnem, _) in OPCODES.items()}

INVALID = 'INVALID'


def operand_kinds(mnemonic: str) -> str:
    return OPCODES[MNEMONIC_TO_OPCODE[mnemonic]][1]


def decode_opcode(memory, pc: int, strict: bool = True):
    """Decode the opcode word at pc.

    Returns: (mnemonic, operand_count, next_pc)

    In strict mode an unknown opcode raises InvalidOpcode. In lenient
    mode (disassembly) it decodes as ('INVALID', 0, pc + 1) so a linear
    scan can step over data words.
    """
    opcode = memory.read_raw(pc)
    entry = OPCODES.get(opcode)
    if entry is None:
        if strict:
            raise InvalidOpcode(pc, opcode)
        return INVALID, 0, pc + 1
    mnem, kinds = entry
    return mnem, len(kinds), pc + 1 + len(kinds)
