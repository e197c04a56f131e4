"""
Synacor VM: Word Arithmetic

Every value that reaches Memory.write from an arithmetic instruction
passes through one of these functions, so the 15-bit reduction happens in
exactly one place. Inputs are resolved operand values (0..32767).

  ADD, MULT   reduce modulo 32768
  MOD         plain remainder; divisor 0 is rejected by the caller
  AND, OR     bitwise, can't leave 15 bits for 15-bit inputs
  NOT         inverted, then masked to 15 bits (NOT 0 == 32767)
  EQ, GT      1 for true, 0 for false (unsigned compare)
"""

from ..config import MODULUS, WORD_MASK


def to_word(value: int) -> int:
    """Reduce any int to a 15-bit word."""
    return value % MODULUS


def add(b: int, c: int) -> int:
    return to_word(b + c)


def mult(b: int, c: int) -> int:
    return to_word(b * c)


def mod(b: int, c: int) -> int:
    return b % c


def and_(b: int, c: int) -> int:
    return b & c


def or_(b: int, c: int) -> int:
    return b | c


def not_(b: int) -> int:
    return ~b & WORD_MASK


def eq(b: int, c: int) -> int:
    return 1 if b == c else 0


def gt(b: int, c: int) -> int:
    return 1 if b > c else 0
