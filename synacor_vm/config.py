"""
Synacor VM: Architecture Constants and Run Defaults
==================================================

Everything here is fixed by the architecture except the RUN DEFAULTS
block, which the CLI can override per invocation.

Address space:
  0     .. 32767   Memory words (program image is loaded at 0)
  32768 .. 32775   Registers r0..r7
"""

from pathlib import Path
import logging


# =============================================================================
#  WORDS
# =============================================================================
WORD_BITS = 15
MODULUS = 1 << WORD_BITS        # 32768, all arithmetic reduces by this
WORD_MASK = MODULUS - 1         # 0x7FFF

# =============================================================================
#  ADDRESS SPACE
# =============================================================================
MEMORY_SIZE = MODULUS           # addressable memory words
REGISTER_BASE = MODULUS         # raw value 32768 means r0
NUM_REGISTERS = 8
REGISTER_LIMIT = REGISTER_BASE + NUM_REGISTERS - 1   # 32775, r7
ADDRESS_SPACE = MEMORY_SIZE + NUM_REGISTERS

# Program images are little-endian 16-bit words, no header
BYTES_PER_WORD = 2

# =============================================================================
#  CONTROL
# =============================================================================
HALT_PC = -1                    # next-pc value that ends the run loop
ENTRY_PC = 0

# =============================================================================
#  RUN DEFAULTS
# =============================================================================
DEFAULT_MAX_STEPS = None        # None = run until HALT
LOG_DIR = Path.cwd() / "logs"
CONSOLE_LOG_LEVEL = logging.WARNING
INPUT_ENCODING = "latin-1"      # one byte per character code
TRACE_DEPTH = 10_000            # most recent trace lines kept in memory
