"""
Synacor VM: Console (character I/O for OUT and IN)

OUT writes one character per instruction, unbuffered: the byte goes to
the output stream and is flushed immediately. Every byte is also kept in
tx_buffer so tests and the run loop can inspect what was printed.

IN is line oriented. The input cursor walks a buffered line; when it runs
off the end, exactly one new line is acquired (blocking on the input
stream if nothing is queued). A line that arrives without a terminator
gets '\\n' appended, so programs waiting for end-of-line always see it.

Line sources, in order:
  1. lines queued with feed()  (scripted input, e.g. a walkthrough file)
  2. the input stream           (stdin by default)

No more lines anywhere raises InputExhausted. Characters above U+00FF
raise InvalidInput; run the CLI with a latin-1 or ASCII stdin.

One Console per VirtualMachine: the cursor is instance state, so two VMs
in the same process never consume each other's input.
"""

from collections import deque
from typing import Optional, TextIO
import logging
import sys

from ..config import INPUT_ENCODING
from ..errors import InputExhausted, InvalidInput

log = logging.getLogger(__name__)


class Console:

    def __init__(self, input_stream: Optional[TextIO] = None,
                 output_stream: Optional[TextIO] = None,
                 echo: bool = False):
        self._input = input_stream if input_stream is not None else sys.stdin
        self._output = output_stream if output_stream is not None else sys.stdout
        self.echo = echo

        # All bytes written by OUT since last reset
        self.tx_buffer: bytearray = bytearray()

        # Scripted lines, consumed before the input stream
        self._script: deque = deque()

        # Input cursor
        self._line = ""
        self._index = 0

    # --- OUT ---

    def write_char(self, value: int):
        code = value & 0xFF
        self.tx_buffer.append(code)
        self._output.write(chr(code))
        self._output.flush()

    # --- IN ---

    def read_char(self) -> int:
        """Next character code from the buffered line, refilling as needed."""
        if self._index >= len(self._line):
            self._line = self._next_line()
            self._index = 0
        char = self._line[self._index]
        self._index += 1
        code = ord(char)
        if code > 0xFF:
            raise InvalidInput(char)
        return code

    def _next_line(self) -> str:
        if self._script:
            line = self._script.popleft()
            if self.echo:
                self._output.write(line)
                self._output.flush()
        else:
            line = self._input.readline()
            if not line:
                raise InputExhausted("No more input lines")
        if not line.endswith('\n'):
            line += '\n'
        log.debug("Input line: %r", line)
        return line

    def feed(self, text: str):
        """Queue text as input lines, ahead of the input stream.

        Example:
            console.feed("take tablet\\nuse tablet\\n")
        """
        for line in text.splitlines(keepends=True):
            self._script.append(line)

    def feed_file(self, path):
        with open(path, 'r', encoding=INPUT_ENCODING) as f:
            self.feed(f.read())

    @property
    def pending_lines(self) -> int:
        return len(self._script)

    @property
    def output(self) -> bytes:
        """All bytes printed since last reset."""
        return bytes(self.tx_buffer)

    def reset(self):
        self.tx_buffer.clear()
        self._script.clear()
        self._line = ""
        self._index = 0
