#!/usr/bin/env python3
"""
synvm: Synacor VM command line

    synvm run    Execute a program image
    synvm dump   Disassemble a program image

Usage:
    python synvm.py run challenge.bin [--input walkthrough.txt] [--echo]
                        [--max-steps N] [--trace] [--break ADDR ...]
                        [--verbose] [--log-dir logs]
    python synvm.py dump challenge.bin [--start ADDR] [--end ADDR] [-o out.lst]

Examples:
    python synvm.py run challenge.bin
    python synvm.py run challenge.bin --input moves.txt --echo
    python synvm.py run challenge.bin --break 0x156B --verbose
    python synvm.py dump challenge.bin --start 0x0000 --end 0x0100
"""

import argparse
import logging
import sys

from synacor_vm import __version__
from synacor_vm.config import DEFAULT_MAX_STEPS, LOG_DIR
from synacor_vm.disassembler import Disassembler
from synacor_vm.emu import StopReason, VirtualMachine
from synacor_vm.errors import VMError
from synacor_vm.log_setup import setup_logging
from synacor_vm.periph.console import Console

log = logging.getLogger("synacor_vm")


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...), $ prefix, or decimal."""
    value = value.strip()
    try:
        if value.startswith("0x") or value.startswith("0X"):
            return int(value, 16)
        if value.startswith("$"):
            return int(value[1:], 16)
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an address: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="synvm",
        description="Synacor VM: run or disassemble a program image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""commands:
  run        Execute a program image
  dump       Disassemble a program image
""",
    )
    parser.add_argument("--version", action="version", version=f"synvm {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose debug logging")
    parser.add_argument("--log-dir", default=None,
                        help=f"Write a DEBUG log file here (e.g. {LOG_DIR})")
    sub = parser.add_subparsers(dest="command", metavar="command", required=True)

    # ── run ──────────────────────────────────────────────────────────────
    p_run = sub.add_parser("run", help="Execute a program image")
    p_run.add_argument("image", help="Program image (.bin, little-endian words)")
    p_run.add_argument("--input", dest="input_file", default=None,
                       help="Text file whose lines are fed to IN before stdin")
    p_run.add_argument("--echo", action="store_true",
                       help="Echo scripted input lines to the output")
    p_run.add_argument("--max-steps", type=int, default=DEFAULT_MAX_STEPS,
                       help="Stop after this many instructions")
    p_run.add_argument("--trace", action="store_true",
                       help="Log every executed instruction at DEBUG level")
    p_run.add_argument("--break", dest="breakpoints", type=parse_int_arg,
                       action="append", default=[], metavar="ADDR",
                       help="Stop when pc reaches ADDR (repeatable)")

    # ── dump ─────────────────────────────────────────────────────────────
    p_dump = sub.add_parser("dump", help="Disassemble a program image")
    p_dump.add_argument("image", help="Program image (.bin, little-endian words)")
    p_dump.add_argument("--start", type=parse_int_arg, default=0,
                        help="First address (default: 0)")
    p_dump.add_argument("--end", type=parse_int_arg, default=None,
                        help="Stop before this address (default: program end)")
    p_dump.add_argument("-o", "--output", default=None,
                        help="Output file (default: stdout)")

    return parser


def cmd_run(args) -> int:
    console = Console(echo=args.echo)
    if args.input_file:
        console.feed_file(args.input_file)

    vm = VirtualMachine(console=console)
    vm.load_binary(args.image)
    for addr in args.breakpoints:
        vm.add_breakpoint(addr)
    vm.enable_trace(args.trace)

    reason = vm.run(max_steps=args.max_steps)
    log.info("Stopped: %s at pc=%d after %d steps", reason.value, vm.pc, vm.steps)
    if reason is StopReason.BREAK:
        log.warning("Breakpoint at %04X | %s", vm.pc, vm.regs.display())
    elif reason is StopReason.TIMEOUT:
        log.warning("Step budget exhausted at %04X", vm.pc)
    return 0


def cmd_dump(args) -> int:
    vm = VirtualMachine()
    vm.load_binary(args.image)
    listing = Disassembler().listing(vm.mem, args.start, args.end)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(listing + "\n")
        log.info("Wrote %s", args.output)
    else:
        print(listing)
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    console_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(name="synacor_vm", console_level=console_level,
                  log_dir=args.log_dir)

    handler = {"run": cmd_run, "dump": cmd_dump}[args.command]
    try:
        return handler(args)
    except VMError as e:
        log.error("%s", e)
        return 1
    except OSError as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
