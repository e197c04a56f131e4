"""
Synacor VM: Logging Setup

Same pattern as the other toolchain CLIs: a rich console handler for
what the user should see (WARNING+ by default) and, when a log directory
is given, a timestamped file capturing everything at DEBUG.

Log files: ``<log_dir>/<name>_YYYYMMDD_HHMMSS.log``
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler

from .config import CONSOLE_LOG_LEVEL


def setup_logging(
    name: str = "synacor_vm",
    level: int = logging.DEBUG,
    console_level: int = CONSOLE_LOG_LEVEL,
    log_dir: Optional[Path] = None,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure and return a logger.

    Calling again for the same name replaces its handlers, so the CLI can
    reconfigure after parsing --verbose.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    # ── File handler: captures everything (DEBUG+) ──
    log_file = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"{name}_{ts}.log"
        file_fmt = logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(file_fmt)
        logger.addHandler(fh)

    # ── Console handler: stderr, so program output on stdout stays clean ──
    if rich_console:
        ch = RichHandler(
            console=RichConsole(stderr=True),
            level=console_level,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
    else:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S",
        ))
    ch.setLevel(console_level)
    logger.addHandler(ch)

    logger.debug("Logger initialized: %s", name)
    if log_file is not None:
        logger.info("Log file: %s", log_file)
    logger.debug("Console level: %s", logging.getLevelName(console_level))

    return logger
