"""Logging configuration for the mutex-run CLI."""

import logging
import sys
from enum import IntEnum
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

from .constants import LOG_PREFIX


class LogLevel(IntEnum):
    """Log level enumeration."""

    NORMAL = logging.INFO
    VERBOSE = logging.DEBUG


def configure_logging(
    verbose: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
) -> Console:
    """Configure logging based on CLI options.

    Args:
        verbose: Show lock and process diagnostics
        no_color: Disable colored output
        stream: Output stream for logs (defaults to stderr)

    Returns:
        Configured Rich console for output
    """
    level = LogLevel.VERBOSE if verbose else LogLevel.NORMAL

    console = Console(
        file=stream if stream is not None else sys.stderr,
        force_terminal=False if no_color else None,
        no_color=no_color,
        highlight=not no_color,
    )

    handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
        show_level=verbose,
    )

    logging.basicConfig(
        level=level,
        format=f"{LOG_PREFIX} %(message)s",
        handlers=[handler],
        force=True,
    )
    # filelock traces every attempt at DEBUG
    logging.getLogger("filelock").setLevel(logging.WARNING)

    return console
