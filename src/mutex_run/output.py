"""Console output for the mutex-run CLI."""

import contextlib
from collections.abc import Iterator
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.status import Status

from .constants import LOG_PREFIX


@dataclass
class OutputContext:
    """Context for user-facing messages, all written to stderr."""

    console: Console
    color: bool = True

    def _emit(self, message: str, style: str) -> None:
        prefix = escape(LOG_PREFIX)
        if self.color:
            self.console.print(f"[{style}]{prefix}[/{style}] {escape(message)}")
        else:
            self.console.print(f"{prefix} {escape(message)}", style=None)

    def info(self, message: str) -> None:
        self._emit(message, "cyan")

    def success(self, message: str) -> None:
        self._emit(message, "green")

    def error(self, message: str) -> None:
        self._emit(message, "red")

    @contextlib.contextmanager
    def spinner(self, message: str, enabled: bool = True) -> Iterator[Status | None]:
        """Show a spinner for the duration of the block.

        Yields the live Status (which callers may stop early), or None when
        the spinner is disabled.
        """
        if not enabled:
            yield None
            return
        status = self.console.status(message, spinner_style="cyan")
        status.start()
        try:
            yield status
        finally:
            status.stop()
