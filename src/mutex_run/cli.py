"""mutex-run CLI: run just one thing at a time."""

import logging
import os
from pathlib import Path
from typing import Any

import typer
from typer.core import TyperCommand

from mutex_run import __version__

from .config import ConfigError, load_config
from .constants import (
    DEFAULT_LOCK_FILE,
    DEFAULT_STALE_TIMEOUT_MS,
    DEFAULT_TIMEOUT_MS,
    EXIT_LOCK_FAILED,
    EXIT_NO_COMMAND,
    LOCK_FILE_ENV,
)
from .core import LockAcquisitionError, LockFailureReason
from .logging import configure_logging
from .models import RunOptions
from .output import OutputContext
from .runner import run

logger = logging.getLogger(__name__)

# ctx.meta key holding the arguments after the first --
COMMAND_AFTER_SEPARATOR = "mutex_run.command"


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"mutex-run {__version__}")
        raise typer.Exit()


class SeparatorCommand(TyperCommand):
    """Treat everything after the first ``--`` as the command, unparsed.

    Click only honors ``--`` before the first positional argument, so
    ``mutex-run echo -- x`` would otherwise run ``echo -- x``.
    """

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        if "--" in args:
            idx = args.index("--")
            ctx.meta[COMMAND_AFTER_SEPARATOR] = args[idx + 1 :]
            args = args[:idx]
        return super().parse_args(ctx, args)


app = typer.Typer(
    name="mutex-run",
    help="Run just one thing at a time!",
    add_completion=False,
)


def _print_lock_failure(out: OutputContext, lock_path: Path, err: LockAcquisitionError) -> None:
    out.info("")
    out.info("This could mean:")
    out.info("  - Another instance is currently running")
    out.info("  - A stale lock exists (consider adjusting --stale-timeout)")
    out.info("  - Insufficient permissions to create/access the lock file")
    out.info("")
    out.info(f"Try: mutex-run --verbose --lock {lock_path} -- <command>")
    logger.debug(f"Error details: {err}")


@app.command(cls=SeparatorCommand, context_settings={"allow_interspersed_args": False})
def main(
    ctx: typer.Context,
    command: list[str] | None = typer.Argument(
        None,
        metavar="[--] COMMAND...",
        help="Command to run while holding the lock",
        show_default=False,
    ),
    lock: str | None = typer.Option(
        None,
        "--lock",
        "-l",
        envvar=LOCK_FILE_ENV,
        help=f"Lock file path (relative or absolute) [default: {DEFAULT_LOCK_FILE}]",
        show_default=False,
    ),
    wait: bool | None = typer.Option(
        None,
        "--wait/--no-wait",
        help="Wait for lock instead of failing immediately [default: wait, ~1 hour]",
        show_default=False,
    ),
    timeout: int | None = typer.Option(
        None,
        "--timeout",
        "-t",
        min=0,
        help=f"Overall timeout in milliseconds, 0 = no timeout [default: {DEFAULT_TIMEOUT_MS}]",
        show_default=False,
    ),
    stale_timeout: int | None = typer.Option(
        None,
        "--stale-timeout",
        min=1,
        help=(
            "Consider locks older than this stale, in milliseconds "
            f"[default: {DEFAULT_STALE_TIMEOUT_MS}]"
        ),
        show_default=False,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="TOML file with defaults (else [tool.mutex-run] in ./pyproject.toml)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Print extra diagnostics",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output [default: on when CI=true]",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Run COMMAND while holding a file lock, so only one copy runs at a time.

    Everything after the first -- is the command. Without --, all remaining
    arguments are the command. Exits with the command's own exit code, or 1
    if the lock could not be acquired.
    """
    # Without a command after --, the positional arguments are the command
    command = ctx.meta.get(COMMAND_AFTER_SEPARATOR) or command
    no_color = no_color or os.environ.get("CI") == "true"
    console = configure_logging(verbose=verbose, no_color=no_color)
    out = OutputContext(console=console, color=not no_color)

    if not command:
        out.error("No command specified")
        out.info("Usage: mutex-run [options] -- <command> [args...]")
        out.info("Example: mutex-run --verbose -- echo 'hello world'")
        raise typer.Exit(EXIT_NO_COMMAND)

    try:
        defaults = load_config(config)
    except ConfigError as e:
        out.error(str(e))
        raise typer.Exit(1) from None

    show_spinner = not verbose and not no_color
    if not verbose and no_color:
        out.info("Acquiring lock...")

    options = RunOptions(
        lock_file=_first(lock, defaults.lock, DEFAULT_LOCK_FILE),
        wait=_first(wait, defaults.wait, True),
        timeout=_first(timeout, defaults.timeout, DEFAULT_TIMEOUT_MS),
        stale_timeout=_first(stale_timeout, defaults.stale_timeout, DEFAULT_STALE_TIMEOUT_MS),
        handle_signals=True,
    )
    lock_path = options.lock_path

    with out.spinner(f"Acquiring lock at {lock_path}", enabled=show_spinner) as status:
        if status is not None:
            options = options.model_copy(update={"on_acquired": status.stop})
        try:
            result = run(command, options)
        except LockAcquisitionError as e:
            if status is not None:
                status.stop()
                out.error("Failed to acquire lock")
            if e.reason is LockFailureReason.CANCELLED:
                out.error("Interrupted while waiting for the lock")
            else:
                _print_lock_failure(out, lock_path, e)
            raise typer.Exit(EXIT_LOCK_FAILED) from None
        if status is not None:
            out.success("Command completed")

    raise typer.Exit(result.exit_code)


def _first(*values: Any) -> Any:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    raise ValueError("no value given")
