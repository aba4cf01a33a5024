"""Child process supervisor for mutex-run.

Spawns the guarded command, forwards interruption signals to it and maps its
terminal state onto a single exit code.
"""

import logging
import os
import shlex
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from ..constants import EXIT_FALLBACK
from ..models import StdioMode

logger = logging.getLogger(__name__)

Command = str | Sequence[str]


class NoCommandError(ValueError):
    """No command was given to run."""

    def __init__(self) -> None:
        super().__init__("No command specified")


class ChildLaunchError(Exception):
    """The command could not be started."""


_STDIO = {
    StdioMode.INHERIT: None,
    StdioMode.PIPE: subprocess.PIPE,
    StdioMode.IGNORE: subprocess.DEVNULL,
}


def validate_command(command: Command) -> None:
    """Raise NoCommandError for an empty command."""
    if isinstance(command, str):
        if not command.strip():
            raise NoCommandError()
    elif len(command) == 0:
        raise NoCommandError()


def build_args(command: Command, shell: bool) -> str | list[str]:
    """Turn ``command`` into what Popen expects for the given shell mode.

    String commands run through the shell verbatim, or are split with shell
    quoting rules when the shell is off. Sequences are executed directly, or
    quoted into one command line when the shell is on.
    """
    validate_command(command)
    if isinstance(command, str):
        if shell:
            return command
        try:
            return shlex.split(command)
        except ValueError as e:
            raise ChildLaunchError(f"Invalid command syntax: {e}") from e
    if not shell:
        return list(command)
    if sys.platform == "win32":
        return subprocess.list2cmdline(command)
    return shlex.join(command)


def describe(command: Command) -> str:
    """Render a command for log output."""
    if isinstance(command, str):
        return command
    return " ".join(command)


def normalize_exit_code(returncode: int | None) -> int:
    """Map a Popen return code onto the exit code reported to callers.

    Normal exits keep their code. Termination by a signal (negative return
    code) and unknown status collapse to the fallback code.
    """
    if returncode is None or returncode < 0:
        return EXIT_FALLBACK
    return returncode


class ChildProcess:
    """A spawned command and how to reach it.

    Attributes:
        args: Argument vector or shell command line passed to Popen
        shell: Whether the shell interprets ``args``
        cwd: Working directory
        env: Environment overrides layered on top of the parent environment
        stdio: Standard stream mode
    """

    def __init__(
        self,
        args: str | list[str],
        shell: bool,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        stdio: StdioMode = StdioMode.INHERIT,
        log: logging.Logger = logger,
    ) -> None:
        self.args = args
        self.shell = shell
        self.cwd = cwd
        self.env = dict(env) if env else None
        self.stdio = stdio
        self._log = log
        self.process: subprocess.Popen[str] | None = None

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process else None

    def start(self) -> "ChildProcess":
        """Launch the process.

        Raises:
            ChildLaunchError: If the executable cannot be started
        """
        stream = _STDIO[self.stdio]
        env = {**os.environ, **self.env} if self.env else None
        try:
            self.process = subprocess.Popen(
                self.args,
                shell=self.shell,
                cwd=self.cwd,
                env=env,
                stdout=stream,
                stderr=stream,
                text=True,
            )
        except OSError as e:
            raise ChildLaunchError(f"Failed to start {describe(self.args)}: {e}") from e
        self._log.debug(f"child started with PID {self.process.pid}")
        return self

    def forward_signal(self, signum: int | None) -> None:
        """Send ``signum`` to the child. Failures are logged, never raised."""
        if signum is None or self.process is None:
            return
        try:
            self.process.send_signal(signum)
            self._log.debug(f"forwarded signal {signum} to PID {self.process.pid}")
        except OSError as e:
            self._log.debug(f"failed to forward signal {signum}: {e}")

    def wait(self) -> tuple[int, str | None, str | None]:
        """Block until the child exits.

        Returns:
            Tuple of (normalized exit code, stdout, stderr); output is only
            present when stdio is ``pipe``
        """
        if self.process is None:
            raise RuntimeError("Process not started")
        stdout, stderr = self.process.communicate()
        if self.stdio is not StdioMode.PIPE:
            stdout = stderr = None
        return normalize_exit_code(self.process.returncode), stdout, stderr


def spawn(
    command: Command,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    stdio: StdioMode = StdioMode.INHERIT,
    shell: bool = False,
    log: logging.Logger = logger,
) -> ChildProcess:
    """Start ``command`` and return its running handle.

    Raises:
        NoCommandError: If the command is empty
        ChildLaunchError: If the executable cannot be started
    """
    args = build_args(command, shell)
    return ChildProcess(args, shell=shell, cwd=cwd, env=env, stdio=stdio, log=log).start()
