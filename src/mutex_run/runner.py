"""Run a command while holding a file lock.

This is the programmatic entry point: acquire the lock, run the command with
signals forwarded to it, then release the lock and remove the marker on every
exit path.
"""

import contextlib
import logging
import subprocess
from collections.abc import Sequence
from typing import Any

from .constants import EXIT_FALLBACK
from .core import (
    CancelToken,
    Cleanup,
    Heartbeat,
    LockAcquisitionError,
    LockFailureReason,
    acquire_with_retry,
    ensure_lock_file,
    signal_handlers,
)
from .models import RunOptions, RunResult, StdioMode
from .services.process import (
    ChildLaunchError,
    ChildProcess,
    build_args,
    describe,
    validate_command,
)

logger = logging.getLogger(__name__)

# Grace period for a child left running when the parent is interrupted
TERMINATE_TIMEOUT = 5.0


def run(
    command: str | Sequence[str],
    options: RunOptions | None = None,
    *,
    cancel: CancelToken | None = None,
    **overrides: Any,
) -> RunResult:
    """Run ``command`` under the lock described by ``options``.

    Args:
        command: Shell command line, or argument vector
        options: Run options (defaults used when omitted)
        cancel: Token used to interrupt the acquisition wait and to forward
            signals to the child. A private token is used when omitted.
        **overrides: Individual RunOptions fields, e.g. ``wait=False``

    Returns:
        RunResult with the command's exit code

    Raises:
        NoCommandError: If the command is empty
        LockAcquisitionError: If the lock could not be acquired

    Example:
        >>> run(["echo", "hello"], lock_file="/tmp/t.lock", wait=False).exit_code
        0
    """
    if overrides:
        options = RunOptions(**{**dict(options or RunOptions()), **overrides})
    options = options or RunOptions()
    validate_command(command)

    token = cancel or CancelToken()
    handlers = signal_handlers(token) if options.handle_signals else contextlib.nullcontext(token)
    with handlers:
        return _run_locked(command, options, token)


def _run_locked(command: str | Sequence[str], options: RunOptions, token: CancelToken) -> RunResult:
    log = options.logger or logger
    lock_path = options.lock_path
    policy = options.policy()

    try:
        ensure_lock_file(lock_path)
    except PermissionError as e:
        log.error(f"Failed to acquire lock at: {lock_path}")
        raise LockAcquisitionError(lock_path, LockFailureReason.PERMISSION_DENIED, str(e)) from e
    except OSError as e:
        log.error(f"Failed to acquire lock at: {lock_path}")
        raise LockAcquisitionError(lock_path, LockFailureReason.ERROR, str(e)) from e

    log.debug(f"acquiring lock at {lock_path}")
    if policy.wait:
        max_wait = int(policy.max_retries * policy.max_retry_interval // 60)
        log.debug(f"will wait for lock (timeout={options.timeout}ms, max wait time ~{max_wait}min)")

    try:
        handle = acquire_with_retry(lock_path, policy, token, log=log)
    except LockAcquisitionError as e:
        log.error(f"Failed to acquire lock at: {lock_path}")
        log.debug(f"acquisition failed: {e.reason.value} {e.detail}")
        raise
    log.debug("lock acquired")

    cleanup = Cleanup(lock_path, handle, log=log)
    try:
        if options.on_acquired is not None:
            options.on_acquired()
        with Heartbeat(handle, policy.stale_timeout / 2, log=log):
            return _supervise(command, options, token, log)
    finally:
        cleanup(token.signum)


def _supervise(
    command: str | Sequence[str],
    options: RunOptions,
    token: CancelToken,
    log: logging.Logger,
) -> RunResult:
    piped = options.stdio is StdioMode.PIPE
    if token.cancelled:
        log.debug("interrupted before the command was started")
        return _failed(piped)

    shell = options.use_shell(command)
    log.debug(f"exec: {describe(command)}")
    try:
        args = build_args(command, shell)
    except ChildLaunchError as e:
        log.error(str(e))
        return _failed(piped)

    child = ChildProcess(
        args,
        shell=shell,
        cwd=options.cwd,
        env=options.env,
        stdio=options.stdio,
        log=log,
    )
    with token.subscribed(child.forward_signal):
        try:
            child.start()
        except ChildLaunchError as e:
            log.error(str(e))
            return _failed(piped)
        if token.cancelled:
            # Signal arrived while the child was being created
            child.forward_signal(token.signum)

        try:
            exit_code, stdout, stderr = child.wait()
        finally:
            _reap(child, log)

    log.debug(f"command exited with code {exit_code}")
    return RunResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


def _reap(child: ChildProcess, log: logging.Logger) -> None:
    """Terminate a child still running after the wait was abandoned."""
    process = child.process
    if process is None or process.poll() is not None:
        return
    log.debug(f"terminating PID {process.pid}")
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_TIMEOUT)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def _failed(piped: bool) -> RunResult:
    if piped:
        return RunResult(exit_code=EXIT_FALLBACK, stdout="", stderr="")
    return RunResult(exit_code=EXIT_FALLBACK)
