"""Cleanup coordinator: release the lock, then remove the marker, exactly once."""

import logging
import signal
from pathlib import Path

from .lock_manager import LockError, LockHandle, remove_lock_file

logger = logging.getLogger(__name__)


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class Cleanup:
    """Best-effort teardown for one run.

    Calling the instance releases ``handle`` and then removes the marker.
    Failures from either step are logged at DEBUG and swallowed. Only the
    first call does anything; later calls are no-ops.
    """

    def __init__(self, lock_path: Path, handle: LockHandle, log: logging.Logger = logger) -> None:
        self.lock_path = lock_path
        self.handle: LockHandle | None = handle
        self.done = False
        self._log = log

    def __call__(self, signum: int | None = None) -> None:
        if self.done:
            return
        self.done = True

        suffix = f" ({_signal_name(signum)})" if signum is not None else ""
        self._log.debug(f"cleanup start{suffix}")

        handle, self.handle = self.handle, None
        identity = handle.identity if handle else None
        try:
            if handle is not None:
                handle.release()
            self._log.debug("lock released")
        except LockError as e:
            self._log.debug(f"cleanup error: {e}")

        try:
            if remove_lock_file(self.lock_path, identity, log=self._log):
                self._log.debug("lockfile removed")
        except OSError as e:
            self._log.debug(f"cleanup error: {e}")
