"""Lock primitive for mutex-run.

Provides advisory file locking (filelock) on a marker file so that only one
process at a time runs a guarded command. Includes stale lock detection based
on the marker's modification time for recovery from hung holders.

The marker path is made absolute but symlinks are never resolved. filelock
refuses to lock through a symlink, so a marker path that is itself a symlink
fails with reason ERROR instead of locking or deleting the link's target.
"""

import logging
import os
import sys
import threading
import time
from enum import Enum
from pathlib import Path

from filelock import FileLock, Timeout

from ..constants import MAX_ACQUIRE_ATTEMPTS

logger = logging.getLogger(__name__)

# Windows cannot delete a file another handle has open
_WINDOWS = sys.platform == "win32"


class LockFailureReason(str, Enum):
    """Why an acquisition did not produce a lock handle."""

    HELD_BY_OTHER = "held_by_other"
    TIMED_OUT = "timed_out"
    PERMISSION_DENIED = "permission_denied"
    CANCELLED = "cancelled"
    ERROR = "error"


class LockError(Exception):
    """Error acquiring or managing lock."""


class LockAcquisitionError(LockError):
    """The lock could not be acquired under the given policy."""

    def __init__(self, path: Path, reason: LockFailureReason, detail: str = "") -> None:
        self.path = path
        self.reason = reason
        self.detail = detail
        message = f"Failed to acquire lock at: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class LockReleaseError(LockError):
    """Unlocking the marker failed."""


class _MarkerReplaced(Exception):
    """The path no longer names the file that was locked."""


FileIdentity = tuple[int, int]


class _Claim:
    """``on_acquired`` hook recording which file filelock just locked.

    Rejects the lock when the path was removed or replaced between filelock's
    open and lock, or when it does not match ``expected``.
    """

    def __init__(self, path: Path, expected: FileIdentity | None = None) -> None:
        self.path = path
        self.expected = expected
        self.identity: FileIdentity | None = None

    def __call__(self, fd: int) -> None:
        fst = os.fstat(fd)
        identity = (fst.st_dev, fst.st_ino)
        if _identity(self.path) != identity:
            raise _MarkerReplaced(self.path)
        if self.expected is not None and identity != self.expected:
            raise _MarkerReplaced(self.path)
        self.identity = identity


def _file_lock(path: Path, claim: _Claim) -> FileLock:
    return FileLock(
        path,
        timeout=0,
        thread_local=False,
        preserve_lock_file=True,
        on_acquired=claim,
    )


class LockHandle:
    """Capability proving this process holds the lock on ``path``.

    Wraps the acquired FileLock. Releasing twice is a no-op.
    """

    def __init__(self, path: Path, lock: FileLock, identity: FileIdentity) -> None:
        self.path = path
        self.identity = identity
        self._lock: FileLock | None = lock

    @property
    def held(self) -> bool:
        return self._lock is not None

    def release(self) -> None:
        """Unlock the marker.

        Raises:
            LockReleaseError: If the OS refuses to unlock
        """
        lock, self._lock = self._lock, None
        if lock is None:
            return
        try:
            lock.release()
        except OSError as e:
            raise LockReleaseError(f"Failed to release lock at {self.path}: {e}") from e

    def __enter__(self) -> "LockHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "held" if self.held else "released"
        return f"LockHandle({str(self.path)!r}, {state})"


def ensure_lock_file(path: Path) -> None:
    """Create the marker file and its parent directories if missing.

    Safe against concurrent creators. An existing marker is left untouched,
    in particular its modification time is not refreshed.
    """
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_CREAT | os.O_WRONLY, 0o644)
    os.close(fd)


def lock_age(path: Path) -> float | None:
    """Seconds since the marker was last modified, or None if it is missing."""
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        return None
    return time.time() - mtime


def is_stale(path: Path, stale_timeout: float) -> bool:
    """Check if the marker is older than ``stale_timeout`` seconds."""
    age = lock_age(path)
    return age is not None and age > stale_timeout


def _identity(path: Path) -> FileIdentity | None:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    return (st.st_dev, st.st_ino)


def try_acquire(path: Path, stale_timeout: float, log: logging.Logger = logger) -> LockHandle:
    """Make one acquisition attempt without waiting.

    A fresh marker held by someone else fails immediately. A held marker older
    than ``stale_timeout`` is taken over: the file is replaced and the new one
    is locked, leaving the previous holder with a lock on an unlinked inode.

    Args:
        path: Marker path (used as given)
        stale_timeout: Age in seconds after which a held marker is abandoned
        log: Diagnostic logger

    Returns:
        Handle for the acquired lock

    Raises:
        LockAcquisitionError: If the lock is held, or the marker is inaccessible
    """
    for _ in range(MAX_ACQUIRE_ATTEMPTS):
        claim = _Claim(path)
        lock = _file_lock(path, claim)
        try:
            lock.acquire()
        except Timeout:
            if is_stale(path, stale_timeout):
                log.debug(f"lock at {path} is stale (older than {stale_timeout:g}s), taking over")
                _unlink_stale(path)
                continue
            raise LockAcquisitionError(
                path, LockFailureReason.HELD_BY_OTHER, "held by another process"
            ) from None
        except _MarkerReplaced:
            continue
        except PermissionError as e:
            raise LockAcquisitionError(path, LockFailureReason.PERMISSION_DENIED, str(e)) from e
        except OSError as e:
            raise LockAcquisitionError(path, LockFailureReason.ERROR, str(e)) from e

        assert claim.identity is not None
        handle = LockHandle(path, lock, claim.identity)
        try:
            touch(handle)
        except OSError as e:
            log.debug(f"could not refresh lock mtime: {e}")
        return handle

    raise LockAcquisitionError(
        path, LockFailureReason.HELD_BY_OTHER, "marker kept changing during acquisition"
    )


def _unlink_stale(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        # Windows keeps a marker undeletable while its holder is alive
        raise LockAcquisitionError(
            path, LockFailureReason.HELD_BY_OTHER, f"stale lock could not be removed: {e}"
        ) from e


def touch(handle: LockHandle) -> None:
    """Refresh the marker's modification time.

    Raises:
        LockError: If the handle was already released
    """
    if not handle.held:
        raise LockError(f"Lock at {handle.path} already released")
    os.utime(handle.path)


def remove_lock_file(
    path: Path, identity: FileIdentity | None = None, log: logging.Logger = logger
) -> bool:
    """Delete the marker file unless another process now holds it.

    The file is briefly locked before unlinking so that a waiter which grabbed
    the marker right after our release keeps it. If ``identity`` is given, a
    marker that was replaced by a stale takeover is left alone as well.

    Returns:
        True if the marker was removed
    """
    if not path.exists():
        return False
    claim = _Claim(path, expected=identity)
    guard = FileLock(
        path,
        timeout=0,
        thread_local=False,
        preserve_lock_file=not _WINDOWS,
        on_acquired=claim,
    )
    try:
        guard.acquire()
    except Timeout:
        log.debug(f"lock at {path} was picked up by another process, leaving it in place")
        return False
    except _MarkerReplaced:
        log.debug(f"lock at {path} was replaced by another holder, leaving it in place")
        return False

    try:
        # On Windows filelock deletes the marker itself once the guard is released
        if not _WINDOWS:
            path.unlink()
    finally:
        guard.release()
    return True


class Heartbeat:
    """Background refresher keeping a held marker from looking stale.

    Touches the marker every ``interval`` seconds until stopped.
    """

    def __init__(self, handle: LockHandle, interval: float, log: logging.Logger = logger) -> None:
        self.handle = handle
        self.interval = interval
        self._log = log
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="mutex-run-heartbeat", daemon=True)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                touch(self.handle)
            except (OSError, LockError) as e:
                self._log.debug(f"heartbeat failed: {e}")

    def start(self) -> "Heartbeat":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join()

    def __enter__(self) -> "Heartbeat":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
