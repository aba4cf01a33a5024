"""Core locking logic for mutex-run.

This package contains the lock protocol and its lifecycle helpers:
- lock_manager: Marker file creation, single-attempt filelock, staleness, heartbeat
- backoff: Retry scheduling with exponential backoff and an overall deadline
- cancel: Cancellation token fed by SIGINT/SIGTERM
- cleanup: Release-then-remove teardown that runs exactly once
"""

from .backoff import acquire_with_retry, backoff_intervals
from .cancel import CancelToken, signal_handlers
from .cleanup import Cleanup
from .lock_manager import (
    Heartbeat,
    LockAcquisitionError,
    LockError,
    LockFailureReason,
    LockHandle,
    LockReleaseError,
    ensure_lock_file,
    is_stale,
    remove_lock_file,
    try_acquire,
)

__all__ = [
    "CancelToken",
    "Cleanup",
    "Heartbeat",
    "LockAcquisitionError",
    "LockError",
    "LockFailureReason",
    "LockHandle",
    "LockReleaseError",
    "acquire_with_retry",
    "backoff_intervals",
    "ensure_lock_file",
    "is_stale",
    "remove_lock_file",
    "signal_handlers",
    "try_acquire",
]
