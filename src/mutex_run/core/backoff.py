"""Retry scheduler for lock acquisition.

Drives repeated single attempts of the lock primitive with exponential
backoff, bounded by a retry cap and an optional overall deadline.
"""

import logging
import time
from collections.abc import Iterator
from pathlib import Path

from ..models import AcquisitionPolicy
from .cancel import CancelToken
from .lock_manager import LockAcquisitionError, LockFailureReason, LockHandle, try_acquire

logger = logging.getLogger(__name__)


def backoff_intervals(policy: AcquisitionPolicy) -> Iterator[float]:
    """Yield the delay before each retry.

    The n-th delay is ``retry_interval * factor**n`` capped at
    ``max_retry_interval``; there are ``policy.max_retries`` delays in total.
    The progression is deterministic for a given policy.
    """
    delay = min(policy.retry_interval, policy.max_retry_interval)
    for _ in range(policy.max_retries):
        yield delay
        delay = min(delay * policy.factor, policy.max_retry_interval)


def acquire_with_retry(
    path: Path,
    policy: AcquisitionPolicy,
    cancel: CancelToken | None = None,
    log: logging.Logger = logger,
) -> LockHandle:
    """Acquire the lock at ``path`` according to ``policy``.

    With ``policy.wait`` disabled exactly one attempt is made. Otherwise the
    lock is retried until it is acquired, the retry cap is exhausted, or the
    overall deadline passes, whichever comes first. Every sleep is bounded by
    the remaining time and ends early on cancellation, so nothing keeps
    retrying after this function returns.

    Args:
        path: Marker path
        policy: Acquisition policy
        cancel: Token that aborts the wait when cancelled
        log: Diagnostic logger

    Returns:
        Handle for the acquired lock

    Raises:
        LockAcquisitionError: With reason HELD_BY_OTHER when retries run out,
            TIMED_OUT when the deadline passes, CANCELLED on cancellation, or
            whatever a single attempt reported for non-contention failures
    """
    cancel = cancel or CancelToken()
    deadline = time.monotonic() + policy.timeout if policy.has_deadline else None
    delays = backoff_intervals(policy)
    attempt = 0

    while True:
        if cancel.cancelled:
            raise LockAcquisitionError(path, LockFailureReason.CANCELLED, "interrupted")

        attempt += 1
        try:
            return try_acquire(path, policy.stale_timeout, log=log)
        except LockAcquisitionError as e:
            if e.reason is not LockFailureReason.HELD_BY_OTHER:
                raise
            delay = next(delays, None)
            if delay is None:
                if policy.wait:
                    raise LockAcquisitionError(
                        path,
                        LockFailureReason.HELD_BY_OTHER,
                        f"still held after {attempt} attempts",
                    ) from e
                raise

        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise LockAcquisitionError(
                    path,
                    LockFailureReason.TIMED_OUT,
                    f"Lock acquisition timeout after {policy.timeout * 1000:.0f}ms",
                )
            delay = min(delay, remaining)

        log.debug(f"lock busy, retrying in {delay:.2f}s (attempt {attempt})")
        if cancel.wait(delay):
            raise LockAcquisitionError(path, LockFailureReason.CANCELLED, "interrupted")
