"""Cancellation context shared by the acquisition wait and the child wait.

Signal handlers are process-global, so instead of each run installing its own
listeners the signals are funnelled into a CancelToken. Whoever owns the token
decides what a signal means: the retry loop stops waiting, the supervisor
forwards the signal to its child.
"""

import contextlib
import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator

from ..constants import CANCEL_POLL_INTERVAL

logger = logging.getLogger(__name__)

FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

CancelCallback = Callable[[int | None], None]


class CancelToken:
    """Cooperative cancellation flag with signal-forwarding callbacks.

    ``cancel`` only flips a flag and calls subscribers, so it is safe to call
    from a signal handler.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[CancelCallback] = []
        self.signum: int | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, signum: int | None = None) -> None:
        """Mark the token cancelled and notify subscribers.

        Every call notifies again, so a second Ctrl+C is forwarded as well.
        """
        if signum is not None:
            self.signum = signum
        self._cancelled = True
        for callback in list(self._callbacks):
            callback(signum)

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early if cancelled.

        Returns:
            True if the token is cancelled
        """
        deadline = time.monotonic() + timeout
        while not self._cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(remaining, CANCEL_POLL_INTERVAL))
        return self._cancelled

    @contextlib.contextmanager
    def subscribed(self, callback: CancelCallback) -> Iterator[None]:
        """Register ``callback`` for the duration of the block."""
        self._callbacks.append(callback)
        try:
            yield
        finally:
            self._callbacks.remove(callback)


@contextlib.contextmanager
def signal_handlers(token: CancelToken) -> Iterator[CancelToken]:
    """Route SIGINT/SIGTERM into ``token`` for the duration of the block.

    Previous handlers are restored on exit. Outside the main thread signal
    handlers cannot be installed, so the block runs without them.
    """
    if threading.current_thread() is not threading.main_thread():
        logger.debug("not on main thread, signal handlers not installed")
        yield token
        return

    def _handle(signum: int, _frame: object) -> None:
        token.cancel(signum)

    original = {sig: signal.signal(sig, _handle) for sig in FORWARDED_SIGNALS}
    try:
        yield token
    finally:
        for sig, handler in original.items():
            signal.signal(sig, handler)
