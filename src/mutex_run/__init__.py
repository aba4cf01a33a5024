"""mutex-run: run a command under a cross-process file lock."""

import logging

from .core import CancelToken, LockAcquisitionError, LockFailureReason
from .models import RunOptions, RunResult, StdioMode
from .runner import run
from .services import NoCommandError

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CancelToken",
    "LockAcquisitionError",
    "LockFailureReason",
    "NoCommandError",
    "RunOptions",
    "RunResult",
    "StdioMode",
    "__version__",
    "run",
]
