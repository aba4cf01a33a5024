"""Pydantic data models for mutex-run.

This package defines the data structures used by the run API:
- Acquisition configuration (AcquisitionPolicy)
- Per-run options (RunOptions, StdioMode)
- Terminal outcome (RunResult)

Example:
    >>> from mutex_run.models import RunOptions
    >>> RunOptions(lock_file="/tmp/build.lock", wait=False).policy().max_retries
    0
"""

from .options import RunOptions, StdioMode
from .policy import AcquisitionPolicy
from .result import RunResult

__all__ = [
    "AcquisitionPolicy",
    "RunOptions",
    "RunResult",
    "StdioMode",
]
