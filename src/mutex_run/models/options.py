"""Options accepted by the run API."""

import logging
import os
import sys
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_LOCK_FILE, DEFAULT_STALE_TIMEOUT_MS, DEFAULT_TIMEOUT_MS
from .policy import AcquisitionPolicy


class StdioMode(str, Enum):
    """How the child's standard streams are wired."""

    INHERIT = "inherit"
    PIPE = "pipe"
    IGNORE = "ignore"


class RunOptions(BaseModel):
    """Configuration for one guarded run.

    Durations are in milliseconds, matching the command line flags.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    lock_file: str | Path = DEFAULT_LOCK_FILE
    wait: bool = True
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, ge=0, description="0 = no deadline")
    stale_timeout: int = Field(default=DEFAULT_STALE_TIMEOUT_MS, gt=0)
    cwd: Path | None = None
    env: dict[str, str] | None = None
    shell: bool | None = Field(default=None, description="None = decide from command form")
    stdio: StdioMode = StdioMode.INHERIT
    logger: logging.Logger | None = None
    handle_signals: bool = False
    on_acquired: Callable[[], None] | None = Field(
        default=None, description="Called once the lock is held, before the command starts"
    )

    @property
    def lock_path(self) -> Path:
        """Absolute marker path. Symlinks are deliberately left unresolved."""
        return Path(os.path.abspath(os.fspath(self.lock_file)))

    def use_shell(self, command: str | Sequence[str]) -> bool:
        """Return whether the command should go through the shell."""
        if self.shell is not None:
            return self.shell
        return isinstance(command, str) or sys.platform == "win32"

    def policy(self) -> AcquisitionPolicy:
        """Build the acquisition policy for these options."""
        return AcquisitionPolicy(
            wait=self.wait,
            timeout=self.timeout / 1000,
            stale_timeout=self.stale_timeout / 1000,
        )
