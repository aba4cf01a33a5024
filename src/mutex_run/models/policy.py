"""Acquisition policy model.

Describes how a single lock acquisition behaves: whether to wait, how long
to wait overall, when a marker counts as stale, and how retries back off.
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..constants import (
    MAX_RETRY_INTERVAL,
    MAX_WAIT_BUDGET,
    RETRY_FACTOR,
    RETRY_INTERVAL,
)


class AcquisitionPolicy(BaseModel):
    """Immutable configuration for one acquisition.

    Attributes:
        wait: Retry while the lock is held instead of failing fast.
        timeout: Overall deadline in seconds (0 = no deadline).
        stale_timeout: Markers older than this many seconds may be taken over.
        retry_interval: Delay before the first retry, in seconds.
        max_retry_interval: Upper bound for any single delay, in seconds.
        factor: Multiplier applied to the delay after each failed attempt.
    """

    model_config = ConfigDict(frozen=True)

    wait: bool = True
    timeout: float = Field(default=0.0, ge=0)
    stale_timeout: float = Field(default=600.0, gt=0)
    retry_interval: float = Field(default=RETRY_INTERVAL, gt=0)
    max_retry_interval: float = Field(default=MAX_RETRY_INTERVAL, gt=0)
    factor: float = Field(default=RETRY_FACTOR, ge=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def max_retries(self) -> int:
        """Retry cap: ~MAX_WAIT_BUDGET of waiting at the maximum interval."""
        if not self.wait:
            return 0
        return int(MAX_WAIT_BUDGET // self.max_retry_interval)

    @property
    def has_deadline(self) -> bool:
        return self.timeout > 0
