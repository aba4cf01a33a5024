"""Constants for mutex-run."""

DEFAULT_LOCK_FILE = ".mutex-run.lock"
LOCK_FILE_ENV = "MUTEX_RUN_LOCK"
LOG_PREFIX = "[mutex-run]"

# Acquisition defaults (milliseconds, as exposed on the CLI)
DEFAULT_TIMEOUT_MS = 0  # 0 = no overall deadline
DEFAULT_STALE_TIMEOUT_MS = 600_000  # 10 minutes

# Retry tuning (seconds)
RETRY_INTERVAL = 1.0
MAX_RETRY_INTERVAL = 3.0
RETRY_FACTOR = 1.1
MAX_WAIT_BUDGET = 3600.0  # retries are capped at ~1 hour of waiting

# Takeover of a stale marker replaces the file; a few inode races are tolerated
MAX_ACQUIRE_ATTEMPTS = 3

# Exit codes
EXIT_LOCK_FAILED = 1
EXIT_NO_COMMAND = 1
EXIT_FALLBACK = 1

# Granularity of cancellable sleeps (seconds)
CANCEL_POLL_INTERVAL = 0.05
