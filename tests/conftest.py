"""Shared test fixtures for mutex-run tests."""

import subprocess
import sys
import time
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mutex_run.core import LockAcquisitionError, LockHandle, try_acquire


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    """Path for a marker file that does not exist yet."""
    return tmp_path / "locks" / "test.lock"


@pytest.fixture
def held_lock(lock_path: Path) -> Generator[LockHandle, None, None]:
    """Hold the lock at ``lock_path`` for the duration of the test."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    handle = try_acquire(lock_path, stale_timeout=600)
    try:
        yield handle
    finally:
        handle.release()


def wait_until_held(path: Path, timeout: float = 10.0) -> None:
    """Block until another process holds the lock at ``path``."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if path.exists():
            try:
                attempt = try_acquire(path, stale_timeout=600)
            except LockAcquisitionError:
                return
            attempt.release()
        time.sleep(0.05)
    raise AssertionError(f"lock at {path} was never taken")


def start_cli(*args: str) -> subprocess.Popen[bytes]:
    """Start ``python -m mutex_run`` as a separate process."""
    return subprocess.Popen(
        [sys.executable, "-m", "mutex_run", "--no-color", *args],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
