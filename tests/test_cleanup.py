"""Tests for the cleanup coordinator."""

import logging
import signal
from pathlib import Path
from unittest import mock

import pytest

from mutex_run.core.cleanup import Cleanup
from mutex_run.core.lock_manager import LockReleaseError, try_acquire


class TestCleanup:
    """Tests for Cleanup."""

    def test_releases_then_removes(self, lock_path: Path) -> None:
        """Lock is released and marker removed."""
        handle = try_acquire(lock_path, stale_timeout=600)
        cleanup = Cleanup(lock_path, handle)
        cleanup()
        assert not handle.held
        assert not lock_path.exists()
        assert cleanup.handle is None

    def test_second_call_is_noop(self, lock_path: Path) -> None:
        """Running cleanup twice leaves the same end state."""
        handle = try_acquire(lock_path, stale_timeout=600)
        cleanup = Cleanup(lock_path, handle)
        cleanup()
        cleanup(signal.SIGTERM)
        assert cleanup.done
        assert not lock_path.exists()

    def test_does_not_remove_someone_elses_marker(self, lock_path: Path) -> None:
        """A repeat call never deletes a marker recreated by a later run."""
        cleanup = Cleanup(lock_path, try_acquire(lock_path, stale_timeout=600))
        cleanup()
        with try_acquire(lock_path, stale_timeout=600):
            cleanup()
            assert lock_path.exists()

    def test_release_failure_is_swallowed(self, lock_path: Path) -> None:
        """Release errors are absorbed and removal still happens."""
        handle = try_acquire(lock_path, stale_timeout=600)
        handle.release()
        broken = mock.MagicMock(identity=handle.identity)
        broken.release.side_effect = LockReleaseError("cannot unlock")
        Cleanup(lock_path, broken)()
        assert not lock_path.exists()

    def test_removal_failure_is_swallowed(
        self, lock_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Removal errors are logged at DEBUG and never raised."""
        caplog.set_level(logging.DEBUG)
        handle = try_acquire(lock_path, stale_timeout=600)
        with mock.patch(
            "mutex_run.core.cleanup.remove_lock_file", side_effect=OSError("read-only")
        ):
            Cleanup(lock_path, handle)()
        assert not handle.held
        assert "cleanup error: read-only" in caplog.text

    def test_logs_signal_name(self, lock_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Cleanup triggered by a signal says so."""
        caplog.set_level(logging.DEBUG)
        Cleanup(lock_path, try_acquire(lock_path, stale_timeout=600))(signal.SIGINT)
        assert "cleanup start (SIGINT)" in caplog.text
        assert "lock released" in caplog.text
        assert "lockfile removed" in caplog.text

    def test_unknown_signal_number_still_cleans_up(
        self, lock_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A cancel number that is not a real signal does not abort teardown."""
        caplog.set_level(logging.DEBUG)
        handle = try_acquire(lock_path, stale_timeout=600)
        Cleanup(lock_path, handle)(0)
        assert not handle.held
        assert not lock_path.exists()
        assert "cleanup start (0)" in caplog.text
