"""Tests for history retention cleanup scheduling."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from syncvault.core.errors import HistoryWriteError
from syncvault.core.types import ChangeType
from syncvault.history.scheduler import HistoryCleanupScheduler, cleanup_history
from syncvault.history.store import HistoryStore


class TestCleanupHistory:
    """Tests for cleanup_history function."""

    def test_removes_expired(
        self, history: HistoryStore, clock, tmp_path: Path, make_file: Callable[..., Path]
    ) -> None:
        """Should remove records older than the retention period."""
        path = make_file(tmp_path / "a.txt")
        history.move_to_history(path, path, ChangeType.MODIFIED)
        clock.advance(days=31)

        assert cleanup_history(history, 30) == 1
        assert history.search("") == []

    def test_keeps_recent(
        self, history: HistoryStore, tmp_path: Path, make_file: Callable[..., Path]
    ) -> None:
        """Should keep records inside the retention period."""
        path = make_file(tmp_path / "a.txt")
        history.move_to_history(path, path, ChangeType.MODIFIED)

        assert cleanup_history(history, 30) == 0


class TestHistoryCleanupScheduler:
    """Tests for HistoryCleanupScheduler class."""

    def test_start_stop(self, history: HistoryStore) -> None:
        """Should start and stop cleanly."""
        scheduler = HistoryCleanupScheduler(history, retention_days=30, interval_hours=1)
        assert scheduler.is_running is False

        scheduler.start()
        assert scheduler.is_running is True

        scheduler.start()  # Already running, no-op
        assert scheduler.is_running is True

        scheduler.stop()
        assert scheduler.is_running is False

    def test_run_now(
        self, history: HistoryStore, clock, tmp_path: Path, make_file: Callable[..., Path]
    ) -> None:
        """run_now should clean up immediately."""
        path = make_file(tmp_path / "a.txt")
        history.move_to_history(path, path, ChangeType.MODIFIED)
        clock.advance(days=8)

        assert HistoryCleanupScheduler(history, retention_days=7).run_now() == 1

    def test_job_logs_failures(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing scheduled cleanup should be logged, not raised."""
        store = MagicMock()
        store.cleanup_expired.side_effect = HistoryWriteError("database is locked")
        scheduler = HistoryCleanupScheduler(store)

        scheduler._cleanup_job()

        assert "Error during scheduled history cleanup" in caplog.text
