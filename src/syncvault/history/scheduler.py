"""Scheduler for automatic history retention cleanup.

This module provides:
- cleanup_history: One-shot cleanup with logging
- HistoryCleanupScheduler: Periodic cleanup while a watch session runs
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from syncvault.core.errors import HistoryWriteError

if TYPE_CHECKING:
    from syncvault.history.store import HistoryStore

logger = logging.getLogger(__name__)


def cleanup_history(store: HistoryStore, retention_days: int) -> int:
    """Remove expired history records and snapshots.

    Args:
        store: History store to clean.
        retention_days: Keep records newer than this many days.

    Returns:
        Number of records removed.
    """
    logger.info("Starting history cleanup (retention: %d days)", retention_days)
    removed = store.cleanup_expired(retention_days)
    logger.info("History cleanup completed: %d records removed", removed)
    return removed


class HistoryCleanupScheduler:
    """Runs history cleanup on a fixed interval in the background."""

    def __init__(
        self,
        store: HistoryStore,
        retention_days: int = 30,
        interval_hours: int = 24,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: History store to clean.
            retention_days: Number of days to retain history records.
            interval_hours: Hours between cleanup runs.
        """
        self._store = store
        self._retention_days = retention_days
        self._interval_hours = interval_hours
        self._scheduler: BackgroundScheduler | None = None

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._scheduler is not None

    def _cleanup_job(self) -> None:
        """Job function for scheduled cleanup."""
        try:
            cleanup_history(self._store, self._retention_days)
        except HistoryWriteError:
            logger.exception("Error during scheduled history cleanup")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._cleanup_job,
            trigger=IntervalTrigger(hours=self._interval_hours),
            id="history_cleanup",
            name="History retention cleanup",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "History cleanup scheduler started (every %d hours, retention: %d days)",
            self._interval_hours,
            self._retention_days,
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("History cleanup scheduler stopped")

    def run_now(self) -> int:
        """Run the cleanup immediately (manual trigger).

        Returns:
            Number of records removed.
        """
        return cleanup_history(self._store, self._retention_days)
