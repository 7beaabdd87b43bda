"""Sync baseline for deletion propagation.

This module provides:
- SyncState: SQLite-based record of which paths were in sync per root pair

Architecture:
    After every real bidirectional run the engine stores, for the
    (source root, target root) pair, the relative paths that ended the
    run present and identical on both sides. On the next run a baseline
    path that exists on only one side must have been deleted on the
    other, which is what lets deletions propagate instead of the missing
    copy being recreated.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class SyncState:
    """SQLite-based baseline of synced paths, keyed by root pair."""

    def __init__(self, db_path: Path) -> None:
        """Initialize the baseline database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS synced_paths (
                source_root TEXT NOT NULL,
                target_root TEXT NOT NULL,
                rel_path TEXT NOT NULL,
                synced_at REAL NOT NULL,
                PRIMARY KEY (source_root, target_root, rel_path)
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def get_synced_paths(self, source_root: str, target_root: str) -> set[str]:
        """Relative paths that were in sync at the end of the last run.

        Args:
            source_root: Canonical source root.
            target_root: Canonical target root.

        Returns:
            Set of POSIX-style relative paths.
        """
        with self._lock:
            cursor = self._conn.execute(
                "SELECT rel_path FROM synced_paths WHERE source_root = ? AND target_root = ?",
                (source_root, target_root),
            )
            rows = cursor.fetchall()
        return {row["rel_path"] for row in rows}

    def replace_synced_paths(self, source_root: str, target_root: str, paths: Iterable[str]) -> None:
        """Replace the baseline of a root pair in one transaction."""
        now = time.time()
        rows = [(source_root, target_root, path, now) for path in sorted(set(paths))]
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                self._conn.execute(
                    "DELETE FROM synced_paths WHERE source_root = ? AND target_root = ?",
                    (source_root, target_root),
                )
                self._conn.executemany(
                    "INSERT INTO synced_paths (source_root, target_root, rel_path, synced_at) "
                    "VALUES (?, ?, ?, ?)",
                    rows,
                )
            except sqlite3.Error:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")
        logger.debug("Stored baseline of %d paths for %s <-> %s", len(rows), source_root, target_root)

    def remove_path(self, source_root: str, target_root: str, rel_path: str) -> None:
        """Drop one path from a root pair's baseline."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM synced_paths WHERE source_root = ? AND target_root = ? AND rel_path = ?",
                (source_root, target_root, rel_path),
            )

    def clear(self, source_root: str, target_root: str) -> None:
        """Forget the baseline of a root pair."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM synced_paths WHERE source_root = ? AND target_root = ?",
                (source_root, target_root),
            )
