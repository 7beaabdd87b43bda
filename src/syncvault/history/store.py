"""Version history store using SQLAlchemy with SQLite.

This module provides:
- HistoryStore: append-only log of superseded/deleted file versions
- canonicalize: path normalization used for log keys

Architecture:
    Every destructive event is one row in ``file_history``; rows are
    inserted and, during retention cleanup, deleted, but never updated.
    Snapshots (the preserved bytes) live under a history root that
    mirrors each file's directory:

        <history_root>/<relative dir>/<yyyyMMdd_HHmmss>_<filename>

    Write-path failures raise HistoryWriteError. Read-path failures are
    logged and degrade to an empty result.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from syncvault.core.errors import HistoryWriteError
from syncvault.core.hashing import compute_file_hash
from syncvault.core.types import ChangeType
from syncvault.history.models import REASON_MAX_LENGTH, Base, FileHistory, FileVersion, as_utc

if TYPE_CHECKING:
    from sqlalchemy import Engine, Select

logger = logging.getLogger(__name__)

SNAPSHOT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def canonicalize(path: Path | str) -> str:
    """Normalize a path into the form used as a log key.

    Args:
        path: Absolute or relative path.

    Returns:
        Absolute, normalized path string.
    """
    return os.path.abspath(os.fspath(path))


def _utc_now() -> datetime:
    return datetime.now(UTC)


class HistoryStore:
    """Append-only version log plus the physical snapshot tree.

    The store is a single-writer resource: an internal lock serializes
    session use within the process, and at most one run is expected to
    work on a given canonical path at a time.
    """

    def __init__(
        self,
        db_path: Path,
        history_root: Path,
        base_dir: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the history store.

        Args:
            db_path: Path to the SQLite database file.
            history_root: Directory holding snapshot files.
            base_dir: Directory canonical paths are made relative to when
                laying out snapshots (defaults to the current directory).
            clock: Source of "now" (UTC), replaceable in tests.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._history_root = Path(canonicalize(history_root))
        self._base_dir = Path(canonicalize(base_dir if base_dir is not None else Path.cwd()))
        self._clock = clock or _utc_now

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode for better concurrency with readers
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

    @property
    def history_root(self) -> Path:
        """Directory holding snapshot files."""
        return self._history_root

    def initialize(self) -> None:
        """Create the history tables if they don't exist."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise HistoryWriteError(f"Cannot initialize history database {self._db_path}: {e}") from e
        logger.debug("History database initialized: %s", self._db_path)

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    def _now(self) -> datetime:
        return as_utc(self._clock())

    # === Write path ===

    def track_change(
        self,
        path: Path | str,
        canonical_path: Path | str,
        change_type: ChangeType,
        reason: str = "",
    ) -> FileVersion:
        """Append a metadata-only record for ``path``.

        The content hash and size are taken from ``path`` if it still
        exists; otherwise they are recorded empty.

        Args:
            path: Where the file currently is.
            canonical_path: Stable location the file is about.
            change_type: Kind of event.
            reason: Free-text provenance.

        Returns:
            The stored record.

        Raises:
            HistoryWriteError: If the file cannot be read or the record
                cannot be stored.
        """
        current = canonicalize(path)
        file_hash, file_size = self._fingerprint(Path(current))
        row = self._new_row(
            current_path=current,
            canonical_path=canonicalize(canonical_path),
            change_type=change_type,
            file_hash=file_hash,
            file_size=file_size,
            reason=reason,
        )

        with self._lock, self._session() as session:
            try:
                session.add(row)
                session.commit()
                session.refresh(row)
            except (SQLAlchemyError, UnicodeEncodeError) as e:
                session.rollback()
                raise HistoryWriteError(f"Failed to track change for {current}: {e}") from e
            version = FileVersion.from_row(row)

        logger.debug("Tracked file change: %s - %s", current, change_type.value)
        return version

    def move_to_history(
        self,
        path: Path | str,
        canonical_path: Path | str,
        change_type: ChangeType,
        reason: str = "",
    ) -> str:
        """Move a live file into the snapshot tree and record it.

        The record is flushed inside an open transaction, then the file is
        moved, then the transaction commits. A failed move rolls the record
        back; a failed commit moves the file back. Either way no record
        points at a missing snapshot and no snapshot is left unrecorded.

        Args:
            path: Live file about to be overwritten or destroyed.
            canonical_path: Stable location the file is about.
            change_type: Kind of event (Modified, Deleted, ...).
            reason: Free-text provenance.

        Returns:
            The snapshot path, or "" if ``path`` did not exist.

        Raises:
            HistoryWriteError: If the file cannot be preserved or recorded.
        """
        source = Path(canonicalize(path))
        canonical = canonicalize(canonical_path)

        if not source.is_file():
            logger.warning("File does not exist for history tracking: %s", source)
            return ""

        with self._lock:
            file_hash, file_size = self._fingerprint(source)
            snapshot = self._snapshot_path(canonical)
            row = self._new_row(
                current_path=str(snapshot),
                canonical_path=canonical,
                change_type=change_type,
                file_hash=file_hash,
                file_size=file_size,
                reason=reason,
                history_path=str(snapshot),
            )

            with self._session() as session:
                try:
                    session.add(row)
                    session.flush()
                except (SQLAlchemyError, UnicodeEncodeError) as e:
                    session.rollback()
                    raise HistoryWriteError(f"Failed to record snapshot of {source}: {e}") from e

                try:
                    snapshot.parent.mkdir(parents=True, exist_ok=True)
                    shutil.move(str(source), str(snapshot))
                except OSError as e:
                    session.rollback()
                    raise HistoryWriteError(f"Failed to move {source} to history: {e}") from e

                try:
                    session.commit()
                except SQLAlchemyError as e:
                    session.rollback()
                    self._undo_move(snapshot, source)
                    raise HistoryWriteError(f"Failed to commit snapshot of {source}: {e}") from e

        logger.info("Moved file to history: %s -> %s", source, snapshot)
        return str(snapshot)

    def _undo_move(self, snapshot: Path, source: Path) -> None:
        """Put a snapshot back where it came from after a failed commit."""
        try:
            shutil.move(str(snapshot), str(source))
        except OSError:
            logger.exception("Could not move %s back to %s; snapshot is orphaned", snapshot, source)

    def _fingerprint(self, path: Path) -> tuple[str, int]:
        """Hash and size of ``path``, or ("", 0) if it does not exist."""
        if not path.is_file():
            return "", 0
        try:
            return compute_file_hash(path), path.stat().st_size
        except OSError as e:
            raise HistoryWriteError(f"Cannot read {path} for history: {e}") from e

    def _new_row(
        self,
        *,
        current_path: str,
        canonical_path: str,
        change_type: ChangeType,
        file_hash: str,
        file_size: int,
        reason: str,
        history_path: str = "",
    ) -> FileHistory:
        return FileHistory(
            file_path=current_path,
            original_path=canonical_path,
            file_hash=file_hash,
            change_type=change_type.value,
            timestamp=self._now(),
            history_path=history_path,
            file_size=file_size,
            reason=reason[:REASON_MAX_LENGTH],
            is_deleted=change_type == ChangeType.DELETED,
        )

    def _relative_dir(self, canonical_path: str) -> Path:
        """Directory of a canonical path, relative to the base directory.

        Paths outside the base directory keep their full directory with the
        anchor (``/`` or drive) stripped.
        """
        parent = Path(canonical_path).parent
        try:
            return parent.relative_to(self._base_dir)
        except ValueError:
            return Path(*parent.parts[1:]) if parent.is_absolute() else parent

    def _snapshot_path(self, canonical_path: str) -> Path:
        """Pick a free snapshot location for ``canonical_path``."""
        stamp = self._now().strftime(SNAPSHOT_TIMESTAMP_FORMAT)
        name = Path(canonical_path).name
        directory = self._history_root / self._relative_dir(canonical_path)
        candidate = directory / f"{stamp}_{name}"
        counter = 1
        while candidate.exists():
            candidate = directory / f"{stamp}_{counter}_{name}"
            counter += 1
        return candidate

    # === Read path ===

    def _fetch(self, stmt: Select[tuple[FileHistory]], description: str) -> list[FileVersion]:
        """Run a query, degrading to [] on database errors."""
        try:
            with self._lock, self._session() as session:
                rows = session.execute(stmt).scalars().all()
                return [FileVersion.from_row(row) for row in rows]
        except SQLAlchemyError as e:
            logger.warning("Failed to %s: %s", description, e)
            return []

    @staticmethod
    def _newest_first(stmt: Select[tuple[FileHistory]]) -> Select[tuple[FileHistory]]:
        return stmt.order_by(FileHistory.timestamp.desc(), FileHistory.id.desc())

    def history(self, canonical_path: Path | str) -> list[FileVersion]:
        """All records for a canonical path, newest first."""
        key = canonicalize(canonical_path)
        stmt = self._newest_first(select(FileHistory).where(FileHistory.original_path == key))
        return self._fetch(stmt, f"get file history for {key}")

    def deleted_files(self) -> list[FileVersion]:
        """All Deleted records, newest first."""
        stmt = self._newest_first(select(FileHistory).where(FileHistory.is_deleted.is_(True)))
        return self._fetch(stmt, "get deleted files")

    def latest_version(self, canonical_path: Path | str) -> FileVersion | None:
        """Highest-timestamp non-deleted record for a canonical path."""
        key = canonicalize(canonical_path)
        stmt = self._newest_first(
            select(FileHistory).where(
                FileHistory.original_path == key,
                FileHistory.is_deleted.is_(False),
                FileHistory.change_type != ChangeType.DELETED.value,
            )
        ).limit(1)
        found = self._fetch(stmt, f"get latest version of {key}")
        return found[0] if found else None

    def find_restorable(
        self,
        canonical_path: Path | str,
        as_of: datetime | None = None,
    ) -> FileVersion | None:
        """Newest non-deleted record with a snapshot, optionally as of a date.

        Args:
            canonical_path: File to restore.
            as_of: Only consider records at or before this time (naive
                values are read as UTC).

        Returns:
            The record to restore from, or None.
        """
        key = canonicalize(canonical_path)
        stmt = select(FileHistory).where(
            FileHistory.original_path == key,
            FileHistory.is_deleted.is_(False),
            FileHistory.history_path != "",
        )
        if as_of is not None:
            stmt = stmt.where(FileHistory.timestamp <= as_utc(as_of))
        found = self._fetch(self._newest_first(stmt).limit(1), f"find restorable version of {key}")
        return found[0] if found else None

    def search(
        self,
        pattern: str,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[FileVersion]:
        """Records whose canonical or current path contains ``pattern``.

        Args:
            pattern: Substring to look for (empty matches everything).
            from_date: Inclusive lower bound on the event time.
            to_date: Inclusive upper bound on the event time.

        Returns:
            Matching records, newest first.
        """
        stmt = select(FileHistory)
        if pattern:
            stmt = stmt.where(
                or_(
                    FileHistory.original_path.contains(pattern, autoescape=True),
                    FileHistory.file_path.contains(pattern, autoescape=True),
                )
            )
        if from_date is not None:
            stmt = stmt.where(FileHistory.timestamp >= as_utc(from_date))
        if to_date is not None:
            stmt = stmt.where(FileHistory.timestamp <= as_utc(to_date))
        return self._fetch(self._newest_first(stmt), f"search history for {pattern!r}")

    def find_orphans(self) -> list[Path]:
        """Snapshot files on disk that no record points at."""
        if not self._history_root.exists():
            return []
        stmt = select(FileHistory.history_path).where(FileHistory.history_path != "")
        try:
            with self._lock, self._session() as session:
                referenced = {canonicalize(p) for p in session.execute(stmt).scalars().all()}
        except SQLAlchemyError as e:
            logger.warning("Failed to list snapshot paths: %s", e)
            return []
        return sorted(
            path
            for path in self._history_root.rglob("*")
            if path.is_file() and canonicalize(path) not in referenced
        )

    # === Retention ===

    def cleanup_expired(self, retention_days: int) -> int:
        """Delete records (and their snapshots) older than the retention period.

        Snapshot deletion is best effort: a snapshot that cannot be removed
        is logged and its record is kept, so the log never points at a file
        it believes is gone. The cleanup always runs to completion.

        Args:
            retention_days: Keep records newer than this many days.

        Returns:
            Number of records removed.

        Raises:
            HistoryWriteError: If the deletions cannot be committed.
        """
        cutoff = self._now() - timedelta(days=retention_days)
        removed = 0

        with self._lock, self._session() as session:
            try:
                stmt = select(FileHistory).where(FileHistory.timestamp < cutoff)
                expired = list(session.execute(stmt).scalars().all())
                for row in expired:
                    if row.history_path and not self._remove_snapshot(Path(row.history_path)):
                        continue
                    session.delete(row)
                    removed += 1
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise HistoryWriteError(f"Failed to clean up expired history: {e}") from e

        if removed:
            logger.info("Cleaned up %d expired history records (retention: %d days)", removed, retention_days)
        else:
            logger.debug("History cleanup: no records older than %d days", retention_days)
        return removed

    def _remove_snapshot(self, snapshot: Path) -> bool:
        """Delete a snapshot file and prune empty directories above it."""
        try:
            snapshot.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to clean up history file %s: %s", snapshot, e)
            return False

        parent = snapshot.parent
        while parent != self._history_root and self._history_root in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
        return True
