"""Restore files from the version history.

Restoring never rewrites history: the preserved bytes are copied back to
the file's canonical location and a new Created record is appended.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from syncvault.core.errors import HistoryWriteError
from syncvault.core.types import ChangeType
from syncvault.history.models import FileVersion
from syncvault.history.store import HistoryStore, canonicalize

logger = logging.getLogger(__name__)

RESTORE_REASON = "Restored from history"


@dataclass
class RestoreResult:
    """Outcome of a restore request.

    Attributes:
        success: Whether the file was written back.
        message: Human-readable summary.
        restored_path: Where the file was restored to.
        source_history_path: Snapshot the bytes came from.
        restored_at: When the restore ran.
        errors: Error messages, if any.
    """

    success: bool
    message: str
    restored_path: str = ""
    source_history_path: str = ""
    restored_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    errors: list[str] = field(default_factory=list)


class RestoreEngine:
    """Finds the right history entry and writes it back."""

    def __init__(self, history: HistoryStore) -> None:
        self._history = history

    def restore(self, path: Path | str, as_of: datetime | None = None) -> RestoreResult:
        """Restore a file from its newest snapshot, or the newest one as of a date.

        Args:
            path: Canonical path of the file to restore.
            as_of: Point in time to restore to (naive values are UTC).

        Returns:
            RestoreResult; failures are reported, not raised.
        """
        if not str(path).strip():
            return RestoreResult(success=False, message="File path is required for restore operation")
        target = canonicalize(path)

        version = self._history.find_restorable(target, as_of)
        if version is None:
            when = f" as of {as_of.isoformat()}" if as_of else ""
            logger.warning("No history found for file: %s%s", target, when)
            return RestoreResult(
                success=False,
                message=f"Failed to restore {target} - no history found{when}",
            )

        snapshot = Path(version.history_path)
        if not snapshot.is_file():
            logger.warning("History file not found: %s", snapshot)
            return RestoreResult(
                success=False,
                message=f"Failed to restore {target} - snapshot {snapshot} no longer exists",
                source_history_path=str(snapshot),
            )

        try:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(snapshot, target)
            self._history.track_change(target, target, ChangeType.CREATED, RESTORE_REASON)
        except (OSError, HistoryWriteError) as e:
            logger.error("Failed to restore file %s: %s", target, e)
            return RestoreResult(
                success=False,
                message=f"Error during restore: {e}",
                source_history_path=str(snapshot),
                errors=[str(e)],
            )

        logger.info("Restored file from history: %s from %s", target, snapshot)
        return RestoreResult(
            success=True,
            message=f"Successfully restored {target}",
            restored_path=target,
            source_history_path=str(snapshot),
        )

    def list_deleted(self) -> list[FileVersion]:
        """All deleted-file records, newest first."""
        return self._history.deleted_files()

    def list_history(self, path: Path | str) -> list[FileVersion]:
        """All records for a file, newest first."""
        return self._history.history(path)
