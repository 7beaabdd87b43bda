"""Shared types and dataclasses for sync operations.

This module provides:
- CompareResult: Classification of a (source, target) file pair
- ConflictInfo: Conflict detection information
- SyncResult: Overall sync run result
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta


@dataclass
class CompareResult:
    """Result of comparing a source file with its target counterpart.

    Attributes:
        identical: Same timestamp, size and content.
        source_newer: Source should win (newer, or the only existing side).
        target_newer: Target should win (newer, or the only existing side).
        has_conflict: Both sides differ and were modified within the
            conflict window.
        source_hash: SHA-256 of the source (empty if not computed).
        target_hash: SHA-256 of the target (empty if not computed).
        source_modified: Source mtime in UTC (None if missing).
        target_modified: Target mtime in UTC (None if missing).
        source_exists: Whether the source file exists.
        target_exists: Whether the target file exists.
    """

    identical: bool = False
    source_newer: bool = False
    target_newer: bool = False
    has_conflict: bool = False
    source_hash: str = ""
    target_hash: str = ""
    source_modified: datetime | None = None
    target_modified: datetime | None = None
    source_exists: bool = False
    target_exists: bool = False


@dataclass
class ConflictInfo:
    """Information about a detected conflict.

    Created during one sync pass and returned in the run result; never
    persisted.

    Attributes:
        file_path: Path of the conflicting file (as walked).
        source_path: Path on the walking side.
        target_path: Path on the other side.
        source_modified: Modification time of the source copy.
        target_modified: Modification time of the target copy.
        source_hash: Content hash of the source copy.
        target_hash: Content hash of the target copy.
        backup_path: Where the losing copy was preserved (empty if none).
        detected_at: When the conflict was detected.
    """

    file_path: str
    source_path: str
    target_path: str
    source_modified: datetime | None = None
    target_modified: datetime | None = None
    source_hash: str = ""
    target_hash: str = ""
    backup_path: str = ""
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class SyncResult:
    """Result of a sync run.

    The counters are owned by the engine for the duration of one
    invocation and returned to the caller when the run ends.
    """

    success: bool = False
    files_synchronized: int = 0
    conflicts_detected: int = 0
    skipped_identical: int = 0
    files_skipped: int = 0
    files_deleted: int = 0
    errors: int = 0
    copied_files: list[str] = field(default_factory=list)
    identical_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    deleted_files: list[str] = field(default_factory=list)
    error_messages: list[str] = field(default_factory=list)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    planned_actions: list[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def duration(self) -> timedelta:
        """Wall-clock duration of the run."""
        end = self.end_time or datetime.now(UTC)
        return end - self.start_time

    def add_error(self, message: str) -> None:
        """Count a per-file or per-directory error."""
        self.errors += 1
        self.error_messages.append(message)

    def finish(self, success: bool) -> SyncResult:
        """Stamp the end time and outcome."""
        self.success = success
        self.end_time = datetime.now(UTC)
        return self
