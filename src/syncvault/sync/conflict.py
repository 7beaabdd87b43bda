"""Conflict handling: preserve both versions, never merge.

When both copies of a file changed within the conflict window, neither
side is allowed to overwrite the other. The copy that would have been
overwritten is preserved in a conflict-backup directory and the user
decides manually which version to keep.

Backup naming: ``<backup_root>/<yyyyMMdd_HHmmss>_<filename>``.
"""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path

from syncvault.sync.comparator import Comparator
from syncvault.sync.types import ConflictInfo

logger = logging.getLogger(__name__)

CONFLICT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def conflict_backup_name(filename: str, when: datetime | None = None) -> str:
    """Generate a conflict backup filename.

    Format: YYYYMMDD_HHMMSS_filename.ext (local time, like the file
    browser shows it).

    Args:
        filename: Original file name.
        when: Detection time (defaults to now).

    Returns:
        Backup file name.
    """
    when = when or datetime.now()
    return f"{when.strftime(CONFLICT_TIMESTAMP_FORMAT)}_{filename}"


class ConflictResolver:
    """Records conflicts and preserves the losing copy."""

    def __init__(self, comparator: Comparator) -> None:
        self._comparator = comparator

    def resolve(
        self,
        source_path: Path,
        target_path: Path,
        backup_root: Path | None = None,
    ) -> ConflictInfo:
        """Handle a conflict between two copies of a file.

        Re-derives hashes and timestamps, copies the file that would have
        been overwritten (the older side, or the target on a tie) into
        ``backup_root`` and leaves both originals untouched.

        Args:
            source_path: Copy on the walking side.
            target_path: Copy on the other side.
            backup_root: Conflict-backup directory; None disables backups.

        Returns:
            ConflictInfo describing the event.

        Raises:
            OSError: If a copy cannot be read or the backup cannot be written.
        """
        source_path = Path(source_path)
        target_path = Path(target_path)
        detected_at = datetime.now(UTC)
        comparison = self._comparator.compare(source_path, target_path)

        conflict = ConflictInfo(
            file_path=str(source_path),
            source_path=str(source_path),
            target_path=str(target_path),
            source_modified=comparison.source_modified,
            target_modified=comparison.target_modified,
            source_hash=comparison.source_hash,
            target_hash=comparison.target_hash,
            detected_at=detected_at,
        )

        if backup_root is not None:
            loser = source_path if comparison.target_newer else target_path
            if loser.is_file():
                conflict.backup_path = str(self._backup(loser, Path(backup_root), detected_at))

        logger.warning(
            "Conflict detected: %s <-> %s - both files have been modified%s",
            source_path,
            target_path,
            f" (backup: {conflict.backup_path})" if conflict.backup_path else "",
        )
        return conflict

    def _backup(self, path: Path, backup_root: Path, detected_at: datetime) -> Path:
        """Copy ``path`` into the backup directory under a free timestamped name."""
        backup_root.mkdir(parents=True, exist_ok=True)
        local_time = detected_at.astimezone()
        backup = backup_root / conflict_backup_name(path.name, local_time)
        counter = 1
        while backup.exists():
            backup = backup_root / conflict_backup_name(f"{counter}_{path.name}", local_time)
            counter += 1
        shutil.copy2(path, backup)
        return backup
