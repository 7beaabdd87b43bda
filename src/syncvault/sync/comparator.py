"""File pair comparison by timestamp, size and content hash.

Classification rules:
1. One side missing: not identical, the existing side is newer.
2. Equal mtimes: different sizes are not identical; equal sizes are
   identical iff the SHA-256 hashes match.
3. Different mtimes: not identical, the larger mtime is newer.
4. Not identical and both present: conflict when the mtimes are within
   the conflict window and the hashes differ.

Rule 4 stands in for "both sides changed since the last sync". It is a
proximity heuristic, not a guarantee: two edits made a minute apart on
either side are treated as sequential.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from syncvault.core.hashing import compute_file_hash
from syncvault.sync.types import CompareResult

logger = logging.getLogger(__name__)

# Timestamp proximity below which two divergent copies count as conflicting
CONFLICT_WINDOW_SECONDS = 60.0


def mtime_to_datetime(mtime_ns: int) -> datetime:
    """Convert a nanosecond mtime to an aware UTC datetime."""
    return datetime.fromtimestamp(mtime_ns / 1_000_000_000, tz=UTC)


class Comparator:
    """Classifies a (source, target) file pair."""

    def __init__(self, conflict_window: float = CONFLICT_WINDOW_SECONDS) -> None:
        """Initialize the comparator.

        Args:
            conflict_window: Conflict window in seconds.
        """
        self._conflict_window = conflict_window

    @property
    def conflict_window(self) -> float:
        """Conflict window in seconds."""
        return self._conflict_window

    def file_hash(self, path: Path) -> str:
        """Hash a file (streaming SHA-256).

        Raises:
            OSError: If the file cannot be read.
        """
        return compute_file_hash(path)

    def compare(self, source_path: Path, target_path: Path) -> CompareResult:
        """Compare two files.

        Args:
            source_path: File on the walking side.
            target_path: Counterpart on the other side.

        Returns:
            CompareResult describing the pair.

        Raises:
            OSError: If a file exists but cannot be stat'ed or read.
        """
        source_path = Path(source_path)
        target_path = Path(target_path)
        result = CompareResult(
            source_exists=source_path.is_file(),
            target_exists=target_path.is_file(),
        )

        if not result.source_exists or not result.target_exists:
            result.source_newer = result.source_exists
            result.target_newer = result.target_exists
            if result.source_exists:
                result.source_modified = mtime_to_datetime(source_path.stat().st_mtime_ns)
            if result.target_exists:
                result.target_modified = mtime_to_datetime(target_path.stat().st_mtime_ns)
            return result

        source_stat = os.stat(source_path)
        target_stat = os.stat(target_path)
        result.source_modified = mtime_to_datetime(source_stat.st_mtime_ns)
        result.target_modified = mtime_to_datetime(target_stat.st_mtime_ns)

        if source_stat.st_mtime_ns == target_stat.st_mtime_ns:
            if source_stat.st_size == target_stat.st_size:
                result.source_hash = self.file_hash(source_path)
                result.target_hash = self.file_hash(target_path)
                result.identical = result.source_hash == result.target_hash
        else:
            result.source_newer = source_stat.st_mtime_ns > target_stat.st_mtime_ns
            result.target_newer = target_stat.st_mtime_ns > source_stat.st_mtime_ns

        if not result.identical:
            if not result.source_hash:
                result.source_hash = self.file_hash(source_path)
            if not result.target_hash:
                result.target_hash = self.file_hash(target_path)

            delta_s = abs(source_stat.st_mtime_ns - target_stat.st_mtime_ns) / 1_000_000_000
            result.has_conflict = (
                delta_s < self._conflict_window and result.source_hash != result.target_hash
            )

        if result.has_conflict:
            logger.debug(
                "Conflict candidate: %s vs %s (%.1fs apart)",
                source_path,
                target_path,
                abs(source_stat.st_mtime_ns - target_stat.st_mtime_ns) / 1_000_000_000,
            )
        return result

    def is_newer(self, source_path: Path, target_path: Path) -> bool:
        """Check whether ``source_path`` should replace ``target_path``.

        A missing target always loses; a missing source never wins.
        """
        source_path = Path(source_path)
        target_path = Path(target_path)
        if not source_path.is_file():
            return False
        if not target_path.is_file():
            return True
        return source_path.stat().st_mtime_ns > target_path.stat().st_mtime_ns

    def are_identical(self, source_path: Path, target_path: Path) -> bool:
        """Check whether two files are identical."""
        return self.compare(source_path, target_path).identical
