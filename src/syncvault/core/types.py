"""Shared types for syncvault.

This module defines enums used by the sync engine, the history store
and the CLI.
"""

from __future__ import annotations

from enum import Enum


class ChangeType(str, Enum):
    """Kind of destructive event recorded in the history log."""

    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    RENAMED = "Renamed"
    MOVED = "Moved"


class SyncMode(str, Enum):
    """How the two trees are reconciled."""

    ONE_WAY = "one-way"  # Source -> Target, target is subordinate
    BIDIRECTIONAL = "bidirectional"  # Two-way sync

    @classmethod
    def parse(cls, value: str) -> SyncMode:
        """Parse a mode name, accepting the legacy 'simple'/'sync' aliases."""
        aliases = {"simple": cls.ONE_WAY, "sync": cls.BIDIRECTIONAL, "oneway": cls.ONE_WAY}
        normalized = value.strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class SyncDirection(Enum):
    """Walk direction of one bidirectional phase."""

    SOURCE_TO_TARGET = "source_to_target"
    TARGET_TO_SOURCE = "target_to_source"
