"""Sync module - Reconciliation of two directory trees.

Components:
- **PathFilter**: Include/exclude wildcard filtering
- **Comparator**: Classifies file pairs (identical, newer, conflict)
- **ConflictResolver**: Preserves the losing copy of a conflict
- **SyncEngine**: One-way and bidirectional runs
- **SyncState**: Baseline of synced paths for deletion propagation
- **TreeWatcher**: Debounced change detection for watch mode
"""

from syncvault.sync.comparator import CONFLICT_WINDOW_SECONDS, Comparator
from syncvault.sync.conflict import ConflictResolver, conflict_backup_name
from syncvault.sync.engine import SyncEngine
from syncvault.sync.filters import PathFilter, compile_pattern, matches_pattern, should_include
from syncvault.sync.state import SyncState
from syncvault.sync.types import CompareResult, ConflictInfo, SyncResult
from syncvault.sync.watcher import TreeWatcher

__all__ = [
    # Comparison
    "CONFLICT_WINDOW_SECONDS",
    "CompareResult",
    "Comparator",
    # Conflicts
    "ConflictInfo",
    "ConflictResolver",
    "conflict_backup_name",
    # Engine
    "SyncEngine",
    "SyncResult",
    "SyncState",
    # Filters
    "PathFilter",
    "compile_pattern",
    "matches_pattern",
    "should_include",
    # Watch mode
    "TreeWatcher",
]
