"""Version history: append-only log, snapshots, restore and retention.

Components:
- **HistoryStore**: SQLite log of destructive events plus the snapshot tree
- **RestoreEngine**: Writes a preserved version back to its original location
- **HistoryCleanupScheduler**: Periodic retention cleanup
"""

from syncvault.history.models import FileVersion
from syncvault.history.restore import RestoreEngine, RestoreResult
from syncvault.history.scheduler import HistoryCleanupScheduler, cleanup_history
from syncvault.history.store import HistoryStore, canonicalize

__all__ = [
    "FileVersion",
    "HistoryCleanupScheduler",
    "HistoryStore",
    "RestoreEngine",
    "RestoreResult",
    "canonicalize",
    "cleanup_history",
]
