"""Core module - Shared configuration, errors, hashing and types."""

from syncvault.core.config import (
    CopyOptions,
    HistorySettings,
    SyncSettings,
    build_copy_options,
    build_history_settings,
    build_sync_settings,
    load_config,
)
from syncvault.core.errors import (
    ConfigError,
    FileOperationError,
    HistoryError,
    HistoryWriteError,
    SyncVaultError,
    ValidationError,
)
from syncvault.core.hashing import compute_file_hash
from syncvault.core.types import ChangeType, SyncDirection, SyncMode

__all__ = [
    # Config
    "CopyOptions",
    "HistorySettings",
    "SyncSettings",
    "build_copy_options",
    "build_history_settings",
    "build_sync_settings",
    "load_config",
    # Errors
    "ConfigError",
    "FileOperationError",
    "HistoryError",
    "HistoryWriteError",
    "SyncVaultError",
    "ValidationError",
    # Hashing
    "compute_file_hash",
    # Types
    "ChangeType",
    "SyncDirection",
    "SyncMode",
]
