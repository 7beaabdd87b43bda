"""Exception classes shared by the sync and history components."""

from __future__ import annotations


class SyncVaultError(Exception):
    """Base exception for syncvault errors."""


class ValidationError(SyncVaultError):
    """Run configuration is invalid (e.g. the source root does not exist).

    Raised before any file is touched.
    """


class FileOperationError(SyncVaultError):
    """A single file could not be compared, copied or moved.

    Attributes:
        path: File the operation failed on.
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class ConfigError(SyncVaultError):
    """Configuration file is unreadable or malformed."""


class HistoryError(SyncVaultError):
    """Base exception for history store errors."""


class HistoryWriteError(HistoryError):
    """A destructive change could not be recorded in the history log."""