"""Configuration classes for syncvault.

A run is described by a base copy configuration (``CopyOptions``) plus an
optional sync-specific configuration (``SyncSettings``) passed alongside
it. History tracking is configured separately (``HistorySettings``)
because the restore and cleanup commands need it without any copy
options.

Values come from three layers: dataclass defaults, a JSON config file,
and command-line overrides (highest priority).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from syncvault.core.errors import ConfigError
from syncvault.core.types import SyncMode

DEFAULT_CONFLICT_DIR = "conflicts"
DEFAULT_RETENTION_DAYS = 30


@dataclass
class CopyOptions:
    """Base configuration shared by one-way and bidirectional runs.

    Attributes:
        source_path: Root of the source tree (must exist).
        target_path: Root of the target tree (created if missing).
        include_patterns: Wildcard patterns a file must match (if any).
        exclude_patterns: Wildcard patterns that exclude a file or directory.
        overwrite_existing: Whether existing target files may be replaced.
        log_file: Optional per-run operation log file.
    """

    source_path: Path
    target_path: Path
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    overwrite_existing: bool = True
    log_file: Path | None = None

    def __post_init__(self) -> None:
        """Normalize path fields."""
        self.source_path = Path(self.source_path).expanduser()
        self.target_path = Path(self.target_path).expanduser()
        if self.log_file is not None:
            self.log_file = Path(self.log_file).expanduser()


@dataclass
class SyncSettings:
    """Sync-specific configuration passed alongside ``CopyOptions``.

    Attributes:
        mode: One-way or bidirectional reconciliation.
        dry_run: Classify only, never write.
        deletion_sync: Propagate deletions of previously synced files.
        create_conflict_backups: Preserve the losing copy of a conflict.
        conflict_backup_dir: Directory name (under the source root) for
            conflict backups.
    """

    mode: SyncMode = SyncMode.BIDIRECTIONAL
    dry_run: bool = False
    deletion_sync: bool = False
    create_conflict_backups: bool = True
    conflict_backup_dir: str = DEFAULT_CONFLICT_DIR

    def __post_init__(self) -> None:
        if isinstance(self.mode, str) and not isinstance(self.mode, SyncMode):
            self.mode = SyncMode.parse(self.mode)


@dataclass
class HistorySettings:
    """Configuration of the version history store."""

    enabled: bool = True
    retention_days: int = DEFAULT_RETENTION_DAYS
    directory: Path | None = None  # defaults to <home>/history
    database: Path | None = None  # defaults to <home>/history.db
    auto_cleanup: bool = True
    cleanup_interval_hours: int = 24

    def resolve(self, home: Path) -> HistorySettings:
        """Return a copy with default locations filled in relative to ``home``."""
        directory = Path(self.directory).expanduser() if self.directory else home / "history"
        database = Path(self.database).expanduser() if self.database else home / "history.db"
        if not directory.is_absolute():
            directory = home / directory
        if not database.is_absolute():
            database = home / database
        return HistorySettings(
            enabled=self.enabled,
            retention_days=self.retention_days,
            directory=directory,
            database=database,
            auto_cleanup=self.auto_cleanup,
            cleanup_interval_hours=self.cleanup_interval_hours,
        )


def load_config(path: Path | None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        path: Config file path. ``None`` or a missing file yields ``{}``.

    Returns:
        Parsed configuration mapping.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    if path is None or not Path(path).exists():
        return {}
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _layer(cls: type, file_values: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge file values and overrides for the fields of a dataclass.

    ``None`` overrides are ignored so unset command-line options never
    clobber the config file.
    """
    names = {f.name for f in fields(cls)}
    merged = {k: v for k, v in file_values.items() if k in names}
    merged.update({k: v for k, v in overrides.items() if k in names and v is not None})
    return merged


def build_copy_options(config: dict[str, Any], **overrides: Any) -> CopyOptions:
    """Build ``CopyOptions`` from config values and command-line overrides.

    Raises:
        ConfigError: If source or target path is missing from both layers.
    """
    values = _layer(CopyOptions, config, overrides)
    for required in ("source_path", "target_path"):
        if not values.get(required):
            raise ConfigError(f"Missing required setting: {required}")
    return CopyOptions(**values)


def build_sync_settings(config: dict[str, Any], **overrides: Any) -> SyncSettings:
    """Build ``SyncSettings`` from config values and command-line overrides."""
    try:
        return SyncSettings(**_layer(SyncSettings, config, overrides))
    except ValueError as e:
        raise ConfigError(f"Invalid sync setting: {e}") from e


def build_history_settings(config: dict[str, Any], **overrides: Any) -> HistorySettings:
    """Build ``HistorySettings`` from the ``history`` section and overrides."""
    section = config.get("history") or {}
    if not isinstance(section, dict):
        raise ConfigError("The 'history' config section must be an object")
    return HistorySettings(**_layer(HistorySettings, section, overrides))
