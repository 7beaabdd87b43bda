"""Configuration utilities for the SyncVault CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

from syncvault.core.config import HistorySettings, build_history_settings, load_config
from syncvault.core.errors import ConfigError
from syncvault.history.store import HistoryStore
from syncvault.sync.state import SyncState

HOME_ENV_VAR = "SYNCVAULT_HOME"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_home_dir(home: Path | None = None) -> Path:
    """Get the state directory for SyncVault.

    Returns:
        ``home`` if given, else $SYNCVAULT_HOME, else ~/.syncvault.
    """
    if home is not None:
        return Path(home).expanduser()
    env = os.environ.get(HOME_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".syncvault"


def get_config_file(home: Path) -> Path:
    """Get the path to the default config file."""
    return home / "config.json"


def setup_logging(level: str = "INFO") -> None:
    """Configure the ``syncvault`` logger to write to stderr.

    Args:
        level: Logging level name.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("syncvault")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Replace handlers from a previous invocation in the same process
    for handler in root_logger.handlers[:]:
        if getattr(handler, "_syncvault_cli", False):
            root_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler._syncvault_cli = True  # type: ignore[attr-defined]
    root_logger.addHandler(stderr_handler)


class CliContext:
    """State shared by all commands of one invocation."""

    def __init__(self, home: Path, config: dict[str, Any]) -> None:
        self.home = home
        self.config = config

    def history_settings(self, **overrides: Any) -> HistorySettings:
        """History settings from the config file, overrides and home dir."""
        return build_history_settings(self.config, **overrides).resolve(self.home)

    def open_history(self, settings: HistorySettings | None = None) -> HistoryStore:
        """Open and initialize the history store."""
        settings = settings or self.history_settings()
        if settings.database is None or settings.directory is None:
            raise ConfigError("History locations are not resolved against a home directory")
        store = HistoryStore(
            settings.database,
            settings.directory,
            base_dir=Path(Path(settings.directory).anchor or "/"),
        )
        store.initialize()
        return store

    def open_state(self) -> SyncState:
        """Open the sync baseline database."""
        return SyncState(self.home / "state.db")


def load_cli_context(home: Path | None, config_path: Path | None) -> CliContext:
    """Resolve the home directory and load the config file.

    Raises:
        ConfigError: If the config file cannot be parsed.
    """
    home_dir = get_home_dir(home)
    config = load_config(config_path or get_config_file(home_dir))
    return CliContext(home_dir, config)
