"""Operation log sink for file operations and errors.

Every copy, snapshot and per-file failure of a run is reported here. The
messages go to the ``syncvault.operations`` logger; when a run log file
is configured, a ``logging.FileHandler`` is attached for the duration of
the run so the file holds a plain record of what was done.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

OPERATIONS_LOGGER = "syncvault.operations"

LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class OperationLog:
    """Side-effect-only logging sink used by the sync engine."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(OPERATIONS_LOGGER)
        self._file_handler: logging.FileHandler | None = None
        self._log_path: Path | None = None

    @property
    def log_path(self) -> Path | None:
        """Path of the active run log file, if any."""
        return self._log_path

    def initialize(self, log_file: Path) -> None:
        """Start writing operations to ``log_file``.

        The file is truncated and starts with a header line. Failures to
        open the file are logged and otherwise ignored.
        """
        self.close()
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            header = (
                f"SyncVault Log - Started at {datetime.now():{LOG_DATE_FORMAT}}\n"
                + "=" * 60
                + "\n"
            )
            log_file.write_text(header, encoding="utf-8")
            handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            self._logger.error("Failed to initialize log file %s: %s", log_file, e)
            return

        handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        self._logger.addHandler(handler)
        if self._logger.level == logging.NOTSET or self._logger.level > logging.INFO:
            self._logger.setLevel(logging.INFO)
        self._file_handler = handler
        self._log_path = log_file
        self._logger.info("Log file initialized: %s", log_file)

    def log_file_operation(self, operation: str, source_path: Path | str, target_path: Path | str) -> None:
        """Record a file operation such as a copy or a snapshot."""
        self._logger.info("%s file: %s -> %s", operation, source_path, target_path)

    def log_error(self, message: str, exc: BaseException | None = None) -> None:
        """Record a failure, with the exception text when available."""
        if exc is not None:
            self._logger.error("%s - %s", message, exc)
        else:
            self._logger.error("%s", message)

    def log_warning(self, message: str) -> None:
        """Record a warning."""
        self._logger.warning("%s", message)

    def close(self) -> None:
        """Detach and close the run log file handler."""
        if self._file_handler is not None:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None
            self._log_path = None

    def __enter__(self) -> OperationLog:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
