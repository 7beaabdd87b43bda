"""File system watcher with debouncing for watch mode.

This module provides:
- TreeWatcher: Watches the sync roots using watchdog
- Sync delay: Waits 3s after the last change before calling back
- Ignored directories: events under the history or conflict directories
  are dropped
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)


def _event_path(raw: str | bytes) -> Path:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return Path(raw)


class DebouncedEventHandler(FileSystemEventHandler):
    """Collects changed paths and flushes them once things go quiet."""

    def __init__(
        self,
        on_change: Callable[[list[Path]], None],
        delay_s: float = 3.0,
        ignore: Iterable[Path] | None = None,
    ) -> None:
        """Initialize the debounced handler.

        Args:
            on_change: Callback receiving the changed paths.
            delay_s: Quiet period after the last event before calling back.
            ignore: Directories whose events are dropped.
        """
        super().__init__()
        self._on_change = on_change
        self._delay_s = delay_s
        self._ignore = [Path(p) for p in (ignore or [])]

        self._pending: dict[str, Path] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def is_ignored(self, path: Path) -> bool:
        """Check if a path lies in an ignored directory."""
        return any(path == root or root in path.parents for root in self._ignore)

    def _schedule_flush(self) -> None:
        """Restart the quiet-period timer."""
        if self._timer:
            self._timer.cancel()

        self._timer = threading.Timer(self._delay_s, self.flush)
        self._timer.daemon = True
        self._timer.start()

    def flush(self) -> None:
        """Hand pending paths to the callback."""
        with self._lock:
            if not self._pending:
                return
            changes = list(self._pending.values())
            self._pending.clear()
            self._timer = None

        # Call callback outside lock
        self._on_change(changes)

    def discard_pending(self) -> None:
        """Drop collected events, e.g. the ones caused by our own writes."""
        with self._lock:
            self._pending.clear()
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in ("created", "modified", "deleted", "moved"):
            return

        paths = [_event_path(event.src_path)]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(_event_path(dest))

        with self._lock:
            added = False
            for path in paths:
                if self.is_ignored(path):
                    continue
                self._pending[str(path)] = path
                added = True
            if added:
                self._schedule_flush()

    def stop(self) -> None:
        """Stop any pending timers."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None


class TreeWatcher:
    """Watches one or more directory trees and reports changes in batches."""

    def __init__(
        self,
        paths: Iterable[Path],
        on_change: Callable[[list[Path]], None],
        delay_s: float = 3.0,
        ignore: Iterable[Path] | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            paths: Directories to watch recursively.
            on_change: Callback when changes are ready to sync.
            delay_s: Delay after last change before calling back.
            ignore: Directories whose events are dropped.

        Raises:
            ValueError: If a watch path is not a directory.
        """
        self._paths = [Path(p).resolve() for p in paths]
        for path in self._paths:
            if not path.is_dir():
                raise ValueError(f"Watch path must be a directory: {path}")

        self._handler = DebouncedEventHandler(
            on_change=on_change,
            delay_s=delay_s,
            ignore=[Path(p).resolve() for p in (ignore or [])],
        )
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def paths(self) -> list[Path]:
        """Get the watched directories."""
        return list(self._paths)

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def discard_pending(self) -> None:
        """Forget events collected so far."""
        self._handler.discard_pending()

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return

        for path in self._paths:
            self._observer.schedule(self._handler, str(path), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("Watching for changes: %s", ", ".join(str(p) for p in self._paths))

    def stop(self) -> None:
        """Stop watching for changes."""
        if not self._running:
            return

        self._handler.stop()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> TreeWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
