"""Shared fixtures for syncvault tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from syncvault.history.store import HistoryStore

# Fixed mtime base for deterministic comparisons (2023-11-14)
BASE_MTIME = 1_700_000_000


class FakeClock:
    """Controllable UTC clock for the history store."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def history(tmp_path: Path, clock: FakeClock) -> Iterator[HistoryStore]:
    """Create an initialized history store under tmp_path."""
    store = HistoryStore(
        tmp_path / "state" / "history.db",
        tmp_path / "state" / "history",
        base_dir=tmp_path,
        clock=clock,
    )
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Return a helper that writes a file and optionally sets its mtime."""

    def _make(path: Path, content: str | bytes = "content", mtime: float | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make


@pytest.fixture
def roots(tmp_path: Path) -> tuple[Path, Path]:
    """Create empty source and target roots."""
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    return source, target
