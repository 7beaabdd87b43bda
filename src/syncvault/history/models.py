"""SQLAlchemy models for the version history log.

This module defines the database schema using SQLAlchemy ORM, plus the
detached ``FileVersion`` value returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from syncvault.core.types import ChangeType

PATH_MAX_LENGTH = 500
HASH_MAX_LENGTH = 64
CHANGE_TYPE_MAX_LENGTH = 20
REASON_MAX_LENGTH = 100


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class FileHistory(Base):
    """One entry per destructive event. Rows are never updated."""

    __tablename__ = "file_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_path: Mapped[str] = mapped_column(String(PATH_MAX_LENGTH), nullable=False)
    original_path: Mapped[str] = mapped_column(String(PATH_MAX_LENGTH), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(HASH_MAX_LENGTH), nullable=False, default="")
    change_type: Mapped[str] = mapped_column(String(CHANGE_TYPE_MAX_LENGTH), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    history_path: Mapped[str] = mapped_column(String(PATH_MAX_LENGTH), nullable=False, default="")
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reason: Mapped[str] = mapped_column(String(REASON_MAX_LENGTH), nullable=False, default="")
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Indexes
    __table_args__ = (
        Index("idx_history_file_path", "file_path"),
        Index("idx_history_original_path", "original_path"),
        Index("idx_history_timestamp", "timestamp"),
        Index("idx_history_change_type", "change_type"),
        Index("idx_history_is_deleted", "is_deleted"),
    )


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes; every timestamp we store is UTC,
    and naive datetimes from callers are interpreted as UTC too.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class FileVersion:
    """A version record detached from the database session.

    Attributes:
        id: Monotonically assigned record id.
        canonical_path: Stable original location the file is about.
        current_path: Path the file had when tracked.
        content_hash: SHA-256 hex digest (empty if the file was gone).
        change_type: Kind of event.
        timestamp: Event time (UTC).
        history_path: Snapshot location, empty for metadata-only records.
        file_size: Size in bytes.
        reason: Free-text provenance.
        is_deleted: True only for Deleted records.
    """

    id: int
    canonical_path: str
    current_path: str
    content_hash: str
    change_type: ChangeType
    timestamp: datetime
    history_path: str
    file_size: int
    reason: str
    is_deleted: bool

    @property
    def has_snapshot(self) -> bool:
        """Whether the record points at preserved bytes."""
        return bool(self.history_path)

    @classmethod
    def from_row(cls, row: FileHistory) -> FileVersion:
        """Create FileVersion from an ORM row."""
        return cls(
            id=row.id,
            canonical_path=row.original_path,
            current_path=row.file_path,
            content_hash=row.file_hash,
            change_type=ChangeType(row.change_type),
            timestamp=as_utc(row.timestamp),
            history_path=row.history_path or "",
            file_size=row.file_size,
            reason=row.reason or "",
            is_deleted=row.is_deleted,
        )

    def to_dict(self) -> dict[str, str | int | bool]:
        """Serialize for JSON output."""
        return {
            "id": self.id,
            "canonical_path": self.canonical_path,
            "current_path": self.current_path,
            "content_hash": self.content_hash,
            "change_type": self.change_type.value,
            "timestamp": self.timestamp.isoformat(),
            "history_path": self.history_path,
            "file_size": self.file_size,
            "reason": self.reason,
            "is_deleted": self.is_deleted,
        }
