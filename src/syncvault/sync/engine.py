"""Sync engine: walks both trees and reconciles them.

Architecture:
    SyncEngine.run() → (deletion pass) → phase 1 walk → phase 2 walk

Per file, in order:
    already handled this run → skip
    filtered out → skip
    other side is not a regular file → per-file error
    identical    → skip (counted once per run)
    conflict     → ConflictResolver (bidirectional only)
    one side newer or other side missing → copy

Bidirectional runs walk source→target (phase 1) and then target→source
(phase 2). Phase 1 always completes before phase 2 starts, and a path
already handled in phase 1 is not reconsidered in phase 2, so a file
copied in phase 1 is never bounced back.

Every overwrite goes through the history store first:
    move_to_history(dest) → copy → track_change(dest)

Per-file and per-directory errors are counted and logged and the walk
continues. A missing source root (ValidationError) or a failure to log a
destructive change (HistoryWriteError) aborts the run.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from syncvault.core.config import CopyOptions, SyncSettings
from syncvault.core.errors import FileOperationError, HistoryWriteError, ValidationError
from syncvault.core.types import ChangeType, SyncDirection, SyncMode
from syncvault.history.store import canonicalize
from syncvault.oplog import OperationLog
from syncvault.sync.comparator import Comparator
from syncvault.sync.conflict import ConflictResolver
from syncvault.sync.filters import PathFilter
from syncvault.sync.types import CompareResult, ConflictInfo, SyncResult

if TYPE_CHECKING:
    from syncvault.history.store import HistoryStore
    from syncvault.sync.state import SyncState

logger = logging.getLogger(__name__)

DELETION_REASON = "Deletion sync"


def _printable(path: str) -> str:
    """Render a path whose name may carry undecodable bytes."""
    return path.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def _check_name(entry: os.DirEntry[str]) -> None:
    """Reject names that are not valid UTF-8 before anything is written.

    Undecodable bytes come back from the OS as lone surrogates, which the
    history database cannot store.
    """
    try:
        entry.name.encode("utf-8")
    except UnicodeEncodeError as e:
        raise FileOperationError(_printable(entry.path), "file name is not valid UTF-8") from e


@dataclass
class _RunContext:
    """In-flight state of one run. Discarded when the run ends."""

    options: CopyOptions
    settings: SyncSettings
    source_root: Path
    target_root: Path
    path_filter: PathFilter
    result: SyncResult
    reserved: set[Path] = field(default_factory=set)
    handled: set[str] = field(default_factory=set)  # rel paths decided this run
    synced: set[str] = field(default_factory=set)  # rel paths in sync at the end

    @property
    def dry_run(self) -> bool:
        return self.settings.dry_run

    @property
    def reason(self) -> str:
        return "Backup" if self.settings.mode == SyncMode.ONE_WAY else "Sync"

    def walk_root(self, direction: SyncDirection) -> Path:
        if direction == SyncDirection.SOURCE_TO_TARGET:
            return self.source_root
        return self.target_root

    def relative(self, path: Path, direction: SyncDirection) -> str:
        return path.relative_to(self.walk_root(direction)).as_posix()


class SyncEngine:
    """Orchestrates one-way and bidirectional synchronization runs."""

    def __init__(
        self,
        comparator: Comparator,
        history: HistoryStore | None = None,
        resolver: ConflictResolver | None = None,
        oplog: OperationLog | None = None,
        state: SyncState | None = None,
    ) -> None:
        """Initialize the engine with its collaborators.

        Args:
            comparator: Classifies file pairs.
            history: Version store; None disables history tracking.
            resolver: Conflict handler (defaults to one over ``comparator``).
            oplog: Operation log sink.
            state: Sync baseline store, required for deletion propagation.
        """
        self._comparator = comparator
        self._history = history
        self._resolver = resolver or ConflictResolver(comparator)
        self._oplog = oplog or OperationLog()
        self._state = state

    def run(self, options: CopyOptions, settings: SyncSettings | None = None) -> SyncResult:
        """Run a sync.

        Args:
            options: Roots, filters and copy behaviour.
            settings: Sync-specific settings (defaults to bidirectional).

        Returns:
            SyncResult with counters and details.

        Raises:
            ValidationError: If the source root is missing, the target is not a
                directory or the roots overlap.
            HistoryWriteError: If a destructive change could not be logged.
        """
        settings = settings or SyncSettings()
        source_root = Path(canonicalize(options.source_path))
        target_root = Path(canonicalize(options.target_path))
        self._validate(source_root, target_root)

        ctx = _RunContext(
            options=options,
            settings=settings,
            source_root=source_root,
            target_root=target_root,
            path_filter=PathFilter(list(options.include_patterns), list(options.exclude_patterns)),
            result=SyncResult(),
        )
        ctx.reserved = {
            source_root / settings.conflict_backup_dir,
            target_root / settings.conflict_backup_dir,
        }
        if self._history is not None:
            ctx.reserved.add(self._history.history_root)

        if options.log_file is not None and not settings.dry_run:
            self._oplog.initialize(options.log_file)

        logger.info(
            "Starting %s%s sync between %s and %s",
            settings.mode.value,
            " dry-run" if settings.dry_run else "",
            source_root,
            target_root,
        )

        try:
            self._ensure_target_root(ctx)
            if settings.mode == SyncMode.ONE_WAY:
                self._walk(ctx, source_root, target_root, SyncDirection.SOURCE_TO_TARGET)
            else:
                if settings.deletion_sync:
                    self._propagate_deletions(ctx)
                self._walk(ctx, source_root, target_root, SyncDirection.SOURCE_TO_TARGET)
                self._walk(ctx, target_root, source_root, SyncDirection.TARGET_TO_SOURCE)
                self._store_baseline(ctx)
        except HistoryWriteError as e:
            ctx.result.error_messages.append(str(e))
            ctx.result.finish(success=False)
            self._oplog.log_error("Sync aborted: history could not be written", e)
            raise
        finally:
            self._oplog.close()

        result = ctx.result.finish(success=True)
        logger.info(
            "Sync completed. Files synchronized: %d, Conflicts: %d, Identical: %d, "
            "Deleted: %d, Errors: %d, Duration: %s",
            result.files_synchronized,
            result.conflicts_detected,
            result.skipped_identical,
            result.files_deleted,
            result.errors,
            result.duration,
        )
        return result

    # === Validation ===

    @staticmethod
    def _validate(source_root: Path, target_root: Path) -> None:
        if not source_root.is_dir():
            raise ValidationError(f"Source directory does not exist: {source_root}")
        if target_root.exists() and not target_root.is_dir():
            raise ValidationError(f"Target path is not a directory: {target_root}")
        if source_root == target_root:
            raise ValidationError(f"Source and target are the same directory: {source_root}")
        if source_root in target_root.parents or target_root in source_root.parents:
            raise ValidationError(f"Source and target must not contain each other: {source_root}, {target_root}")

    def _ensure_target_root(self, ctx: _RunContext) -> None:
        if ctx.target_root.is_dir():
            return
        if ctx.dry_run:
            ctx.result.planned_actions.append(f"create directory {ctx.target_root}")
            return
        ctx.target_root.mkdir(parents=True, exist_ok=True)
        logger.info("Created target directory: %s", ctx.target_root)

    # === Walk ===

    def _walk(self, ctx: _RunContext, from_dir: Path, to_dir: Path, direction: SyncDirection) -> None:
        """Reconcile the files of ``from_dir``, then recurse into subdirectories."""
        if not from_dir.is_dir():
            return

        try:
            with os.scandir(from_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            self._record_error(ctx, f"Failed to read directory {from_dir}", e)
            return

        subdirs: list[os.DirEntry[str]] = []
        for entry in entries:
            try:
                _check_name(entry)
                if entry.is_symlink():
                    logger.debug("Skipping symlink: %s", entry.path)
                    continue
                if entry.is_dir():
                    subdirs.append(entry)
                elif entry.is_file():
                    self._sync_file(ctx, Path(entry.path), to_dir / entry.name, direction)
            except (OSError, FileOperationError) as e:
                self._record_error(ctx, f"Failed to sync {_printable(entry.path)}", e)

        for entry in subdirs:
            subdir = Path(entry.path)
            if subdir in ctx.reserved:
                continue
            rel = ctx.relative(subdir, direction)
            if not ctx.path_filter.include_directory(rel):
                logger.debug("Skipped directory (filtered): %s", subdir)
                continue
            target_subdir = to_dir / entry.name
            if target_subdir.exists() and not target_subdir.is_dir():
                # Reported once; the file side sees the same rel as handled.
                if rel not in ctx.handled:
                    ctx.handled.add(rel)
                    self._record_error(
                        ctx,
                        f"Failed to sync {subdir}",
                        FileOperationError(str(subdir), f"type mismatch: {target_subdir} is not a directory"),
                    )
                continue
            try:
                if not ctx.dry_run and not target_subdir.exists():
                    target_subdir.mkdir(parents=True)
                self._walk(ctx, subdir, target_subdir, direction)
            except OSError as e:
                self._record_error(ctx, f"Failed to process directory {subdir}", e)

    def _sync_file(self, ctx: _RunContext, from_file: Path, to_file: Path, direction: SyncDirection) -> None:
        """Classify one pair and act on it."""
        result = ctx.result
        rel = ctx.relative(from_file, direction)

        if rel in ctx.handled:
            return
        ctx.handled.add(rel)

        if not ctx.path_filter.include_file(rel):
            result.files_skipped += 1
            result.skipped_files.append(str(from_file))
            logger.debug("Skipped file (filtered): %s", from_file)
            return

        if to_file.exists() and not to_file.is_file():
            raise FileOperationError(str(from_file), f"type mismatch: {to_file} is not a regular file")

        try:
            comparison = self._comparator.compare(from_file, to_file)
        except OSError as e:
            raise FileOperationError(str(from_file), f"comparison failed: {e}") from e

        if comparison.identical:
            result.skipped_identical += 1
            result.identical_files.append(str(from_file))
            ctx.synced.add(rel)
            return

        if ctx.settings.mode == SyncMode.ONE_WAY:
            self._copy_if_allowed(ctx, from_file, to_file, rel)
            return

        if comparison.has_conflict:
            self._handle_conflict(ctx, from_file, to_file, comparison)
            return

        if comparison.source_newer:
            self._copy_if_allowed(ctx, from_file, to_file, rel)
        else:
            # The other side is newer; its own phase copies it back.
            ctx.handled.discard(rel)

    # === Actions ===

    def _copy_if_allowed(self, ctx: _RunContext, from_file: Path, to_file: Path, rel: str) -> None:
        if to_file.exists() and not ctx.options.overwrite_existing:
            ctx.result.files_skipped += 1
            ctx.result.skipped_files.append(str(from_file))
            logger.debug("Skipped file (exists): %s", from_file)
            return
        self._copy(ctx, from_file, to_file, rel)

    def _copy(self, ctx: _RunContext, from_file: Path, to_file: Path, rel: str) -> None:
        """Copy one file, snapshotting the file it replaces."""
        result = ctx.result

        if ctx.dry_run:
            result.files_synchronized += 1
            result.planned_actions.append(f"copy {from_file} -> {to_file}")
            logger.info("Would copy: %s -> %s", from_file, to_file)
            return

        existed = to_file.exists()
        if existed and self._history is not None:
            self._history.move_to_history(to_file, to_file, ChangeType.MODIFIED, f"{ctx.reason} overwrite")

        try:
            to_file.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(from_file, to_file)
        except OSError as e:
            raise FileOperationError(str(from_file), f"copy to {to_file} failed: {e}") from e

        if self._history is not None:
            change_type = ChangeType.MODIFIED if existed else ChangeType.CREATED
            self._history.track_change(to_file, to_file, change_type, f"{ctx.reason} copy")

        result.files_synchronized += 1
        result.copied_files.append(str(from_file))
        ctx.synced.add(rel)
        self._oplog.log_file_operation(
            "Copying" if ctx.settings.mode == SyncMode.ONE_WAY else "Synchronizing",
            from_file,
            to_file,
        )

    def _handle_conflict(
        self,
        ctx: _RunContext,
        from_file: Path,
        to_file: Path,
        comparison: CompareResult,
    ) -> None:
        """Count a conflict and let the resolver preserve the losing copy."""
        result = ctx.result
        result.conflicts_detected += 1

        if ctx.dry_run:
            result.conflicts.append(
                ConflictInfo(
                    file_path=str(from_file),
                    source_path=str(from_file),
                    target_path=str(to_file),
                    source_modified=comparison.source_modified,
                    target_modified=comparison.target_modified,
                    source_hash=comparison.source_hash,
                    target_hash=comparison.target_hash,
                )
            )
            result.planned_actions.append(f"conflict {from_file} <-> {to_file}")
            logger.info("Would detect conflict: %s", from_file)
            return

        backup_root = None
        if ctx.settings.create_conflict_backups:
            backup_root = ctx.source_root / ctx.settings.conflict_backup_dir

        try:
            conflict = self._resolver.resolve(from_file, to_file, backup_root)
        except OSError as e:
            self._record_error(ctx, f"Failed to handle conflict for {from_file}", e)
            return

        result.conflicts.append(conflict)
        self._oplog.log_error(f"Conflict detected: {from_file}")

    # === Deletions ===

    def _propagate_deletions(self, ctx: _RunContext) -> None:
        """Delete surviving copies of baseline paths removed on one side."""
        if self._state is None:
            logger.warning("Deletion sync requested but no sync baseline is available; skipping")
            return
        if self._history is None:
            logger.warning("Deletion sync requires history tracking so deletions stay reversible; skipping")
            return

        source_key, target_key = str(ctx.source_root), str(ctx.target_root)
        for rel in sorted(self._state.get_synced_paths(source_key, target_key)):
            if not ctx.path_filter.include_file(rel):
                continue
            source_file = ctx.source_root / rel
            target_file = ctx.target_root / rel
            source_exists = source_file.is_file()
            target_exists = target_file.is_file()

            if source_exists == target_exists:
                if not source_exists and not ctx.dry_run:
                    self._state.remove_path(source_key, target_key, rel)
                continue

            survivor = source_file if source_exists else target_file
            try:
                self._delete(ctx, self._history, survivor, rel)
            except OSError as e:
                self._record_error(ctx, f"Failed to propagate deletion of {rel}", e)

    def _delete(self, ctx: _RunContext, history: HistoryStore, path: Path, rel: str) -> None:
        result = ctx.result
        ctx.handled.add(rel)
        if ctx.dry_run:
            result.files_deleted += 1
            result.planned_actions.append(f"delete {path}")
            logger.info("Would delete: %s", path)
            return

        # Deleted records are never restorable, so the bytes go in as a
        # Modified snapshot and the deletion itself is a metadata record.
        history_path = history.move_to_history(path, path, ChangeType.MODIFIED, DELETION_REASON)
        history.track_change(path, path, ChangeType.DELETED, DELETION_REASON)
        result.files_deleted += 1
        result.deleted_files.append(str(path))
        self._oplog.log_file_operation("Deleting", path, history_path)

    def _store_baseline(self, ctx: _RunContext) -> None:
        if ctx.dry_run or self._state is None:
            return
        self._state.replace_synced_paths(str(ctx.source_root), str(ctx.target_root), ctx.synced)

    # === Errors ===

    def _record_error(self, ctx: _RunContext, message: str, exc: BaseException) -> None:
        ctx.result.add_error(f"{message}: {exc}")
        self._oplog.log_error(message, exc)
        logger.debug("%s", message, exc_info=exc)
