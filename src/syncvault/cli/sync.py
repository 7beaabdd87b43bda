"""Sync command for the SyncVault CLI.

Commands:
- sync: Synchronize two directory trees
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import click

from syncvault.cli.config import CliContext
from syncvault.core.config import (
    CopyOptions,
    HistorySettings,
    SyncSettings,
    build_copy_options,
    build_sync_settings,
)
from syncvault.core.errors import ConfigError, HistoryWriteError, ValidationError
from syncvault.core.types import SyncMode
from syncvault.history.scheduler import HistoryCleanupScheduler, cleanup_history
from syncvault.history.store import HistoryStore
from syncvault.sync.comparator import Comparator
from syncvault.sync.engine import SyncEngine
from syncvault.sync.types import SyncResult
from syncvault.sync.watcher import TreeWatcher

MODE_CHOICES = [mode.value for mode in SyncMode] + ["simple", "sync"]


def display_summary(result: SyncResult, dry_run: bool = False) -> None:
    """Display sync results summary."""
    if dry_run and result.planned_actions:
        click.echo(click.style("\nPlanned actions:", fg="cyan"))
        for action in result.planned_actions:
            click.echo(f"  {action}")

    if result.conflicts:
        click.echo(click.style("\nConflicts:", fg="yellow"))
        for conflict in result.conflicts:
            backup = f" (backup: {conflict.backup_path})" if conflict.backup_path else ""
            click.echo(f"  ! {conflict.file_path}{backup}")

    if result.error_messages:
        click.echo(click.style("\nErrors:", fg="red"))
        for error in result.error_messages:
            click.echo(f"  ✗ {error}")

    title = "Dry run complete" if dry_run else "Sync complete"
    click.echo(f"\n{title}:")
    click.echo(f"  Files synchronized: {result.files_synchronized}")
    click.echo(f"  Conflicts detected: {result.conflicts_detected}")
    click.echo(f"  Skipped identical:  {result.skipped_identical}")
    click.echo(f"  Skipped (filtered): {result.files_skipped}")
    click.echo(f"  Files deleted:      {result.files_deleted}")
    click.echo(f"  Errors:             {result.errors}")
    click.echo(f"  Duration:           {result.duration.total_seconds():.2f}s")


def _run_or_exit(engine: SyncEngine, options: CopyOptions, settings: SyncSettings) -> SyncResult:
    """Run one sync; fatal errors end the process with exit code 1."""
    try:
        return engine.run(options, settings)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except HistoryWriteError as e:
        click.echo(f"Error: sync aborted, history could not be written: {e}", err=True)
        sys.exit(1)


def _auto_cleanup(history: HistoryStore, retention_days: int) -> None:
    try:
        removed = cleanup_history(history, retention_days)
    except HistoryWriteError as e:
        click.echo(f"Error: history cleanup failed: {e}", err=True)
        sys.exit(1)
    if removed:
        click.echo(f"Cleaned up {removed} history entries older than {retention_days} days")


def _watch(
    engine: SyncEngine,
    options: CopyOptions,
    settings: SyncSettings,
    history: HistoryStore | None,
    history_settings: HistorySettings,
) -> None:
    """Re-run the sync whenever either tree changes, until interrupted."""
    roots = [Path(options.source_path), Path(options.target_path)]
    ignore = [root / settings.conflict_backup_dir for root in roots]
    if history is not None:
        ignore.append(history.history_root)

    changed = threading.Event()
    watcher = TreeWatcher(
        [root for root in roots if root.is_dir()],
        on_change=lambda paths: changed.set(),
        ignore=ignore,
    )

    scheduler = None
    if history is not None and history_settings.auto_cleanup and not settings.dry_run:
        scheduler = HistoryCleanupScheduler(
            history,
            retention_days=history_settings.retention_days,
            interval_hours=history_settings.cleanup_interval_hours,
        )

    click.echo("\nWatching for changes... (Ctrl+C to stop)\n")
    watcher.start()
    if scheduler is not None:
        scheduler.start()

    try:
        while True:
            if not changed.wait(timeout=1.0):
                continue
            changed.clear()

            result = _run_or_exit(engine, options, settings)
            # Our own writes show up as events too
            watcher.discard_pending()

            parts = []
            if result.files_synchronized:
                parts.append(f"{result.files_synchronized} synchronized")
            if result.files_deleted:
                parts.append(f"{result.files_deleted} deleted")
            if result.conflicts_detected:
                parts.append(click.style(f"{result.conflicts_detected} conflicts", fg="yellow"))
            if result.errors:
                parts.append(click.style(f"{result.errors} errors", fg="red"))
            if parts:
                click.echo(f"  ✓ {', '.join(parts)}")
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        watcher.stop()
        if scheduler is not None:
            scheduler.stop()


@click.command()
@click.option("--source", "-s", "source_path", type=click.Path(path_type=Path), help="Source directory.")
@click.option("--target", "-t", "target_path", type=click.Path(path_type=Path), help="Target directory.")
@click.option("--mode", type=click.Choice(MODE_CHOICES), default=None, help="Sync mode.")
@click.option("--dry-run", is_flag=True, help="Show what would be done without writing anything.")
@click.option("--delete-sync", is_flag=True, help="Propagate deletions of previously synced files.")
@click.option("--include", multiple=True, help="Only sync files matching this pattern (repeatable).")
@click.option("--exclude", multiple=True, help="Skip files and directories matching this pattern (repeatable).")
@click.option("--no-history", is_flag=True, help="Do not keep versions of overwritten files.")
@click.option("--conflict-dir", default=None, help="Conflict backup directory name under the source.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Write an operation log.")
@click.option("--keep-days", type=click.IntRange(min=0), default=None, help="History retention in days.")
@click.option("--cleanup/--no-cleanup", default=None, help="Clean up expired history after the run.")
@click.option("--watch", "-w", is_flag=True, help="Watch for changes and sync continuously.")
@click.pass_obj
def sync(
    obj: CliContext,
    source_path: Path | None,
    target_path: Path | None,
    mode: str | None,
    dry_run: bool,
    delete_sync: bool,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    no_history: bool,
    conflict_dir: str | None,
    log_file: Path | None,
    keep_days: int | None,
    cleanup: bool | None,
    watch: bool,
) -> None:
    """Synchronize a source and a target directory.

    Bidirectional mode (default) copies the newer side of each file both
    ways and preserves conflicting copies. One-way mode mirrors the source
    onto the target. Overwritten files are kept in the version history.
    """
    try:
        options = build_copy_options(
            obj.config,
            source_path=source_path,
            target_path=target_path,
            include_patterns=list(include) or None,
            exclude_patterns=list(exclude) or None,
            log_file=log_file,
        )
        settings = build_sync_settings(
            obj.config,
            mode=mode,
            dry_run=True if dry_run else None,
            deletion_sync=True if delete_sync else None,
            conflict_backup_dir=conflict_dir,
        )
        history_settings = obj.history_settings(
            enabled=False if no_history else None,
            retention_days=keep_days,
            auto_cleanup=cleanup,
        )
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        history = obj.open_history(history_settings) if history_settings.enabled else None
    except HistoryWriteError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    state = obj.open_state()

    click.echo(f"Syncing {options.source_path} -> {options.target_path} ({settings.mode.value})")

    try:
        engine = SyncEngine(Comparator(), history=history, state=state)
        result = _run_or_exit(engine, options, settings)
        display_summary(result, dry_run=settings.dry_run)

        if history is not None and history_settings.auto_cleanup and not settings.dry_run:
            _auto_cleanup(history, history_settings.retention_days)

        if watch:
            _watch(engine, options, settings, history, history_settings)
    finally:
        state.close()
        if history is not None:
            history.close()
