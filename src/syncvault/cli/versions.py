"""History and restore commands for the SyncVault CLI.

Commands:
- restore: Restore a file from its version history
- list-deleted: List deleted files that can be recovered
- history: Show all recorded versions of a file
- search: Search the history by path and date range
- cleanup: Remove history entries older than the retention period
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import click

from syncvault.cli.config import CliContext
from syncvault.core.errors import HistoryWriteError
from syncvault.history.models import FileVersion
from syncvault.history.restore import RestoreEngine
from syncvault.history.scheduler import cleanup_history
from syncvault.history.store import HistoryStore

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _local(value: datetime | None) -> datetime | None:
    """Interpret a naive command-line date as local time."""
    if value is None or value.tzinfo is not None:
        return value
    return value.astimezone()


@contextmanager
def _open_history(obj: CliContext) -> Iterator[HistoryStore]:
    try:
        store = obj.open_history()
    except HistoryWriteError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    try:
        yield store
    finally:
        store.close()


def _format_size(size: int) -> str:
    """Format a size in bytes for humans."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _echo_versions(versions: list[FileVersion], as_json: bool, empty_message: str) -> None:
    if as_json:
        click.echo(json.dumps([v.to_dict() for v in versions], indent=2))
        return
    if not versions:
        click.echo(empty_message)
        return
    for version in versions:
        stamp = version.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp}  {version.change_type.value:<8}  {_format_size(version.file_size):>9}  {version.canonical_path}"
        if version.reason:
            line += f"  ({version.reason})"
        click.echo(line)


@click.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--date", "as_of", type=click.DateTime(DATE_FORMATS), default=None, help="Restore the version as of this local date/time.")
@click.pass_obj
def restore(obj: CliContext, path: Path, as_of: datetime | None) -> None:
    """Restore PATH from the version history.

    Without --date the newest preserved version is restored.
    """
    with _open_history(obj) as store:
        result = RestoreEngine(store).restore(path, _local(as_of))

    if not result.success:
        click.echo(f"Error: {result.message}", err=True)
        sys.exit(1)
    click.echo(result.message)
    click.echo(f"  from {result.source_history_path}")


@click.command("list-deleted")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def list_deleted(obj: CliContext, as_json: bool) -> None:
    """List deleted files that can be restored."""
    with _open_history(obj) as store:
        versions = RestoreEngine(store).list_deleted()
    _echo_versions(versions, as_json, "No deleted files in history.")


@click.command("history")
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def history(obj: CliContext, path: Path, as_json: bool) -> None:
    """Show all recorded versions of PATH, newest first."""
    with _open_history(obj) as store:
        versions = RestoreEngine(store).list_history(path)
    _echo_versions(versions, as_json, f"No history for {path}.")


@click.command()
@click.argument("text", default="")
@click.option("--from", "from_date", type=click.DateTime(DATE_FORMATS), default=None, help="Earliest local date/time.")
@click.option("--to", "to_date", type=click.DateTime(DATE_FORMATS), default=None, help="Latest local date/time.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def search(
    obj: CliContext,
    text: str,
    from_date: datetime | None,
    to_date: datetime | None,
    as_json: bool,
) -> None:
    """Search the history for paths containing TEXT."""
    with _open_history(obj) as store:
        versions = store.search(text, _local(from_date), _local(to_date))
    _echo_versions(versions, as_json, "No matching history entries.")


@click.command()
@click.option("--keep-days", type=click.IntRange(min=0), default=None, help="Retention in days (default from config).")
@click.pass_obj
def cleanup(obj: CliContext, keep_days: int | None) -> None:
    """Remove history entries older than the retention period."""
    settings = obj.history_settings(retention_days=keep_days)
    with _open_history(obj) as store:
        try:
            removed = cleanup_history(store, settings.retention_days)
        except HistoryWriteError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    click.echo(f"Removed {removed} history entries older than {settings.retention_days} days.")
