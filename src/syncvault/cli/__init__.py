"""Command-line interface for SyncVault.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Synchronize a source and a target directory
- restore: Restore a file from its version history
- list-deleted: List deleted files that can be restored
- history: Show all recorded versions of a file
- search: Search the history by path and date range
- cleanup: Remove expired history entries
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from syncvault.cli.config import (
    HOME_ENV_VAR,
    CliContext,
    get_config_file,
    get_home_dir,
    load_cli_context,
    setup_logging,
)
from syncvault.cli.sync import sync
from syncvault.cli.versions import cleanup, history, list_deleted, restore, search
from syncvault.core.errors import ConfigError


@click.group()
@click.version_option(package_name="syncvault")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON config file (default: <home>/config.json).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
@click.option(
    "--home",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=HOME_ENV_VAR,
    default=None,
    help="State directory (default: ~/.syncvault).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str, home: Path | None) -> None:
    """SyncVault - Bidirectional folder sync with version history."""
    setup_logging(log_level)
    try:
        obj = load_cli_context(home, config_path)
        obj.history_settings()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    ctx.obj = obj


# Sync commands
cli.add_command(sync)

# History commands
cli.add_command(restore)
cli.add_command(list_deleted)
cli.add_command(history)
cli.add_command(search)
cli.add_command(cleanup)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "CliContext",
    "cli",
    "get_config_file",
    "get_home_dir",
    "main",
]
