"""Tests for CLI commands - sync, restore, history listing and cleanup."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from syncvault.cli import cli
from syncvault.cli.config import CliContext
from syncvault.core.config import HistorySettings
from syncvault.core.errors import ConfigError

T = 1_700_000_000


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """State directory for the CLI."""
    return tmp_path / "home"


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop the handlers installed by the CLI after each test."""
    yield
    root_logger = logging.getLogger("syncvault")
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.NOTSET)


def write(path: Path, content: str, mtime: float) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.utime(path, (mtime, mtime))
    return path


class TestSyncCommand:
    """Tests for 'syncvault sync'."""

    def test_sync_copies_and_prints_summary(
        self, runner: CliRunner, home: Path, roots: tuple[Path, Path]
    ) -> None:
        """A basic sync should copy new files and print the counters."""
        source, target = roots
        write(source / "a.txt", "hello", T)

        result = runner.invoke(cli, ["--home", str(home), "sync", "-s", str(source), "-t", str(target)])

        assert result.exit_code == 0, result.output
        assert "Sync complete" in result.output
        assert "Files synchronized: 1" in result.output
        assert "Conflicts detected: 0" in result.output
        assert (target / "a.txt").read_text() == "hello"
        assert (home / "history.db").exists()

    def test_missing_source_exits_1(self, runner: CliRunner, home: Path, tmp_path: Path) -> None:
        """A missing source root should fail with exit code 1."""
        result = runner.invoke(
            cli,
            ["--home", str(home), "sync", "-s", str(tmp_path / "nope"), "-t", str(tmp_path / "t")],
        )

        assert result.exit_code == 1
        assert "Source directory does not exist" in result.output

    def test_target_file_exits_1(self, runner: CliRunner, home: Path, roots: tuple[Path, Path], tmp_path: Path) -> None:
        """A target path that is a regular file should fail cleanly."""
        source, _ = roots
        target = tmp_path / "dst"
        target.write_text("x")

        result = runner.invoke(cli, ["--home", str(home), "sync", "-s", str(source), "-t", str(target)])

        assert result.exit_code == 1
        assert "Target path is not a directory" in result.output

    def test_missing_paths_exits_1(self, runner: CliRunner, home: Path) -> None:
        """Without source/target in config or options the command should fail."""
        result = runner.invoke(cli, ["--home", str(home), "sync"])

        assert result.exit_code == 1
        assert "Missing required setting" in result.output

    def test_paths_from_config_file(self, runner: CliRunner, home: Path, roots: tuple[Path, Path]) -> None:
        """The default config file in the home directory should be used."""
        source, target = roots
        write(source / "a.txt", "hello", T)
        home.mkdir()
        (home / "config.json").write_text(
            json.dumps({"source_path": str(source), "target_path": str(target), "mode": "one-way"})
        )

        result = runner.invoke(cli, ["--home", str(home), "sync"])

        assert result.exit_code == 0, result.output
        assert "(one-way)" in result.output
        assert (target / "a.txt").exists()

    def test_invalid_config_file_exits_1(self, runner: CliRunner, home: Path, tmp_path: Path) -> None:
        """A malformed config file should fail with exit code 1."""
        config = tmp_path / "bad.json"
        config.write_text("{oops")

        result = runner.invoke(cli, ["--home", str(home), "--config", str(config), "sync"])

        assert result.exit_code == 1
        assert "Cannot read config file" in result.output

    def test_dry_run(self, runner: CliRunner, home: Path, roots: tuple[Path, Path]) -> None:
        """A dry run should list planned actions and write nothing."""
        source, target = roots
        write(source / "a.txt", "hello", T)

        result = runner.invoke(
            cli, ["--home", str(home), "sync", "-s", str(source), "-t", str(target), "--dry-run"]
        )

        assert result.exit_code == 0, result.output
        assert "Dry run complete" in result.output
        assert "copy " in result.output
        assert not (target / "a.txt").exists()

    def test_conflict_is_reported(self, runner: CliRunner, home: Path, roots: tuple[Path, Path]) -> None:
        """Conflicts should be listed with their backup path."""
        source, target = roots
        write(source / "c.txt", "source", T + 10)
        write(target / "c.txt", "target", T)

        result = runner.invoke(cli, ["--home", str(home), "sync", "-s", str(source), "-t", str(target)])

        assert result.exit_code == 0, result.output
        assert "Conflicts detected: 1" in result.output
        assert "backup:" in result.output
        assert len(list((source / "conflicts").iterdir())) == 1

    def test_custom_conflict_dir_and_filters(
        self, runner: CliRunner, home: Path, roots: tuple[Path, Path]
    ) -> None:
        """--conflict-dir and --exclude should reach the engine."""
        source, target = roots
        write(source / "c.txt", "source", T + 10)
        write(target / "c.txt", "target", T)
        write(source / "skip.tmp", "tmp", T)

        result = runner.invoke(
            cli,
            [
                "--home", str(home), "sync", "-s", str(source), "-t", str(target),
                "--conflict-dir", "_clash", "--exclude", "*.tmp",
            ],
        )

        assert result.exit_code == 0, result.output
        assert (source / "_clash").is_dir()
        assert not (target / "skip.tmp").exists()
        assert "Skipped (filtered): 1" in result.output

    def test_no_history(self, runner: CliRunner, home: Path, roots: tuple[Path, Path]) -> None:
        """--no-history should not open the history store."""
        source, target = roots
        write(source / "a.txt", "hello", T)

        result = runner.invoke(
            cli, ["--home", str(home), "sync", "-s", str(source), "-t", str(target), "--no-history"]
        )

        assert result.exit_code == 0, result.output
        assert not (home / "history.db").exists()

    def test_log_file(self, runner: CliRunner, home: Path, roots: tuple[Path, Path], tmp_path: Path) -> None:
        """--log-file should write the operation log."""
        source, target = roots
        write(source / "a.txt", "hello", T)
        log_file = tmp_path / "run.log"

        result = runner.invoke(
            cli,
            ["--home", str(home), "sync", "-s", str(source), "-t", str(target), "--log-file", str(log_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Synchronizing file:" in log_file.read_text()

    def test_delete_sync(self, runner: CliRunner, home: Path, roots: tuple[Path, Path]) -> None:
        """--delete-sync should propagate a deletion and list it."""
        source, target = roots
        write(source / "a.txt", "hello", T)
        base = ["--home", str(home), "sync", "-s", str(source), "-t", str(target)]
        assert runner.invoke(cli, base).exit_code == 0

        (source / "a.txt").unlink()
        result = runner.invoke(cli, [*base, "--delete-sync"])

        assert result.exit_code == 0, result.output
        assert "Files deleted:      1" in result.output
        assert not (target / "a.txt").exists()

        listed = runner.invoke(cli, ["--home", str(home), "list-deleted"])
        assert str(target / "a.txt") in listed.output

        restored = runner.invoke(cli, ["--home", str(home), "restore", str(target / "a.txt")])
        assert restored.exit_code == 0, restored.output
        assert (target / "a.txt").read_text() == "hello"


class TestHistoryCommands:
    """Tests for restore, history, list-deleted, search and cleanup."""

    @pytest.fixture
    def synced(self, runner: CliRunner, home: Path, roots: tuple[Path, Path]) -> Path:
        """Overwrite an old target file through a sync and return its path."""
        source, target = roots
        write(source / "a.txt", "new", T + 3600)
        write(target / "a.txt", "old", T)
        result = runner.invoke(cli, ["--home", str(home), "sync", "-s", str(source), "-t", str(target)])
        assert result.exit_code == 0, result.output
        return target / "a.txt"

    def test_restore(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """restore should bring back the overwritten version."""
        result = runner.invoke(cli, ["--home", str(home), "restore", str(synced)])

        assert result.exit_code == 0, result.output
        assert "Successfully restored" in result.output
        assert synced.read_text() == "old"

    def test_restore_unknown_file(self, runner: CliRunner, home: Path, tmp_path: Path) -> None:
        """Restoring a file without history should fail."""
        result = runner.invoke(cli, ["--home", str(home), "restore", str(tmp_path / "unknown.txt")])

        assert result.exit_code == 1
        assert "no history found" in result.output

    def test_restore_before_any_version(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """A date before every snapshot should find nothing."""
        result = runner.invoke(cli, ["--home", str(home), "restore", str(synced), "--date", "2000-01-01"])

        assert result.exit_code == 1
        assert synced.read_text() == "new"

    def test_history_json(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """history --json should list the file's records newest first."""
        result = runner.invoke(cli, ["--home", str(home), "history", str(synced), "--json"])

        assert result.exit_code == 0, result.output
        records = json.loads(result.output)
        assert [r["change_type"] for r in records] == ["Modified", "Modified"]
        assert [r["reason"] for r in records] == ["Sync copy", "Sync overwrite"]

    def test_history_text(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """history should print one line per record."""
        result = runner.invoke(cli, ["--home", str(home), "history", str(synced)])

        assert result.exit_code == 0, result.output
        assert result.output.count(str(synced)) == 2
        assert "Sync overwrite" in result.output

    def test_list_deleted_empty(self, runner: CliRunner, home: Path) -> None:
        """list-deleted should say when there is nothing to show."""
        result = runner.invoke(cli, ["--home", str(home), "list-deleted"])

        assert result.exit_code == 0, result.output
        assert "No deleted files in history." in result.output

    def test_search(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """search should find records by path substring."""
        found = runner.invoke(cli, ["--home", str(home), "search", "a.txt", "--json"])
        missing = runner.invoke(cli, ["--home", str(home), "search", "zzz-not-there"])

        assert len(json.loads(found.output)) == 2
        assert "No matching history entries." in missing.output

    def test_search_date_range(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """A range in the past should match nothing."""
        result = runner.invoke(
            cli, ["--home", str(home), "search", "--from", "2000-01-01", "--to", "2000-12-31", "--json"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == []

    def test_cleanup(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """cleanup should keep fresh records."""
        result = runner.invoke(cli, ["--home", str(home), "cleanup", "--keep-days", "7"])

        assert result.exit_code == 0, result.output
        assert "Removed 0 history entries older than 7 days." in result.output

    def test_home_from_environment(self, runner: CliRunner, home: Path, synced: Path) -> None:
        """SYNCVAULT_HOME should select the state directory."""
        result = runner.invoke(cli, ["history", str(synced), "--json"], env={"SYNCVAULT_HOME": str(home)})

        assert result.exit_code == 0, result.output
        assert len(json.loads(result.output)) == 2


class TestCliContext:
    """Tests for the per-invocation CLI state."""

    def test_open_history_uses_home(self, tmp_path: Path) -> None:
        """History should live in the home directory by default."""
        store = CliContext(tmp_path, {}).open_history()
        store.close()

        assert (tmp_path / "history.db").exists()

    def test_open_history_rejects_unresolved_settings(self, tmp_path: Path) -> None:
        """Settings without locations should be a config error."""
        with pytest.raises(ConfigError, match="not resolved"):
            CliContext(tmp_path, {}).open_history(HistorySettings())
