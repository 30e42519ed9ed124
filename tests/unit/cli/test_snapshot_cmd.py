"""Tests for the snapshot CLI commands."""

import time
from unittest.mock import MagicMock

import orjson
import pytest
from typer.testing import CliRunner

import crmcache.cli as cli
from crmcache.cache.backends import FileSnapshotStore, encode_snapshot
from crmcache.cache.entry import CacheEntry
from crmcache.errors import PersistenceError

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch) -> MagicMock:
    """Keep the CLI callback from replacing the test session's log handlers."""
    configure = MagicMock()
    monkeypatch.setattr(cli, "configure_logging", configure)
    return configure


@pytest.fixture
def snapshot_dir(tmp_path):
    """A file snapshot with one live and one expired entry."""
    now = time.time() * 1000
    entries = [
        CacheEntry(data={"id": 1}, created_at=now - 10 * 60 * 1000, ttl=1000, key="customer:old"),
        CacheEntry(data={"id": 2}, created_at=now, ttl=60 * 60 * 1000, key="customer:new"),
    ]
    FileSnapshotStore(tmp_path).save("crm_cache", encode_snapshot(entries))
    return tmp_path


def stored_keys(directory) -> list[str]:
    return list(orjson.loads(FileSnapshotStore(directory).load("crm_cache")))


class TestStatsCommand:
    """Tests for `crmcache snapshot stats`."""

    def test_json_output(self, snapshot_dir) -> None:
        """JSON output lists every entry with its expiry state."""
        result = runner.invoke(
            cli.app, ["snapshot", "stats", "--snapshot-dir", str(snapshot_dir), "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        payload = orjson.loads(result.stdout)
        assert payload["size"] == 2
        assert {i["key"]: i["expired"] for i in payload["items"]} == {
            "customer:old": True,
            "customer:new": False,
        }

    def test_text_output(self, snapshot_dir) -> None:
        """Text output renders a table with the entry keys."""
        result = runner.invoke(cli.app, ["snapshot", "stats", "--snapshot-dir", str(snapshot_dir)])

        assert result.exit_code == 0, result.output
        assert "customer:new" in result.stdout

    def test_stats_does_not_modify_snapshot(self, snapshot_dir) -> None:
        """Inspecting a snapshot leaves it unchanged."""
        runner.invoke(cli.app, ["snapshot", "stats", "--snapshot-dir", str(snapshot_dir)])

        assert stored_keys(snapshot_dir) == ["customer:old", "customer:new"]

    def test_unknown_backend_rejected(self, tmp_path) -> None:
        """Only the file and redis backends can be opened."""
        result = runner.invoke(
            cli.app, ["snapshot", "stats", "--backend", "sqlite", "--snapshot-dir", str(tmp_path)]
        )

        assert result.exit_code != 0

    def test_missing_snapshot_is_empty(self, tmp_path) -> None:
        """A key that was never written reports no entries."""
        result = runner.invoke(
            cli.app, ["snapshot", "stats", "--snapshot-dir", str(tmp_path), "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        assert orjson.loads(result.stdout)["size"] == 0

    def test_corrupt_snapshot_fails(self, tmp_path) -> None:
        """A corrupt snapshot is reported instead of shown as empty."""
        FileSnapshotStore(tmp_path).save("crm_cache", b"{not json")

        result = runner.invoke(cli.app, ["snapshot", "stats", "--snapshot-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_configures_logging(self, snapshot_dir, no_logging_setup) -> None:
        """Global log options are applied before the command runs."""
        runner.invoke(
            cli.app,
            [
                "--log-level",
                "DEBUG",
                "--log-text",
                "snapshot",
                "stats",
                "--snapshot-dir",
                str(snapshot_dir),
            ],
        )

        no_logging_setup.assert_called_once_with(json_format=False, level="DEBUG")


class TestSweepCommand:
    """Tests for `crmcache snapshot sweep`."""

    def test_removes_expired(self, snapshot_dir) -> None:
        """Sweep drops expired entries and rewrites the snapshot."""
        result = runner.invoke(cli.app, ["snapshot", "sweep", "--snapshot-dir", str(snapshot_dir)])

        assert result.exit_code == 0, result.output
        assert "Removed 1 expired entries" in result.stdout
        assert stored_keys(snapshot_dir) == ["customer:new"]

    def test_save_failure_exits_non_zero(self, snapshot_dir, monkeypatch) -> None:
        """A failed write is reported and the command fails."""
        monkeypatch.setattr(
            FileSnapshotStore, "save", MagicMock(side_effect=PersistenceError("disk full"))
        )

        result = runner.invoke(cli.app, ["snapshot", "sweep", "--snapshot-dir", str(snapshot_dir)])

        assert result.exit_code == 1
        assert "disk full" in result.output
        assert "Removed" not in result.output


class TestClearCommand:
    """Tests for `crmcache snapshot clear`."""

    def test_clear_with_yes(self, snapshot_dir) -> None:
        """--yes clears without prompting."""
        result = runner.invoke(
            cli.app, ["snapshot", "clear", "--yes", "--snapshot-dir", str(snapshot_dir)]
        )

        assert result.exit_code == 0, result.output
        assert stored_keys(snapshot_dir) == []

    def test_save_failure_exits_non_zero(self, snapshot_dir, monkeypatch) -> None:
        """A failed write is reported and the command fails."""
        monkeypatch.setattr(
            FileSnapshotStore, "save", MagicMock(side_effect=PersistenceError("disk full"))
        )

        result = runner.invoke(
            cli.app, ["snapshot", "clear", "--yes", "--snapshot-dir", str(snapshot_dir)]
        )

        assert result.exit_code == 1
        assert "disk full" in result.output
        assert "Cleared" not in result.output
        assert stored_keys(snapshot_dir) == ["customer:old", "customer:new"]

    def test_clear_aborted(self, snapshot_dir) -> None:
        """Declining the prompt leaves the snapshot alone."""
        result = runner.invoke(
            cli.app, ["snapshot", "clear", "--snapshot-dir", str(snapshot_dir)], input="n\n"
        )

        assert result.exit_code != 0
        assert stored_keys(snapshot_dir) == ["customer:old", "customer:new"]
