"""Tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

import broom.cli as cli
from broom.core.registry import ScannerRegistry
from broom.models.category import Category
from broom.models.scanner import MultiDirScanner

from conftest import make_category, write_file

pytestmark = pytest.mark.usefixtures("isolate_storage", "fake_home")


class DirScanner(MultiDirScanner):
    def __init__(self, category: Category, locations: dict[str, Path]):
        self._category = category
        self._locs = tuple(locations.items())

    @property
    def category(self) -> Category:
        return self._category

    @property
    def _locations(self):
        return self._locs


@pytest.fixture
def junk(tmp_path, monkeypatch):
    root = tmp_path / "junk"
    write_file(root / "cache" / "blob.bin", 4096)
    write_file(root / "downloads" / "old.iso", 1000)
    registry = ScannerRegistry(
        [
            DirScanner(make_category("cache"), {"Cache": root / "cache"}),
            DirScanner(make_category("downloads", safety_level="risky", group="Storage"), {"Old": root / "downloads"}),
        ]
    )
    monkeypatch.setattr(cli, "_build_registry", lambda: registry)
    return root


@pytest.fixture
def runner():
    return CliRunner()


class TestList:
    def test_json(self, runner, junk):
        result = runner.invoke(cli.main, ["list", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [d["id"] for d in data] == ["cache", "downloads"]
        assert data[1]["safety_level"] == "risky"


class TestScan:
    def test_json_never_deletes(self, runner, junk):
        result = runner.invoke(cli.main, ["scan", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert {d["category"]: d["total_size"] for d in data} == {"cache": 4096, "downloads": 1000}
        assert (junk / "cache" / "blob.bin").exists()

    def test_text(self, runner, junk):
        result = runner.invoke(cli.main, ["scan"])
        assert result.exit_code == 0
        assert "Fake (cache)" in result.output
        assert "--unsafe" in result.output


class TestClean:
    def test_skips_risky_without_unsafe(self, runner, junk):
        result = runner.invoke(cli.main, ["clean", "--yes", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["status"] == "cleaned"
        assert data["total_freed_space"] == 4096
        assert not (junk / "cache").exists()
        assert (junk / "downloads").exists()

    def test_unsafe_includes_risky(self, runner, junk):
        result = runner.invoke(cli.main, ["clean", "--yes", "--unsafe", "--json"])
        data = json.loads(result.stdout)
        assert data["total_freed_space"] == 5096
        assert not (junk / "downloads").exists()

    def test_dry_run(self, runner, junk):
        result = runner.invoke(cli.main, ["clean", "--dry-run", "--unsafe", "--json"])
        data = json.loads(result.stdout)
        assert data["status"] == "dry_run"
        assert data["total_freed_space"] == 5096
        assert (junk / "cache" / "blob.bin").exists()

    def test_abort_at_prompt(self, runner, junk):
        result = runner.invoke(cli.main, ["clean"], input="n\n")
        assert "Aborted." in result.output
        assert (junk / "cache").exists()

    def test_whitelisted_items_survive(self, runner, junk):
        runner.invoke(cli.main, ["whitelist", "add", str(junk / "cache")])
        result = runner.invoke(cli.main, ["clean", "--yes", "--json"])
        assert json.loads(result.stdout)["status"] == "nothing_to_clean"
        assert (junk / "cache").exists()

    def test_blacklisted_category_not_scanned(self, runner, junk, fake_home):
        config_dir = fake_home / ".config" / "broom"
        config_dir.mkdir(parents=True)
        (config_dir / "config.json").write_text(json.dumps({"blacklist": ["cache"]}))
        result = runner.invoke(cli.main, ["scan", "--json"])
        assert [d["category"] for d in json.loads(result.stdout)] == ["downloads"]

    def test_session_recorded(self, runner, junk, isolate_storage):
        runner.invoke(cli.main, ["clean", "--yes", "--json"])
        history = json.loads(isolate_storage.read_text())
        assert history["sessions"][0]["details"][0]["bytes_freed"] == 4096

        stats = runner.invoke(cli.main, ["stats", "--json"])
        assert json.loads(stats.stdout)["bytes_freed"] == 4096


class TestWhitelist:
    def test_add_list_remove(self, runner):
        assert runner.invoke(cli.main, ["whitelist", "add", "~/keep"]).exit_code == 0
        assert runner.invoke(cli.main, ["whitelist", "list"]).output.strip() == "~/keep"
        assert runner.invoke(cli.main, ["whitelist", "remove", "~/keep"]).exit_code == 0
        assert "empty" in runner.invoke(cli.main, ["whitelist", "list"]).output

    def test_remove_unknown(self, runner):
        result = runner.invoke(cli.main, ["whitelist", "remove", "/nope"])
        assert result.exit_code != 0


class TestDuplicates:
    @pytest.fixture
    def dupes(self, tmp_path):
        root = tmp_path / "dupes"
        write_file(root / "a.bin", 2048, b"q")
        write_file(root / "b.bin", 2048, b"q")
        return root

    def test_report_only(self, runner, dupes):
        result = runner.invoke(cli.main, ["duplicates", str(dupes), "--min-size", "1KB", "--json"])
        assert result.exit_code == 0, result.output
        groups = json.loads(result.stdout)["groups"]
        assert groups[0]["paths"] == [str(dupes / "a.bin"), str(dupes / "b.bin")]
        assert (dupes / "b.bin").exists()

    def test_keep_first(self, runner, dupes):
        result = runner.invoke(
            cli.main, ["duplicates", str(dupes), "--min-size", "1KB", "--action", "keep-first", "--yes"]
        )
        assert result.exit_code == 0, result.output
        assert (dupes / "a.bin").exists()
        assert not (dupes / "b.bin").exists()

    def test_bad_size(self, runner, dupes):
        result = runner.invoke(cli.main, ["duplicates", str(dupes), "--min-size", "huge"])
        assert result.exit_code == 2
        assert "Invalid size format" in result.output

    def test_json_action_reports_partial_match_warning(self, runner, tmp_path):
        root = tmp_path / "big"
        first = write_file(root / "one.bin", 2 * 1024 * 1024, b"\0")
        second = write_file(root / "two.bin", 2 * 1024 * 1024, b"\0")
        data = bytearray(second.read_bytes())
        data[len(data) // 2] = 0xFF
        second.write_bytes(bytes(data))

        result = runner.invoke(
            cli.main,
            ["duplicates", str(root), "--min-size", "1MB", "--action", "keep-first", "--no-verify", "--json"],
        )

        assert result.exit_code == 0, result.output
        assert "first and last 64 KiB" in result.stderr
        payload = json.loads(result.stdout)
        assert payload["warning"] == cli.PARTIAL_MATCH_WARNING
        assert first.exists()
