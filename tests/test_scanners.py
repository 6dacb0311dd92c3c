"""Tests for the built-in scanners."""

from __future__ import annotations

import os
import subprocess
import time
from pathlib import Path

import pytest

from broom.models.clean_result import DeletionRecord
from broom.models.scan_result import ScanOptions
from broom.scanners import build_registry, builtin_scanners
from broom.scanners.caches import BrowserCacheScanner, ThumbnailsScanner, UserCacheScanner
from broom.scanners.development import DevCacheScanner, IdeCacheScanner, NodeModulesScanner
from broom.scanners.docker import DockerScanner
from broom.scanners.downloads import DownloadsScanner, InstallerScanner, downloads_dir
from broom.scanners.homebrew import HomebrewScanner
from broom.scanners.logs import UserLogsScanner
from broom.scanners.temp_files import TempFilesScanner
from broom.scanners.trash import TrashScanner

from conftest import write_file

MIB = 1024 * 1024


def _age(path: Path, days: float) -> None:
    old = time.time() - days * 86400
    os.utime(path, (old, old), follow_symlinks=False)


def _names(result) -> set[str]:
    return {item.name for item in result.items}


class TestBuiltinScanners:
    def test_ids_are_unique(self):
        ids = [s.id for s in builtin_scanners()]
        assert len(ids) == len(set(ids)) == 13

    def test_registry(self):
        registry = build_registry()
        assert "trash" in registry
        assert registry.get("docker").category.is_risky
        assert registry.get("downloads").category.is_risky
        assert registry.get("installers").category.safety_level == "moderate"

    def test_nothing_available_in_empty_home(self, fake_home):
        unavailable = {s.id for s in builtin_scanners() if not s.is_available()}
        assert {"trash", "browser-cache", "node-modules", "docker", "homebrew", "thumbnails"} <= unavailable


class TestUserCache:
    def test_reports_entries_except_owned(self, fake_home):
        cache = fake_home / ".cache"
        write_file(cache / "someapp" / "data", 100)
        write_file(cache / "thumbnails" / "normal" / "t.png", 50)
        write_file(cache / "fontconfig" / "f.cache", 50)
        write_file(cache / "pip" / "http" / "x", 50)
        (cache / "empty").mkdir()

        result = UserCacheScanner().scan()

        assert _names(result) == {"someapp"}
        assert result.total_size == 100


class TestThumbnails:
    def test_reports_size_dirs(self, fake_home):
        thumbs = fake_home / ".cache" / "thumbnails"
        write_file(thumbs / "normal" / "a.png", 10)
        write_file(thumbs / "large" / "b.png", 20)

        scanner = ThumbnailsScanner()
        assert scanner.is_available()
        result = scanner.scan()
        assert _names(result) == {"normal", "large"}
        assert result.items[0].name == "large"


class TestUserLogs:
    def test_finds_logs_within_depth(self, fake_home):
        state = fake_home / ".local" / "state"
        write_file(state / "app" / "app.log", 10)
        write_file(state / "app" / "app.log.1", 10)
        write_file(state / "app" / "old.log.2.gz", 10)
        write_file(state / "app" / "settings.json", 10)
        write_file(state / "a" / "b" / "c" / "d" / "deep.log", 10)
        write_file(fake_home / ".xsession-errors.old", 5)

        result = UserLogsScanner().scan()

        assert _names(result) == {"app.log", "app.log.1", "old.log.2.gz", ".xsession-errors.old"}


class TestTempFiles:
    def test_only_old_entries(self, tmp_path):
        root = tmp_path / "tmp"
        old = write_file(root / "old.txt", 10)
        write_file(root / "fresh.txt", 10)
        sock_dir = root / ".X11-unix"
        write_file(sock_dir / "X0", 1)
        _age(old, 3)
        _age(sock_dir, 3)

        result = TempFilesScanner(roots=(root,)).scan()

        assert _names(result) == {"old.txt"}

    def test_days_old_override(self, tmp_path):
        root = tmp_path / "tmp"
        write_file(root / "fresh.txt", 10)
        result = TempFilesScanner(roots=(root,)).scan(ScanOptions(days_old=0))
        assert _names(result) == {"fresh.txt"}


class TestTrash:
    @pytest.fixture
    def trash(self, fake_home, monkeypatch):
        monkeypatch.setattr("broom.scanners.trash.has_command", lambda name: False)
        trash = fake_home / ".local" / "share" / "Trash"
        write_file(trash / "files" / "doc.txt", 30)
        write_file(trash / "info" / "doc.txt.trashinfo", 5)
        return trash

    def test_scan(self, trash):
        result = TrashScanner().scan()
        assert result.total_size == 35
        assert len(result.items) == 2

    def test_clean_removes_entries(self, trash):
        scanner = TrashScanner()
        records: list[DeletionRecord] = []
        result = scanner.clean(scanner.scan().items, on_removed=records.append)

        assert result.cleaned_items == 2
        assert result.freed_space == 35
        assert not any((trash / "files").iterdir())
        assert {r.category for r in records} == {"Trash"}

    def test_gio_path_counts_removed_entries(self, trash, monkeypatch):
        import broom.scanners.trash as trash_module

        scanner = TrashScanner()
        items = scanner.scan().items

        def fake_gio(cmd, **kwargs):
            for sub in ("files", "info"):
                for entry in (trash / sub).iterdir():
                    entry.unlink()

        monkeypatch.setattr(trash_module, "has_command", lambda name: True)
        monkeypatch.setattr(trash_module.subprocess, "run", fake_gio)

        records: list[DeletionRecord] = []
        result = scanner.clean(items, on_removed=records.append)

        assert result.cleaned_items == 2
        assert result.errors == []
        assert len(records) == 2

    def test_dry_run(self, trash):
        scanner = TrashScanner()
        result = scanner.clean(scanner.scan().items, dry_run=True)
        assert result.freed_space == 35
        assert (trash / "files" / "doc.txt").exists()


class TestDownloads:
    def test_old_visible_entries_only(self, fake_home):
        dl = fake_home / "Downloads"
        old = write_file(dl / "old.zip", 100)
        write_file(dl / "new.zip", 100)
        hidden = write_file(dl / ".partial", 100)
        _age(old, 40)
        _age(hidden, 40)

        result = DownloadsScanner().scan()

        assert _names(result) == {"old.zip"}

    def test_user_dirs_override(self, fake_home):
        custom = fake_home / "Stuff"
        custom.mkdir()
        (fake_home / ".config" / "user-dirs.dirs").write_text('XDG_DOWNLOAD_DIR="$HOME/Stuff"\n')
        assert downloads_dir() == custom

    def test_installers(self, fake_home):
        dl = fake_home / "Downloads"
        write_file(dl / "tool.deb", 2 * MIB)
        write_file(dl / "nested" / "App.AppImage", 2 * MIB)
        write_file(dl / "a" / "b" / "too-deep.rpm", 2 * MIB)
        write_file(dl / "tiny.iso", 1024)
        write_file(dl / "notes.txt", 2 * MIB)

        result = InstallerScanner().scan()

        assert _names(result) == {"tool.deb", "App.AppImage"}


class TestBrowserCache:
    def test_only_cache_dirs(self, fake_home):
        chrome = fake_home / ".config" / "google-chrome" / "Default"
        write_file(chrome / "Cache" / "data_0", 100)
        write_file(chrome / "Code Cache" / "js" / "x", 50)
        write_file(chrome / "Cookies", 10)
        write_file(fake_home / ".cache" / "mozilla" / "firefox" / "abc.default" / "cache2" / "entry", 70)

        result = BrowserCacheScanner().scan()

        assert _names(result) == {"Chrome - Default/Cache", "Chrome - Default/Code Cache", "Firefox - abc.default/cache2"}
        assert result.total_size == 220


class TestDevelopment:
    def test_dev_cache_min_size(self, fake_home):
        write_file(fake_home / ".cache" / "pip" / "wheels" / "big.whl", 2 * MIB)
        write_file(fake_home / ".npm" / "_cacache" / "small", 100)

        result = DevCacheScanner().scan()

        assert _names(result) == {"pip cache"}

    def test_node_modules_top_level_only(self, tmp_path):
        projects = tmp_path / "Projects"
        write_file(projects / "web" / "node_modules" / "react" / "index.js", 2048)
        write_file(projects / "web" / "node_modules" / "dep" / "node_modules" / "x.js", 1024)
        write_file(projects / "api" / "node_modules" / "tiny.js", 10)

        scanner = NodeModulesScanner(search_paths=(projects,))
        result = scanner.scan(ScanOptions(min_size=1024))

        assert _names(result) == {"web/node_modules"}
        assert result.total_size == 3072

    def test_ide_cache(self, fake_home):
        write_file(fake_home / ".cache" / "JetBrains" / "PyCharm" / "index" / "i", 40)
        write_file(fake_home / ".config" / "Code" / "CachedData" / "c", 60)
        write_file(fake_home / ".config" / "Code" / "User" / "settings.json", 60)

        result = IdeCacheScanner().scan()

        assert _names(result) == {"JetBrains cache", "Code CachedData"}


class TestDocker:
    def test_nested_locations_deduplicated(self, fake_home):
        desktop = fake_home / ".docker" / "desktop"
        write_file(desktop / "vms" / "0" / "disk.raw", 500)
        write_file(desktop / "settings.json", 10)

        result = DockerScanner().scan()

        assert _names(result) == {"Docker Desktop"}
        assert result.total_size == 510

    def test_prune_failure_reported(self, fake_home, monkeypatch):
        import broom.scanners.docker as docker_module

        write_file(fake_home / ".local" / "share" / "docker" / "x", 10)
        scanner = DockerScanner()
        items = scanner.scan().items

        def failing(cmd, **kwargs):
            raise subprocess.CalledProcessError(1, cmd, stderr="daemon not running")

        monkeypatch.setattr(docker_module, "has_command", lambda name: True)
        monkeypatch.setattr(docker_module.subprocess, "run", failing)

        result = scanner.clean(items)

        assert result.cleaned_items == 0
        assert result.errors == ["docker system prune failed: daemon not running"]

    def test_dry_run_never_runs_docker(self, fake_home, monkeypatch):
        import broom.scanners.docker as docker_module

        write_file(fake_home / ".local" / "share" / "docker" / "x", 10)
        scanner = DockerScanner()
        items = scanner.scan().items
        monkeypatch.setattr(docker_module.subprocess, "run", lambda *a, **k: pytest.fail("ran docker"))

        result = scanner.clean(items, dry_run=True)
        assert result.freed_space == 10


class TestHomebrew:
    def test_falls_back_to_removal(self, fake_home, monkeypatch):
        monkeypatch.setattr("broom.scanners.homebrew.has_command", lambda name: False)
        brew = fake_home / ".cache" / "Homebrew"
        write_file(brew / "downloads" / "pkg.tar.gz", 100)
        write_file(brew / "Logs" / "wget" / "01.log", 20)

        scanner = HomebrewScanner()
        result = scanner.clean(scanner.scan().items)

        assert result.cleaned_items == 2
        assert result.freed_space == 120
        assert not (brew / "downloads").exists()
