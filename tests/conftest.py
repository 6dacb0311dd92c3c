"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

import broom.storage as storage
from broom.models.category import Category
from broom.models.scan_result import CleanableItem


@pytest.fixture
def isolate_storage(tmp_path, monkeypatch):
    """Redirect storage to a temp directory."""
    data_dir = tmp_path / "broom_data"
    data_dir.mkdir()
    history_file = data_dir / "history.json"
    monkeypatch.setattr(storage, "HISTORY_FILE", history_file)
    monkeypatch.setattr(storage, "JOURNAL_FILE", data_dir / "deletions.jsonl")
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    return history_file


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point HOME and every XDG base directory into the temp directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var, sub in (
        ("XDG_CACHE_HOME", ".cache"),
        ("XDG_CONFIG_HOME", ".config"),
        ("XDG_DATA_HOME", ".local/share"),
        ("XDG_STATE_HOME", ".local/state"),
    ):
        path = home / sub
        path.mkdir(parents=True)
        monkeypatch.setenv(var, str(path))
    return home


def make_category(
    category_id: str = "fake",
    safety_level: str = "safe",
    group: str = "System Junk",
) -> Category:
    return Category(
        id=category_id,
        name=f"Fake ({category_id})",
        group=group,
        description="A fake category for testing",
        safety_level=safety_level,
    )


def write_file(path: Path, size: int, fill: bytes = b"x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(fill * size)
    return path


def fake_item(path: str | Path, size: int = 1024) -> CleanableItem:
    path = Path(path)
    return CleanableItem(path=path, name=path.name, size=size)
