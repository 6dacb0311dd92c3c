"""JSON file storage for history and the deletion journal."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

from broom.utils import xdg_data_home

log = logging.getLogger(__name__)

_DATA_DIR = xdg_data_home() / "broom"

HISTORY_FILE = _DATA_DIR / "history.json"
JOURNAL_FILE = _DATA_DIR / "deletions.jsonl"


def _ensure_data_dir() -> None:
    """Create the data directory if it doesn't exist."""
    _DATA_DIR.mkdir(parents=True, exist_ok=True)


def load_history() -> dict[str, Any]:
    """Load the history file, returning empty structure if missing."""
    if not HISTORY_FILE.exists():
        return {"sessions": []}
    try:
        with open(HISTORY_FILE) as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        log.exception("Failed to load history file: %s", HISTORY_FILE)
        return {"sessions": []}


def save_history(data: dict[str, Any]) -> None:
    """Write the history data to disk."""
    _ensure_data_dir()
    try:
        with open(HISTORY_FILE, "w") as f:
            json.dump(data, f, indent=2)
    except OSError:
        log.exception("Failed to save history file: %s", HISTORY_FILE)


def append_journal(entry: dict[str, Any]) -> None:
    """Append one line to the deletion journal and flush it."""
    _ensure_data_dir()
    try:
        with open(JOURNAL_FILE, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError:
        log.exception("Failed to append to journal: %s", JOURNAL_FILE)


def read_journal() -> Iterator[dict[str, Any]]:
    """Yield journal entries, skipping lines that do not parse."""
    if not JOURNAL_FILE.exists():
        return
    try:
        with open(JOURNAL_FILE) as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    log.debug("Skipping corrupt journal line")
    except OSError:
        log.exception("Failed to read journal: %s", JOURNAL_FILE)
