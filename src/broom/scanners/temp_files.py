"""Scanner for the user's stale temporary files."""

from __future__ import annotations

import os
from pathlib import Path

from broom.models.category import Category
from broom.models.scanner import DirectoryEntriesScanner

TEMP_FILES = Category(
    id="temp-files",
    name="Temporary Files",
    group="System Junk",
    description="User-owned files in /tmp and /var/tmp older than one day",
    safety_level="safe",
)

# Sockets and lock directories of running sessions
_SKIP_PREFIXES = (".X", ".ICE-unix", "systemd-private-", "ssh-", "tmux-", "pulse-")


class TempFilesScanner(DirectoryEntriesScanner):
    """Reports user-owned temp entries untouched for at least ``days_old`` days."""

    category = TEMP_FILES
    _days_old = 1

    def __init__(self, roots: tuple[Path, ...] | None = None) -> None:
        self._temp_roots = roots or (Path("/tmp"), Path("/var/tmp"))

    @property
    def _roots(self) -> tuple[Path, ...]:
        return self._temp_roots

    def _include(self, entry: Path) -> bool:
        if entry.name.startswith(_SKIP_PREFIXES):
            return False
        try:
            return entry.lstat().st_uid == os.getuid()
        except OSError:
            return False
