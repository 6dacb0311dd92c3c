"""Scanner for the user's trash."""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path

from broom.models.category import Category
from broom.models.clean_result import CleanResult
from broom.models.scan_result import CleanableItem
from broom.models.scanner import DeletionCallback, DirectoryEntriesScanner
from broom.utils import has_command, xdg_data_home

log = logging.getLogger(__name__)

_GIO_TIMEOUT = 120

TRASH = Category(
    id="trash",
    name="Trash",
    group="Storage",
    description="Files in the desktop trash",
    safety_level="safe",
)


class TrashScanner(DirectoryEntriesScanner):
    """Empties the freedesktop trash (~/.local/share/Trash)."""

    category = TRASH

    def _trash_dir(self) -> Path:
        return xdg_data_home() / "Trash"

    @property
    def _roots(self) -> tuple[Path, ...]:
        trash = self._trash_dir()
        return (trash / "files", trash / "info")

    @property
    def unavailable_reason(self) -> str | None:
        if not self._trash_dir().is_dir():
            return "Trash directory not found"
        return None

    def clean(
        self,
        items: list[CleanableItem],
        dry_run: bool = False,
        *,
        on_removed: DeletionCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanResult:
        """Empty the trash through GIO when every entry was selected.

        A partial selection, or a failing ``gio``, falls back to removing
        the selected entries one by one.
        """
        if dry_run:
            return self._dry_run_result(items)
        if not self._is_whole_trash(items) or not has_command("gio"):
            return super().clean(items, on_removed=on_removed, cancel=cancel)

        try:
            subprocess.run(
                ["gio", "trash", "--empty"],
                capture_output=True,
                check=True,
                timeout=_GIO_TIMEOUT,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
            log.info("gio trash --empty failed, removing entries directly: %s", e)
            return super().clean(items, on_removed=on_removed, cancel=cancel)

        return self._settle(items, on_removed, cancel)

    def _is_whole_trash(self, items: list[CleanableItem]) -> bool:
        selected = {i.path for i in items}
        for root in self._roots:
            if not root.is_dir():
                continue
            try:
                if any(entry not in selected for entry in root.iterdir()):
                    return False
            except OSError:
                return False
        return True
