"""Scanner for the Homebrew (Linuxbrew) download cache and logs."""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path

from broom.models.category import Category
from broom.models.clean_result import CleanResult
from broom.models.scan_result import CleanableItem
from broom.models.scanner import DeletionCallback, MultiDirScanner
from broom.utils import has_command, xdg_cache_home

log = logging.getLogger(__name__)

_BREW_TIMEOUT = 300

HOMEBREW = Category(
    id="homebrew",
    name="Homebrew Cache",
    group="Development",
    description="Homebrew downloads and logs",
    safety_level="safe",
)


class HomebrewScanner(MultiDirScanner):
    """Reports the Homebrew cache and log directories."""

    category = HOMEBREW

    @property
    def _locations(self) -> tuple[tuple[str, Path], ...]:
        brew = xdg_cache_home() / "Homebrew"
        return (
            ("Homebrew Downloads", brew / "downloads"),
            ("Homebrew Cask Downloads", brew / "Cask"),
            ("Homebrew Logs", brew / "Logs"),
        )

    def clean(
        self,
        items: list[CleanableItem],
        dry_run: bool = False,
        *,
        on_removed: DeletionCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanResult:
        """Run ``brew cleanup --prune=all`` first, then remove what is left."""
        if dry_run:
            return self._dry_run_result(items)

        if has_command("brew"):
            try:
                subprocess.run(
                    ["brew", "cleanup", "--prune=all"],
                    capture_output=True,
                    check=True,
                    timeout=_BREW_TIMEOUT,
                )
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
                log.info("brew cleanup failed: %s", e)

        return self._settle(items, on_removed, cancel)
