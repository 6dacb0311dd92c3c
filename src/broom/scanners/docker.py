"""Scanner for Docker data."""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Iterator

from broom.models.category import Category
from broom.models.clean_result import CleanResult
from broom.models.scan_result import CleanableItem, ScanOptions
from broom.models.scanner import DeletionCallback, MultiDirScanner, drop_nested
from broom.utils import has_command, home_dir, xdg_data_home

log = logging.getLogger(__name__)

_PRUNE_TIMEOUT = 600

DOCKER = Category(
    id="docker",
    name="Docker Data",
    group="Development",
    description="Docker images, containers, and volumes",
    safety_level="risky",
    safety_note="Will remove all unused Docker data",
)


class DockerScanner(MultiDirScanner):
    """Reports rootless Docker and Docker Desktop data directories.

    Cleaning goes through ``docker system prune``; the directories are
    only removed directly when the Docker CLI is missing.
    """

    category = DOCKER

    @property
    def _locations(self) -> tuple[tuple[str, Path], ...]:
        desktop = home_dir() / ".docker" / "desktop"
        return (
            ("Docker Data", xdg_data_home() / "docker"),
            ("Docker Desktop", desktop),
            ("Docker VM Disk", desktop / "vms"),
        )

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        yield from drop_nested(super()._iter_items(options))

    def clean(
        self,
        items: list[CleanableItem],
        dry_run: bool = False,
        *,
        on_removed: DeletionCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanResult:
        if dry_run:
            return self._dry_run_result(items)
        if not has_command("docker"):
            return super().clean(items, on_removed=on_removed, cancel=cancel)

        try:
            subprocess.run(
                ["docker", "system", "prune", "-af", "--volumes"],
                capture_output=True,
                text=True,
                check=True,
                timeout=_PRUNE_TIMEOUT,
            )
        except subprocess.CalledProcessError as e:
            message = (e.stderr or "").strip() or str(e)
            return CleanResult(category=self.category, errors=[f"docker system prune failed: {message}"])
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            return CleanResult(category=self.category, errors=[f"docker system prune failed: {e}"])

        emit = self._record_callback(on_removed)
        if emit:
            for item in items:
                emit(item)
        return self._dry_run_result(items)
