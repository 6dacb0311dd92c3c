"""Scanners for old downloads and leftover installer packages."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterator

from broom.models.category import Category
from broom.models.scan_result import CleanableItem, ScanOptions
from broom.models.scanner import DirectoryEntriesScanner, Scanner
from broom.utils import home_dir, make_item, xdg_config_home

log = logging.getLogger(__name__)

_MIB = 1024 * 1024

DOWNLOADS = Category(
    id="downloads",
    name="Old Downloads",
    group="Storage",
    description="Files in Downloads not modified for 30 days",
    safety_level="risky",
    safety_note="May contain files you still need",
)

INSTALLERS = Category(
    id="installers",
    name="Installer Packages",
    group="Storage",
    description="Downloaded .deb, .rpm, .AppImage, disk images and similar",
    safety_level="moderate",
    safety_note="Packages can usually be downloaded again",
)

INSTALLER_EXTENSIONS = (".deb", ".rpm", ".appimage", ".iso", ".dmg", ".pkg", ".flatpakref", ".snap")


def downloads_dir() -> Path:
    """Resolve the user's Downloads directory.

    Reads ``XDG_DOWNLOAD_DIR`` from ``user-dirs.dirs``, falls back to
    ``~/Downloads``.
    """
    dirs_file = xdg_config_home() / "user-dirs.dirs"
    if dirs_file.is_file():
        try:
            match = re.search(r'^XDG_DOWNLOAD_DIR="(.+)"', dirs_file.read_text(), re.MULTILINE)
        except OSError:
            match = None
        if match:
            return Path(match.group(1).replace("$HOME", str(home_dir())))
    return home_dir() / "Downloads"


class DownloadsScanner(DirectoryEntriesScanner):
    """Reports visible Downloads entries untouched for ``days_old`` days."""

    category = DOWNLOADS
    _skip_hidden = True
    _days_old = 30

    @property
    def _roots(self) -> tuple[Path, ...]:
        return (downloads_dir(),)


class InstallerScanner(Scanner):
    """Finds installer packages larger than 1 MiB, at most two levels deep."""

    category = INSTALLERS
    _max_depth = 2
    _min_size = _MIB

    def _search_dirs(self) -> tuple[Path, ...]:
        home = home_dir()
        return (downloads_dir(), home / "Desktop", home / "Documents")

    @property
    def unavailable_reason(self) -> str | None:
        if not any(d.is_dir() for d in self._search_dirs()):
            return "No Downloads, Desktop or Documents directory"
        return None

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        min_size = options.min_size if options.min_size is not None else self._min_size
        for root in self._search_dirs():
            if not root.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(root):
                if options.cancelled:
                    return
                dirnames[:] = [d for d in dirnames if not d.startswith(".") and d != "node_modules"]
                if len(Path(dirpath).relative_to(root).parts) >= self._max_depth - 1:
                    dirnames.clear()
                for filename in sorted(filenames):
                    if not filename.lower().endswith(INSTALLER_EXTENSIONS):
                        continue
                    path = Path(dirpath) / filename
                    try:
                        if path.is_symlink():
                            continue
                        item = make_item(path)
                    except OSError:
                        log.debug("Cannot access: %s", path)
                        continue
                    if item is not None and item.size > min_size:
                        yield item
