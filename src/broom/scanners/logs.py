"""Scanner for per-user application logs."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterator

from broom.models.category import Category
from broom.models.scan_result import CleanableItem, ScanOptions
from broom.models.scanner import Scanner
from broom.utils import home_dir, make_item, xdg_state_home

log = logging.getLogger(__name__)

_LOG_NAME = re.compile(r"\.log(\.\d+)?(\.gz|\.xz|\.zst)?$|\.old$")

_MAX_DEPTH = 3

USER_LOGS = Category(
    id="user-logs",
    name="User Logs",
    group="System Junk",
    description="Application logs in ~/.local/state and old X session logs",
    safety_level="safe",
)


class UserLogsScanner(Scanner):
    """Finds log files under $XDG_STATE_HOME plus stale session error logs."""

    category = USER_LOGS

    def _extra_files(self) -> tuple[Path, ...]:
        return (home_dir() / ".xsession-errors.old",)

    @property
    def unavailable_reason(self) -> str | None:
        if not xdg_state_home().is_dir() and not any(p.exists() for p in self._extra_files()):
            return "No user log locations found"
        return None

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        root = xdg_state_home()
        if root.is_dir():
            for dirpath, dirnames, filenames in os.walk(root):
                if options.cancelled:
                    return
                depth = len(Path(dirpath).relative_to(root).parts)
                if depth >= _MAX_DEPTH:
                    dirnames.clear()
                for filename in sorted(filenames):
                    if not _LOG_NAME.search(filename):
                        continue
                    path = Path(dirpath) / filename
                    try:
                        if path.is_symlink():
                            continue
                        item = make_item(path)
                    except OSError:
                        log.debug("Cannot access: %s", path)
                        continue
                    if item is not None and item.size > 0:
                        yield item

        for path in self._extra_files():
            if path.is_file():
                item = make_item(path)
                if item is not None and item.size > 0:
                    yield item
