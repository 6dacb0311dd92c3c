"""Scanners for user, thumbnail and browser caches."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from broom.models.category import Category
from broom.models.scan_result import CleanableItem, ScanOptions
from broom.models.scanner import DirectoryEntriesScanner, Scanner
from broom.utils import home_dir, make_item, xdg_cache_home, xdg_config_home

log = logging.getLogger(__name__)

# Caches of long-running desktop components that regenerate slowly
_EXCLUDE_DIRS = {
    "fontconfig",
    "icon-cache.kcache",
    "gstreamer-1.0",
    "mesa_shader_cache",
    "nvidia",
}

# Handled by dedicated scanners
_OWNED_DIRS = {
    "thumbnails",
    "mozilla",
    "chromium",
    "google-chrome",
    "BraveSoftware",
    "microsoft-edge",
    "opera",
    "vivaldi",
    "JetBrains",
    "Homebrew",
    "pip",
    "yarn",
    "pnpm",
    "go-build",
    "composer",
}

USER_CACHE = Category(
    id="user-cache",
    name="User Cache",
    group="System Junk",
    description="Application caches in ~/.cache",
    safety_level="safe",
)

THUMBNAILS = Category(
    id="thumbnails",
    name="Thumbnails",
    group="System Junk",
    description="Thumbnail previews generated by file managers",
    safety_level="safe",
)

BROWSER_CACHE = Category(
    id="browser-cache",
    name="Browser Cache",
    group="Browsers",
    description="Cache from Firefox, Chromium, Chrome, Brave, Edge, Opera, Vivaldi",
    safety_level="safe",
)


class UserCacheScanner(DirectoryEntriesScanner):
    """Reports each entry of ~/.cache not owned by a more specific scanner."""

    category = USER_CACHE

    @property
    def _roots(self) -> tuple[Path, ...]:
        return (xdg_cache_home(),)

    def _include(self, entry: Path) -> bool:
        return entry.name not in _EXCLUDE_DIRS and entry.name not in _OWNED_DIRS


class ThumbnailsScanner(DirectoryEntriesScanner):
    """Reports each thumbnail size directory (normal, large, fail, ...)."""

    category = THUMBNAILS

    @property
    def _roots(self) -> tuple[Path, ...]:
        return (xdg_cache_home() / "thumbnails",)


# Entry names inside a browser profile that hold disposable cache data
_BROWSER_CACHE_NAMES = ("Cache", "Code Cache", "GPUCache", "ShaderCache", "GrShaderCache", "cache2")


def _browser_locations() -> tuple[tuple[str, Path], ...]:
    cache = xdg_cache_home()
    config = xdg_config_home()
    return (
        ("Firefox", cache / "mozilla" / "firefox"),
        ("Firefox", home_dir() / ".mozilla" / "firefox"),
        ("Chromium", cache / "chromium"),
        ("Chromium", config / "chromium"),
        ("Chrome", cache / "google-chrome"),
        ("Chrome", config / "google-chrome"),
        ("Brave", cache / "BraveSoftware" / "Brave-Browser"),
        ("Brave", config / "BraveSoftware" / "Brave-Browser"),
        ("Edge", cache / "microsoft-edge"),
        ("Edge", config / "microsoft-edge"),
        ("Opera", cache / "opera"),
        ("Opera", config / "opera"),
        ("Vivaldi", cache / "vivaldi"),
        ("Vivaldi", config / "vivaldi"),
    )


class BrowserCacheScanner(Scanner):
    """Finds cache directories inside browser cache and profile trees.

    Only entries named like caches are reported; cookies, history and
    other profile data are never touched.  Profiles are searched two
    levels deep (``<browser>/<profile>/Cache``).
    """

    category = BROWSER_CACHE

    @property
    def unavailable_reason(self) -> str | None:
        if not any(path.is_dir() for _, path in _browser_locations()):
            return "No supported browser found"
        return None

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        for browser, base in _browser_locations():
            if not base.is_dir():
                continue
            yield from self._scan_tree(browser, base, depth=2, options=options)

    def _scan_tree(self, browser: str, directory: Path, depth: int, options: ScanOptions) -> Iterator[CleanableItem]:
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            log.debug("Cannot read %s directory: %s", browser, directory)
            return

        for entry in entries:
            if options.cancelled:
                return
            try:
                if not entry.is_dir() or entry.is_symlink():
                    continue
                if entry.name in _BROWSER_CACHE_NAMES:
                    item = make_item(entry, name=f"{browser} - {entry.parent.name}/{entry.name}")
                    if item is not None and item.size > 0:
                        yield item
                elif depth > 0:
                    yield from self._scan_tree(browser, entry, depth - 1, options)
            except OSError:
                log.debug("Cannot access: %s", entry)
