"""Scanners for developer tool caches and project dependencies."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from broom.models.category import Category
from broom.models.scan_result import CleanableItem, ScanOptions
from broom.models.scanner import MultiDirScanner, Scanner
from broom.utils import home_dir, make_item, xdg_cache_home, xdg_config_home, xdg_data_home

log = logging.getLogger(__name__)

_MIB = 1024 * 1024

DEV_CACHE = Category(
    id="dev-cache",
    name="Development Cache",
    group="Development",
    description="Package manager caches (npm, Yarn, pip, Cargo, Go, ...)",
    safety_level="moderate",
    safety_note="Packages are downloaded again on next install",
)

NODE_MODULES = Category(
    id="node-modules",
    name="Node Modules",
    group="Development",
    description="node_modules directories in projects",
    safety_level="moderate",
    safety_note="Can be reinstalled with npm/yarn/pnpm install",
)

IDE_CACHE = Category(
    id="ide-cache",
    name="IDE Cache",
    group="Development",
    description="JetBrains and VS Code caches",
    safety_level="moderate",
    safety_note="IDEs re-index projects after their caches are removed",
)


class DevCacheScanner(MultiDirScanner):
    """Reports each package manager cache larger than 1 MiB."""

    category = DEV_CACHE
    _min_size = _MIB

    @property
    def _locations(self) -> tuple[tuple[str, Path], ...]:
        home = home_dir()
        cache = xdg_cache_home()
        return (
            ("npm cache", home / ".npm" / "_cacache"),
            ("Yarn cache", cache / "yarn"),
            ("pnpm store", xdg_data_home() / "pnpm" / "store"),
            ("Bun cache", home / ".bun" / "install" / "cache"),
            ("pip cache", cache / "pip"),
            ("Cargo registry cache", home / ".cargo" / "registry" / "cache"),
            ("Rustup downloads", home / ".rustup" / "downloads"),
            ("Go build cache", cache / "go-build"),
            ("Go mod cache", home / "go" / "pkg" / "mod" / "cache"),
            ("Gradle caches", home / ".gradle" / "caches"),
            ("Maven repository", home / ".m2" / "repository"),
            ("Composer cache", cache / "composer"),
        )


class NodeModulesScanner(Scanner):
    """Finds top-level ``node_modules`` directories under common project roots.

    A ``node_modules`` found inside another is never reported, and hidden
    directories are not searched.  Only the largest ``_limit`` results are
    kept.
    """

    category = NODE_MODULES
    _max_depth = 5
    _min_size = 10 * _MIB
    _limit = 100

    def __init__(self, search_paths: tuple[Path, ...] | None = None) -> None:
        self._search_paths = search_paths

    def _roots(self) -> tuple[Path, ...]:
        if self._search_paths is not None:
            return self._search_paths
        home = home_dir()
        return (
            home / "Projects",
            home / "projects",
            home / "Developer",
            home / "Code",
            home / "code",
            home / "src",
            home / "Documents",
            home / "Desktop",
        )

    @property
    def unavailable_reason(self) -> str | None:
        if not any(root.is_dir() for root in self._roots()):
            return "No project directories found"
        return None

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        min_size = options.min_size if options.min_size is not None else self._min_size
        found: list[CleanableItem] = []

        for root in self._roots():
            if not root.is_dir():
                continue
            for dirpath, dirnames, _ in os.walk(root):
                if options.cancelled:
                    return
                current = Path(dirpath)
                if "node_modules" in dirnames:
                    dirnames.remove("node_modules")
                    path = current / "node_modules"
                    try:
                        item = None if path.is_symlink() else make_item(path, name=f"{current.name}/node_modules")
                    except OSError:
                        log.debug("Cannot access: %s", path)
                        item = None
                    if item is not None and item.size >= min_size:
                        found.append(item)
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                if len(current.relative_to(root).parts) >= self._max_depth - 1:
                    dirnames.clear()

        found.sort(key=lambda i: i.size, reverse=True)
        yield from found[: self._limit]


class IdeCacheScanner(MultiDirScanner):
    """Reports JetBrains and VS Code cache directories."""

    category = IDE_CACHE

    @property
    def _locations(self) -> tuple[tuple[str, Path], ...]:
        cache = xdg_cache_home()
        config = xdg_config_home()
        locations = [("JetBrains cache", cache / "JetBrains")]
        for product in ("Code", "Code - OSS", "VSCodium"):
            for sub in ("Cache", "CachedData", "CachedExtensionVSIXs", "Code Cache", "GPUCache"):
                locations.append((f"{product} {sub}", config / product / sub))
        return tuple(locations)
