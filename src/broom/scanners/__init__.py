"""Built-in scanners.

The set is fixed: ``builtin_scanners()`` lists every scanner in display
order and ``build_registry()`` wraps them in a ``ScannerRegistry``.
"""

from __future__ import annotations

from broom.core.registry import ScannerRegistry
from broom.models.scanner import Scanner
from broom.scanners.caches import BrowserCacheScanner, ThumbnailsScanner, UserCacheScanner
from broom.scanners.development import DevCacheScanner, IdeCacheScanner, NodeModulesScanner
from broom.scanners.docker import DockerScanner
from broom.scanners.downloads import DownloadsScanner, InstallerScanner
from broom.scanners.homebrew import HomebrewScanner
from broom.scanners.logs import UserLogsScanner
from broom.scanners.temp_files import TempFilesScanner
from broom.scanners.trash import TrashScanner

__all__ = ["build_registry", "builtin_scanners"]


def builtin_scanners() -> list[Scanner]:
    return [
        UserCacheScanner(),
        UserLogsScanner(),
        TempFilesScanner(),
        ThumbnailsScanner(),
        TrashScanner(),
        DownloadsScanner(),
        InstallerScanner(),
        BrowserCacheScanner(),
        DevCacheScanner(),
        NodeModulesScanner(),
        IdeCacheScanner(),
        HomebrewScanner(),
        DockerScanner(),
    ]


def build_registry() -> ScannerRegistry:
    return ScannerRegistry(builtin_scanners())
