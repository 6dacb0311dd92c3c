"""Whitelist filtering, risk partitioning and the protected-path guard."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from broom.models.scan_result import ScanResult

log = logging.getLogger(__name__)

# System locations that are never removed, whatever the configuration says.
PROTECTED_PATHS: tuple[str, ...] = (
    "/bin",
    "/boot",
    "/dev",
    "/etc",
    "/lib",
    "/lib32",
    "/lib64",
    "/proc",
    "/root",
    "/sbin",
    "/sys",
    "/usr",
    "/var/db",
    "/var/lib",
    "/var/log",
    "/System",
    "/Library/Apple",
    "/Applications/Utilities",
    "/private/var/db",
    "/private/var/root",
)

# Scratch areas inside otherwise protected trees.
ALLOWED_PATHS: tuple[str, ...] = (
    "/tmp",
    "/var/tmp",
    "/var/folders",
    "/private/tmp",
    "/private/var/tmp",
    "/private/var/folders",
)


def _is_under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def is_protected_path(path: str | Path) -> bool:
    """Check whether *path* resolves into a system-critical location.

    The filesystem root and the home directory itself are protected too.
    """
    resolved = os.path.realpath(os.path.abspath(str(path)))

    if resolved == "/" or resolved == os.path.realpath(str(Path.home())):
        return True
    if any(_is_under(resolved, allowed) for allowed in ALLOWED_PATHS):
        return False
    return any(_is_under(resolved, protected) for protected in PROTECTED_PATHS)


def _normalize_pattern(pattern: str) -> str:
    pattern = pattern.strip()
    if pattern.startswith("~"):
        pattern = str(Path.home()) + pattern[1:]
    return pattern.rstrip("/") or "/"


def is_whitelisted(path: str | Path, whitelist: Iterable[str]) -> bool:
    """Check if *path* equals or lies beneath any whitelist entry."""
    normalized = str(path).rstrip("/") or "/"
    for pattern in whitelist:
        if not pattern.strip():
            continue
        if _is_under(normalized, _normalize_pattern(pattern)):
            return True
    return False


def apply_whitelist(results: Iterable[ScanResult], whitelist: Iterable[str]) -> list[ScanResult]:
    """Drop whitelisted items and the categories left empty by that.

    Results that carry an error but no items are kept so the failure is
    still visible downstream.  Input results are not modified.
    """
    whitelist = [w for w in whitelist if w.strip()]
    filtered: list[ScanResult] = []

    for result in results:
        if not whitelist:
            kept = list(result.items)
        else:
            kept = [item for item in result.items if not is_whitelisted(item.path, whitelist)]
            dropped = len(result.items) - len(kept)
            if dropped:
                log.debug("Whitelist removed %d item(s) from '%s'", dropped, result.category.id)

        if kept or (result.error and not result.items):
            filtered.append(result.with_items(kept))

    return filtered


@dataclass(slots=True)
class RiskPartition:
    """Filtered results split by the category's declared safety level."""

    safe: list[ScanResult] = field(default_factory=list)
    risky: list[ScanResult] = field(default_factory=list)

    def select(self, include_risky: bool = False) -> list[ScanResult]:
        """Results a caller should proceed with."""
        return [*self.safe, *self.risky] if include_risky else list(self.safe)

    @property
    def risky_size(self) -> int:
        return sum(r.total_size for r in self.risky)


def partition_by_risk(results: Iterable[ScanResult]) -> RiskPartition:
    """Split results into ``risky`` and everything else (safe and moderate)."""
    partition = RiskPartition()
    for result in results:
        if result.category.is_risky:
            partition.risky.append(result)
        else:
            partition.safe.append(result)
    return partition


def filter_results(results: Iterable[ScanResult], whitelist: Iterable[str]) -> RiskPartition:
    """Apply the whitelist, then partition by risk."""
    return partition_by_risk(apply_whitelist(results, whitelist))
