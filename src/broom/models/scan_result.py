"""Scan result dataclasses."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable

from broom.models.category import Category


@dataclass(frozen=True, slots=True)
class CleanableItem:
    """Single file or directory that can be removed.

    ``size`` is the recursive total for directories, measured at scan
    time.  It may be stale by the time the item is cleaned.
    """

    path: Path
    name: str
    size: int
    is_directory: bool = False
    modified_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"Negative size for {self.path}: {self.size}")


@dataclass(slots=True)
class ScanOptions:
    """Per-run knobs passed to every scanner.

    ``days_old`` and ``min_size`` override a scanner's own defaults when
    set.  ``cancel`` is checked between entries by long-running scanners.
    """

    days_old: int | None = None
    min_size: int | None = None
    cancel: threading.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()


@dataclass(slots=True)
class ScanResult:
    """Result of scanning one category.

    ``error`` is set when the scanner could not finish; ``items`` then holds
    whatever was gathered before the failure.
    """

    category: Category
    items: list[CleanableItem] = field(default_factory=list)
    total_size: int = 0
    error: str | None = None

    @classmethod
    def from_items(
        cls,
        category: Category,
        items: Iterable[CleanableItem],
        error: str | None = None,
    ) -> ScanResult:
        items = list(items)
        return cls(category=category, items=items, total_size=sum(i.size for i in items), error=error)

    def with_items(self, items: Iterable[CleanableItem]) -> ScanResult:
        """Return a copy holding *items*, with the total recomputed."""
        items = list(items)
        return replace(self, items=items, total_size=sum(i.size for i in items))


@dataclass(slots=True)
class ScanSummary:
    """Merged output of one orchestrated scan run."""

    results: list[ScanResult] = field(default_factory=list)
    total_size: int = 0
    total_items: int = 0

    @classmethod
    def from_results(cls, results: Iterable[ScanResult]) -> ScanSummary:
        results = list(results)
        return cls(
            results=results,
            total_size=sum(r.total_size for r in results),
            total_items=sum(len(r.items) for r in results),
        )

    @property
    def errors(self) -> list[ScanResult]:
        """Results whose scanner reported a failure."""
        return [r for r in self.results if r.error]
