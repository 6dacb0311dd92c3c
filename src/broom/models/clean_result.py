"""Cleaning result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable

from broom.models.category import Category


@dataclass(slots=True)
class CleanResult:
    """Result of cleaning one category's items."""

    category: Category
    cleaned_items: int = 0
    freed_space: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    def merge(self, other: CleanResult) -> CleanResult:
        """Combine two partial results for the same category."""
        return CleanResult(
            category=self.category,
            cleaned_items=self.cleaned_items + other.cleaned_items,
            freed_space=self.freed_space + other.freed_space,
            errors=[*self.errors, *other.errors],
            skipped=[*self.skipped, *other.skipped],
        )


@dataclass(slots=True)
class CleanSummary:
    """Aggregate over every category processed in one clean run."""

    results: list[CleanResult] = field(default_factory=list)
    total_freed_space: int = 0
    total_cleaned_items: int = 0
    total_errors: int = 0

    @classmethod
    def from_results(cls, results: Iterable[CleanResult]) -> CleanSummary:
        results = list(results)
        return cls(
            results=results,
            total_freed_space=sum(r.freed_space for r in results),
            total_cleaned_items=sum(r.cleaned_items for r in results),
            total_errors=sum(len(r.errors) for r in results),
        )


@dataclass(frozen=True, slots=True)
class DeletionRecord:
    """One file or directory that was actually removed."""

    path: Path
    size: int
    category: str
    deleted_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "size": self.size,
            "category": self.category,
            "deleted_at": self.deleted_at.isoformat(),
        }
