"""Base scanner interface."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator

from broom.models.category import Category
from broom.models.clean_result import CleanResult, DeletionRecord
from broom.models.scan_result import CleanableItem, ScanOptions, ScanResult

log = logging.getLogger(__name__)

DeletionCallback = Callable[[DeletionRecord], None]


class Scanner(ABC):
    """Base class for all scanners.

    A scanner discovers the items of exactly one category and knows how to
    remove them.  Subclasses implement ``_iter_items()``; ``scan()`` wraps
    it so that a failure part-way through still returns what was found.
    """

    @property
    @abstractmethod
    def category(self) -> Category:
        """Static category descriptor."""

    @property
    def id(self) -> str:
        return self.category.id

    @property
    def name(self) -> str:
        return self.category.name

    @property
    def unavailable_reason(self) -> str | None:
        """Why this scanner cannot work on this system, or None if supported."""
        return None

    def is_available(self) -> bool:
        """Check if this scanner is applicable on the current system."""
        return self.unavailable_reason is None

    @abstractmethod
    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        """Yield cleanable items. MUST NOT delete anything."""

    def scan(self, options: ScanOptions | None = None) -> ScanResult:
        """Scan for cleanable items.

        Never raises.  Items come back largest first; if the same path is
        yielded twice, the larger measurement wins.
        """
        options = options or ScanOptions()
        found: dict[Path, CleanableItem] = {}
        error: str | None = None

        try:
            for item in self._iter_items(options):
                existing = found.get(item.path)
                if existing is None or item.size > existing.size:
                    found[item.path] = item
                if options.cancelled:
                    break
        except OSError as e:
            log.debug("Scanner '%s' stopped early: %s", self.id, e)
            error = f"{e.filename or self.name}: {e.strerror or e}"
        except Exception as e:
            log.exception("Scanner '%s' failed", self.id)
            error = str(e) or type(e).__name__

        if error is None and options.cancelled:
            error = "Scan cancelled"

        items = sorted(found.values(), key=lambda i: i.size, reverse=True)
        return ScanResult.from_items(self.category, items, error=error)

    def clean(
        self,
        items: list[CleanableItem],
        dry_run: bool = False,
        *,
        on_removed: DeletionCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanResult:
        """Remove *items*, each independently.

        Subclasses override this to batch the operation through an external
        tool; they must still return a result of the same shape and report
        the hypothetical outcome without side effects when *dry_run* is set.
        """
        from broom.utils import remove_items

        freed, removed, errors, skipped = remove_items(
            items,
            dry_run=dry_run,
            on_removed=self._record_callback(on_removed),
            cancel=cancel,
        )
        return CleanResult(
            category=self.category,
            cleaned_items=removed,
            freed_space=freed,
            errors=errors,
            skipped=skipped,
        )

    def _dry_run_result(self, items: list[CleanableItem]) -> CleanResult:
        return CleanResult(
            category=self.category,
            cleaned_items=len(items),
            freed_space=sum(i.size for i in items),
        )

    def _settle(
        self,
        items: list[CleanableItem],
        on_removed: DeletionCallback | None,
        cancel: threading.Event | None,
    ) -> CleanResult:
        """Account for a batch tool run: count what it removed, remove the rest."""
        gone = [i for i in items if not (i.path.exists() or i.path.is_symlink())]
        leftover = [i for i in items if i not in gone]

        emit = self._record_callback(on_removed)
        if emit:
            for item in gone:
                emit(item)

        result = self._dry_run_result(gone)
        if leftover:
            result = result.merge(Scanner.clean(self, leftover, on_removed=on_removed, cancel=cancel))
        return result

    def _record_callback(self, on_removed: DeletionCallback | None) -> Callable[[CleanableItem], None] | None:
        """Adapt a DeletionRecord callback to the per-item removal hook."""
        if on_removed is None:
            return None

        def _emit(item: CleanableItem) -> None:
            on_removed(
                DeletionRecord(
                    path=item.path,
                    size=item.size,
                    category=self.category.name,
                    deleted_at=datetime.now(timezone.utc),
                )
            )

        return _emit


class MultiDirScanner(Scanner, ABC):
    """Base class for scanners whose items are whole known directories.

    Subclasses define ``category`` and ``_locations``; each existing,
    non-empty location becomes one item.
    """

    _min_size: int = 0

    @property
    @abstractmethod
    def _locations(self) -> tuple[tuple[str, Path], ...]:
        """(label, directory) pairs to report."""

    @property
    def unavailable_reason(self) -> str | None:
        if not any(path.exists() for _, path in self._locations):
            return f"{self.name} not found"
        return None

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        from broom.utils import make_item

        min_size = options.min_size if options.min_size is not None else self._min_size
        for label, path in self._locations:
            if not path.exists():
                continue
            try:
                item = make_item(path, name=label)
            except OSError:
                log.debug("Cannot access: %s", path)
                continue
            if item is not None and item.size > 0 and item.size >= min_size:
                yield item


class DirectoryEntriesScanner(Scanner, ABC):
    """Base class for scanners that report each child of one or more roots.

    A root that cannot be listed ends the scan with an error; a root that
    does not exist is simply skipped.
    """

    _skip_hidden: bool = False
    _days_old: int | None = None

    @property
    @abstractmethod
    def _roots(self) -> tuple[Path, ...]:
        """Directories whose children are candidates."""

    @property
    def unavailable_reason(self) -> str | None:
        if not any(root.is_dir() for root in self._roots):
            return f"{self.name} directory not found"
        return None

    def _include(self, entry: Path) -> bool:
        """Hook for subclasses to reject individual entries."""
        return True

    def _iter_items(self, options: ScanOptions) -> Iterator[CleanableItem]:
        from broom.utils import make_item

        days_old = options.days_old if options.days_old is not None else self._days_old
        cutoff = time.time() - days_old * 86400 if days_old is not None else None

        for root in self._roots:
            if not root.is_dir():
                continue
            for entry in sorted(root.iterdir()):
                if options.cancelled:
                    return
                if self._skip_hidden and entry.name.startswith("."):
                    continue
                if not self._include(entry):
                    continue
                try:
                    if cutoff is not None and entry.lstat().st_mtime > cutoff:
                        continue
                    item = make_item(entry)
                except OSError:
                    log.debug("Cannot access: %s", entry)
                    continue
                if item is not None and item.size > 0:
                    yield item


def drop_nested(items: Iterable[CleanableItem]) -> list[CleanableItem]:
    """Drop items that live inside another item of the same list."""
    items = list(items)
    roots = {str(i.path) for i in items}
    return [
        item
        for item in items
        if not any(str(parent) in roots for parent in item.path.parents)
    ]
