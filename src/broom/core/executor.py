"""Clean phase: removes operator-approved items category by category."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from broom.core.registry import ScannerRegistry
from broom.core.safety import is_protected_path
from broom.models.clean_result import CleanResult, CleanSummary, DeletionRecord
from broom.models.scan_result import ScanResult

log = logging.getLogger(__name__)

DeletionCallback = Callable[[DeletionRecord], None]
CleanProgressCallback = Callable[[ScanResult, CleanResult], None]


class CleanExecutor:
    """Runs each category's ``clean()`` and aggregates the outcome.

    Categories are processed one after another.  Nothing raises to the
    caller: every failure ends up as a string in some ``CleanResult.errors``.
    """

    def __init__(self, registry: ScannerRegistry) -> None:
        self.registry = registry

    def execute(
        self,
        results: Iterable[ScanResult],
        *,
        dry_run: bool = False,
        on_deleted: DeletionCallback | None = None,
        on_progress: CleanProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanSummary:
        """Clean the items in *results*.

        Args:
            results: Filtered, operator-approved scan results.
            dry_run: Report what would be removed without touching anything.
            on_deleted: Called for every item actually removed, as it happens.
            on_progress: Called after each category with its result.
            cancel: When set, remaining categories and items are left alone.
        """
        clean_results: list[CleanResult] = []

        for scan_result in results:
            if cancel is not None and cancel.is_set():
                log.info("Clean cancelled before '%s'", scan_result.category.id)
                break
            if not scan_result.items:
                continue

            result = self._clean_category(scan_result, dry_run, on_deleted, cancel)
            clean_results.append(result)
            log.debug(
                "%s '%s': %d items, %d bytes, %d error(s)",
                "Simulated" if dry_run else "Cleaned",
                scan_result.category.id,
                result.cleaned_items,
                result.freed_space,
                len(result.errors),
            )
            if on_progress:
                on_progress(scan_result, result)

        summary = CleanSummary.from_results(clean_results)
        log.info(
            "%s %d items, %d bytes freed, %d error(s)",
            "Dry run:" if dry_run else "Cleaned",
            summary.total_cleaned_items,
            summary.total_freed_space,
            summary.total_errors,
        )
        return summary

    def _clean_category(
        self,
        scan_result: ScanResult,
        dry_run: bool,
        on_deleted: DeletionCallback | None,
        cancel: threading.Event | None,
    ) -> CleanResult:
        category = scan_result.category
        scanner = self.registry.get(category.id)
        if scanner is None:
            log.warning("No scanner registered for '%s'", category.id)
            return CleanResult(
                category=category,
                errors=[f"No scanner registered for category '{category.id}'"],
            )

        # Protected items never reach scanner.clean(), batch overrides included.
        allowed = []
        refused = CleanResult(category=category)
        for item in scan_result.items:
            if is_protected_path(item.path):
                log.warning("Refusing to remove protected path: %s", item.path)
                refused.errors.append(f"{item.path}: refusing to remove protected path")
                refused.skipped.append(item.path)
            else:
                allowed.append(item)

        if not allowed:
            return refused

        try:
            result = scanner.clean(allowed, dry_run, on_removed=on_deleted, cancel=cancel)
        except Exception as e:
            log.exception("Scanner '%s' failed during clean", category.id)
            result = CleanResult(category=category, errors=[f"Scanner crashed during cleaning: {e}"])

        return refused.merge(result)
