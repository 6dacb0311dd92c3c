"""Scanning orchestration engine."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

from broom.core.registry import ScannerRegistry
from broom.models.scan_result import ScanOptions, ScanResult, ScanSummary
from broom.models.scanner import Scanner

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Scanner], None]  # (completed, total, scanner)

DEFAULT_CONCURRENCY = 4


class ScanEngine:
    """Runs scanners with bounded concurrency and merges their results."""

    def __init__(self, registry: ScannerRegistry, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        if concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self.registry = registry
        self.concurrency = concurrency

    def scan(
        self,
        category_ids: Iterable[str] | None = None,
        *,
        exclude: Iterable[str] = (),
        options: ScanOptions | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ScanSummary:
        """Scan the selected categories.

        Each scanner runs independently; one that fails contributes a
        result with ``error`` set instead of aborting the run.

        Args:
            category_ids: Categories to scan. If None, scan all available.
            exclude: Category ids never to scan (the configured blacklist).
            options: Options passed to every scanner.
            on_progress: Called once per finished scanner with a strictly
                increasing completion count.
            cancel: When set, scanners that have not started are skipped.

        Returns:
            Results in registry order, with totals across all of them.
        """
        scanners = self._resolve_scanners(category_ids, set(exclude))
        if not scanners:
            return ScanSummary()

        options = options or ScanOptions()
        if cancel is not None and options.cancel is None:
            options = replace(options, cancel=cancel)

        started = time.monotonic()
        if self.concurrency == 1 or len(scanners) == 1:
            results = self._scan_sequential(scanners, options, on_progress)
        else:
            results = self._scan_parallel(scanners, options, on_progress)

        summary = ScanSummary.from_results(results)
        log.info(
            "Scanned %d categories in %.2fs: %d items, %d bytes, %d error(s)",
            len(results),
            time.monotonic() - started,
            summary.total_items,
            summary.total_size,
            len(summary.errors),
        )
        return summary

    def _scan_sequential(
        self,
        scanners: list[Scanner],
        options: ScanOptions,
        on_progress: ProgressCallback | None,
    ) -> list[ScanResult]:
        """Scan one category at a time in the calling thread."""
        results: list[ScanResult] = []
        for completed, scanner in enumerate(scanners, 1):
            results.append(self._run_scanner(scanner, options))
            if on_progress:
                on_progress(completed, len(scanners), scanner)
        return results

    def _scan_parallel(
        self,
        scanners: list[Scanner],
        options: ScanOptions,
        on_progress: ProgressCallback | None,
    ) -> list[ScanResult]:
        """Scan categories on a pool of at most ``concurrency`` threads."""
        lock = threading.Lock()
        completed = 0
        total = len(scanners)

        def _scan_one(scanner: Scanner) -> ScanResult:
            nonlocal completed
            result = self._run_scanner(scanner, options)
            with lock:
                completed += 1
                if on_progress:
                    on_progress(completed, total, scanner)
            return result

        max_workers = min(self.concurrency, total)
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="broom-scan") as executor:
            futures = [executor.submit(_scan_one, scanner) for scanner in scanners]
            return [future.result() for future in futures]

    @staticmethod
    def _run_scanner(scanner: Scanner, options: ScanOptions) -> ScanResult:
        if options.cancelled:
            return ScanResult(category=scanner.category, error="Scan cancelled")
        try:
            result = scanner.scan(options)
        except Exception as e:
            log.exception("Scanner '%s' failed during scan", scanner.id)
            return ScanResult(category=scanner.category, error=f"Scanner crashed: {e}")
        if result.error:
            log.warning("Scanner '%s' reported: %s", scanner.id, result.error)
        return result

    @staticmethod
    def _available(scanner: Scanner) -> bool:
        try:
            return scanner.is_available()
        except Exception:
            log.exception("Error checking availability for scanner '%s'", scanner.id)
            return False

    def _resolve_scanners(self, category_ids: Iterable[str] | None, exclude: set[str]) -> list[Scanner]:
        """Resolve which scanners to run."""
        if category_ids is not None:
            resolved: list[Scanner] = []
            for cid in category_ids:
                scanner = self.registry.get(cid)
                if scanner is None:
                    log.warning("Scanner '%s' not found, skipping", cid)
                elif cid in exclude:
                    log.info("Scanner '%s' is blacklisted, skipping", cid)
                elif self._available(scanner):
                    resolved.append(scanner)
                else:
                    log.info("Scanner '%s' not available on this system, skipping", cid)
            return resolved

        return [s for s in self.registry.get_available() if s.id not in exclude]
