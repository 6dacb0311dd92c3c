"""Central scanner registry."""

from __future__ import annotations

import logging
from typing import Iterator

from broom.models.scanner import Scanner

log = logging.getLogger(__name__)


class ScannerRegistry:
    """Stores and retrieves registered scanners by category id."""

    def __init__(self, scanners: list[Scanner] | None = None) -> None:
        self._scanners: dict[str, Scanner] = {}
        for scanner in scanners or ():
            self.register(scanner)

    def register(self, scanner: Scanner) -> None:
        """Register a scanner instance."""
        if scanner.id in self._scanners:
            log.warning("Scanner '%s' already registered, skipping duplicate", scanner.id)
            return
        self._scanners[scanner.id] = scanner
        log.debug("Registered scanner: %s (%s)", scanner.id, scanner.name)

    def get(self, category_id: str) -> Scanner | None:
        """Get a scanner by its category id."""
        return self._scanners.get(category_id)

    def get_all(self) -> list[Scanner]:
        """Get all registered scanners."""
        return list(self._scanners.values())

    def get_by_group(self, group: str) -> list[Scanner]:
        """Get all scanners whose category belongs to *group*."""
        return [s for s in self._scanners.values() if s.category.group == group]

    def get_available(self) -> list[Scanner]:
        """Get all scanners that are available on this system."""
        available = []
        for scanner in self._scanners.values():
            try:
                if scanner.is_available():
                    available.append(scanner)
            except Exception:
                log.exception("Error checking availability for scanner '%s'", scanner.id)
        return available

    def __len__(self) -> int:
        return len(self._scanners)

    def __iter__(self) -> Iterator[Scanner]:
        return iter(self._scanners.values())

    def __contains__(self, category_id: str) -> bool:
        return category_id in self._scanners
