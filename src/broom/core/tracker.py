"""Tracks removed files and freed space across sessions."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from broom import storage
from broom.models.clean_result import CleanResult, DeletionRecord

log = logging.getLogger(__name__)


class Tracker:
    """Records cleaning outcomes for reports and statistics.

    Deletions are journaled as soon as they are recorded, so the trail
    survives an interrupted run; the session summary is written by
    ``save_session()``.
    """

    def __init__(self, command: str = "clean") -> None:
        self.session_id = uuid.uuid4().hex
        self.command = command
        self._session_results: list[CleanResult] = []
        self._deletions: list[DeletionRecord] = []

    @property
    def session_bytes_freed(self) -> int:
        """Total bytes freed in the current session."""
        return sum(r.freed_space for r in self._session_results)

    @property
    def session_items_removed(self) -> int:
        """Total items removed in the current session."""
        return sum(r.cleaned_items for r in self._session_results)

    @property
    def deletions(self) -> list[DeletionRecord]:
        return list(self._deletions)

    def record_deletion(self, record: DeletionRecord) -> None:
        """Record one removed item and append it to the journal."""
        self._deletions.append(record)
        storage.append_journal({"session": self.session_id, **record.to_dict()})

    def record(self, results: list[CleanResult]) -> None:
        """Record cleaning results for the current session."""
        self._session_results.extend(results)

    def get_last_clean_time(self) -> str | None:
        """Return ISO timestamp of the most recent cleaning session, or None."""
        history = storage.load_history()
        sessions = history.get("sessions", [])
        return sessions[-1]["timestamp"] if sessions else None

    def save_session(self) -> None:
        """Persist the current session to history."""
        if not self._session_results:
            return

        history = storage.load_history()
        session_entry = self._build_session_entry()
        history.setdefault("sessions", []).append(session_entry)
        storage.save_history(history)

        log.info(
            "Saved session: %d bytes freed from %d categories",
            _session_bytes(session_entry),
            len(session_entry["details"]),
        )
        self._session_results.clear()

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        history = storage.load_history()
        all_sessions = history.get("sessions", [])

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            sessions = [s for s in all_sessions if datetime.fromisoformat(s["timestamp"]) >= cutoff]
        else:
            sessions = all_sessions

        return {
            "period": period,
            "bytes_freed": sum(_session_bytes(s) for s in sessions),
            "items_removed": sum(_session_items(s) for s in sessions),
            "session_count": len(sessions),
            "lifetime_bytes_freed": sum(_session_bytes(s) for s in all_sessions),
            "per_category": self._aggregate_category_stats(sessions),
        }

    def _build_session_entry(self) -> dict[str, Any]:
        """Build a session record from current results."""
        details = [
            {
                "category": r.category.id,
                "bytes_freed": r.freed_space,
                "items_removed": r.cleaned_items,
                "errors": len(r.errors),
            }
            for r in self._session_results
        ]
        return {
            "id": self.session_id,
            "command": self.command,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details,
        }

    @staticmethod
    def _aggregate_category_stats(sessions: list[dict[str, Any]]) -> dict[str, dict[str, int]]:
        """Aggregate per-category statistics across sessions."""
        totals: dict[str, dict[str, int]] = {}
        for session in sessions:
            for detail in session.get("details", []):
                entry = totals.setdefault(detail["category"], {"bytes_freed": 0, "items_removed": 0})
                entry["bytes_freed"] += detail.get("bytes_freed", 0)
                entry["items_removed"] += detail.get("items_removed", 0)
        return totals


def _session_bytes(session: dict[str, Any]) -> int:
    """Derive total bytes freed from a session's details."""
    return sum(d.get("bytes_freed", 0) for d in session.get("details", []))


def _session_items(session: dict[str, Any]) -> int:
    """Derive total items removed from a session's details."""
    return sum(d.get("items_removed", 0) for d in session.get("details", []))


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
