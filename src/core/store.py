"""Thread-safe in-memory deduplicating counter store.

Every webhook request runs on its own worker thread, so the whole
lookup/create/update sequence happens under one lock. Records are never
evicted; the mapping grows for the lifetime of the process.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from core.identity import identity_for
from core.models import EventRecord, RawEvent, StoreStats


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Entry:
    """Mutable per-identity state; never leaves the store."""

    first_seen: datetime
    last_seen: datetime
    count: int
    last_detail: RawEvent

    def snapshot(self, token: str) -> EventRecord:
        return EventRecord(
            token=token,
            first_seen=self.first_seen,
            last_seen=self.last_seen,
            count=self.count,
            last_detail=self.last_detail,
        )


class EventStore:
    """Counts occurrences per event identity."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def record_occurrence(self, event: RawEvent) -> EventRecord:
        """Count one occurrence of ``event`` and return the updated record."""

        token = identity_for(event)
        with self._lock:
            now = self._clock()
            entry = self._entries.get(token)
            if entry is None:
                entry = _Entry(first_seen=now, last_seen=now, count=1, last_detail=event)
                self._entries[token] = entry
            else:
                entry.count += 1
                # A wall clock stepping backwards must not move last_seen back.
                entry.last_seen = max(now, entry.last_seen)
                entry.last_detail = event
            return entry.snapshot(token)

    def get(self, token: str) -> Optional[EventRecord]:
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            return entry.snapshot(token)

    def snapshot(self) -> dict[str, EventRecord]:
        """Return a point-in-time copy of every record, keyed by token."""

        with self._lock:
            return {token: entry.snapshot(token) for token, entry in self._entries.items()}

    def stats(self) -> StoreStats:
        with self._lock:
            return StoreStats(
                distinct_events=len(self._entries),
                total_occurrences=sum(entry.count for entry in self._entries.values()),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
