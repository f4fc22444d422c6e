"""Core event processing pipeline.

This module is integration-agnostic. It only relies on ports for counting and
reporting, so the HTTP layer or any future frontend can drive it unchanged.
"""

from __future__ import annotations

from core.models import EventRecord, RawEvent
from core.ports import EventSinkPort, OccurrenceStorePort


class EventProcessor:
    """Counts an inbound event and reports the resulting record."""

    def __init__(self, store: OccurrenceStorePort, sink: EventSinkPort) -> None:
        self._store = store
        self._sink = sink

    def handle(self, event: RawEvent) -> EventRecord:
        """Process one parsed event through the core pipeline."""

        record = self._store.record_occurrence(event)
        self._sink.emit(record)
        return record
