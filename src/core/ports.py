"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the counter store and the record sink
so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Protocol

from core.models import EventRecord, RawEvent


class OccurrenceStorePort(Protocol):
    """Counter operations required by the core pipeline."""

    def record_occurrence(self, event: RawEvent) -> EventRecord:
        ...


class EventSinkPort(Protocol):
    """Where processed records are reported."""

    def emit(self, record: EventRecord) -> None:
        ...
