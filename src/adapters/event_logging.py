"""Structured logging sink for processed event records.

Rendering lives here so every log destination sees the same field layout.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from core.models import EventRecord, RawEvent

LOGGER = logging.getLogger("boardwatch.events")


def _render_payload(raw_payload: bytes) -> Any:
    """Embed JSON payloads as objects; fall back to text for anything else."""

    if not raw_payload:
        return None
    text = raw_payload.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def format_event(event: RawEvent) -> dict[str, Any]:
    return {
        "type": event.event_type,
        "userId": event.user_id,
        "blockId": event.block_id,
        "boardId": event.board_id,
        "timestamp": event.occurred_at,
        "payload": _render_payload(event.raw_payload),
    }


def format_record(record: EventRecord) -> dict[str, Any]:
    """Return the structured fields logged for one processed record."""

    return {
        "eventType": record.last_detail.event_type,
        "count": record.count,
        "firstSeen": record.first_seen.isoformat(),
        "lastSeen": record.last_seen.isoformat(),
        "eventDetails": format_event(record.last_detail),
    }


class LoggingEventSink:
    """Sink adapter that writes each processed record to the log."""

    def __init__(self, logger: logging.Logger = LOGGER) -> None:
        self._logger = logger

    def emit(self, record: EventRecord) -> None:
        self._logger.info("Focalboard event processed", extra={"fields": format_record(record)})
