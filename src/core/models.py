"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to the webhook wire format.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RawEvent:
    """One parsed webhook notification.

    Only the four identity fields take part in deduplication; occurred_at and
    raw_payload are carried for logging.
    """

    event_type: str = ""
    user_id: str = ""
    block_id: str = ""
    board_id: str = ""
    occurred_at: int = 0
    raw_payload: bytes = b""


@dataclass(frozen=True)
class EventRecord:
    """Snapshot of the counter state for one event identity."""

    token: str
    first_seen: datetime
    last_seen: datetime
    count: int
    last_detail: RawEvent


@dataclass(frozen=True)
class StoreStats:
    distinct_events: int
    total_occurrences: int
