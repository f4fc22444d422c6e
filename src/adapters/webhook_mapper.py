"""Webhook-to-core event mapping adapter.

This keeps the Focalboard JSON field names out of the core pipeline.
"""

from __future__ import annotations

import json
from typing import Any

from core.models import RawEvent

_IDENTITY_FIELDS = (
    ("event_type", "type"),
    ("user_id", "userId"),
    ("block_id", "blockId"),
    ("board_id", "boardId"),
)


class WebhookPayloadError(ValueError):
    """Raised when a webhook body cannot be turned into a RawEvent."""


def _lookup(payload: dict[str, Any], key: str) -> Any:
    """Exact key first, then a case-insensitive match (e.g. ``UserID``)."""

    if key in payload:
        return payload[key]
    folded = key.lower()
    for candidate, value in payload.items():
        if candidate.lower() == folded:
            return value
    return None


def _string_field(payload: dict[str, Any], key: str) -> str:
    value = _lookup(payload, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise WebhookPayloadError(f"Field {key!r} must be a string, got {type(value).__name__}")
    return value


def _timestamp_field(payload: dict[str, Any], key: str = "timestamp") -> int:
    value = _lookup(payload, key)
    if value is None:
        return 0
    # bool is an int subclass but never a valid timestamp.
    if isinstance(value, bool):
        raise WebhookPayloadError(f"Field {key!r} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise WebhookPayloadError(f"Field {key!r} must be an integer")


def parse_webhook_body(body: bytes) -> RawEvent:
    """Build a RawEvent from a raw webhook request body.

    Missing fields fall back to empty values; the full body is kept as the
    event's raw payload.
    """

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise WebhookPayloadError(f"Invalid JSON payload: {exc}") from exc

    # A bare null is an event with every field empty.
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Webhook payload must be a JSON object")

    fields = {name: _string_field(payload, key) for name, key in _IDENTITY_FIELDS}
    return RawEvent(
        occurred_at=_timestamp_field(payload),
        raw_payload=bytes(body),
        **fields,
    )
