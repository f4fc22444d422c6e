"""Event identity helpers (core domain)."""

from __future__ import annotations

import hashlib

from core.models import RawEvent


def _canonical_part(name: str, value: str) -> str:
    # Length prefix keeps field boundaries unambiguous, even when a value
    # contains the separator.
    return f"{name}:{len(value)}:{value}"


def derive_identity(event_type: str, user_id: str, block_id: str, board_id: str) -> str:
    """Return the 64-char hex identity token for an event's identity fields."""

    canonical = "|".join(
        (
            _canonical_part("type", event_type),
            _canonical_part("user", user_id),
            _canonical_part("block", block_id),
            _canonical_part("board", board_id),
        )
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def identity_for(event: RawEvent) -> str:
    return derive_identity(event.event_type, event.user_id, event.block_id, event.board_id)
