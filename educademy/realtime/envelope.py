"""
Event envelope utilities for Educademy realtime messages.

Every event sent over a socket uses one schema:
- event_type: str
- timestamp: ISO 8601 UTC with 'Z'
- sequence_number: int (monotonic per-process)
- room_id: optional
- data: dict payload, always carrying its own delivery ``timestamp``
"""

from __future__ import annotations

import itertools
import threading
from datetime import UTC, datetime
from typing import Any

_sequence = itertools.count(1)
_sequence_lock = threading.Lock()


def _next_sequence() -> int:
    with _sequence_lock:
        return next(_sequence)


def utc_now_z() -> str:
    """Return current UTC time in ISO 8601 format with 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_event(
    event_type: str,
    data: dict[str, Any] | None = None,
    *,
    room_id: str | None = None,
    sequence_number: int | None = None,
) -> dict[str, Any]:
    """
    Create a normalized event envelope.

    The delivery timestamp is written into ``data`` as well, replacing any
    ``timestamp`` key the payload carried. It is distinct from a
    notification's ``createdAt``.

    Args:
        event_type: Type of event
        data: Event data payload
        room_id: Optional room key for room-scoped events
        sequence_number: Optional explicit sequence number

    Returns:
        The envelope dictionary
    """
    timestamp = utc_now_z()
    event: dict[str, Any] = {
        "event_type": str(event_type),
        "timestamp": timestamp,
        "sequence_number": sequence_number if sequence_number is not None else _next_sequence(),
        "data": {**(data or {}), "timestamp": timestamp},
    }
    if room_id is not None:
        event["room_id"] = room_id
    return event
