"""
structlog processors shared by every logger in the package.

Credentials reach log calls in two shapes: as a field (``token=...``,
``authorization=...``) and embedded in a string (a ``/ws?token=`` URL, an
``Authorization: Bearer`` header echoed in an error message). Both are
scrubbed before rendering.
"""

import re
import uuid
from datetime import UTC, datetime
from typing import Any

REDACTED = "[REDACTED]"

_SENSITIVE_KEY = re.compile(r"(^|_)(password|passwd|token|secret|credential|jwt|authorization|api_key)($|_)")

# Keys that look sensitive but only ever carry identifiers
SAFE_KEYS = frozenset({"token_source", "cache_key", "room_key"})

_INLINE_CREDENTIAL = re.compile(r"(?i)(bearer\s+|[?&]token=)([^\s&\"',]+)")


def _is_sensitive_key(key: Any) -> bool:
    key_lower = str(key).lower()
    return key_lower not in SAFE_KEYS and _SENSITIVE_KEY.search(key_lower) is not None


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if _is_sensitive_key(k) else _scrub(v) for k, v in value.items()}
    if type(value) in (list, tuple):
        return type(value)(_scrub(v) for v in value)
    if isinstance(value, str):
        return _INLINE_CREDENTIAL.sub(lambda m: m.group(1) + REDACTED, value)
    return value


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Redact credentials from an event dict.

    Sensitive keys are replaced wholesale at any nesting depth; string values
    keep their text but lose any inline bearer or query-string token.
    """
    return _scrub(event_dict)


def add_correlation_id(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Give entries logged outside a request or socket their own correlation id."""
    event_dict.setdefault("correlation_id", str(uuid.uuid4()))
    return event_dict


def add_request_context(_logger: Any, name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Stamp a UTC timestamp and the emitting logger name when missing."""
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    event_dict.setdefault("logger_name", name)
    return event_dict
