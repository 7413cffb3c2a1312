"""
Logging context carried in structlog contextvars.

The correlation middleware binds a correlation id for every HTTP request and
WebSocket handshake. A realtime connection then adds its connection id and,
once authenticated, its user id, so every line logged while serving that
socket can be traced back to it.
"""

from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars


def bind_request_context(**values) -> None:
    """Bind values to the current task's logging context; None values are skipped."""
    bind_contextvars(**{key: value for key, value in values.items() if value is not None})


def bind_connection_context(connection_id: str, user_id: int | None = None, **values) -> None:
    """
    Bind a realtime connection's identity.

    The handshake's correlation id is kept when the middleware bound one;
    otherwise the connection id doubles as the correlation id.
    """
    bind_request_context(
        correlation_id=get_contextvars().get("correlation_id") or connection_id,
        connection_id=connection_id,
        user_id=user_id,
        **values,
    )


def clear_request_context() -> None:
    """Drop everything bound for the current task."""
    clear_contextvars()
