"""
Correlation ids for HTTP requests and WebSocket handshakes.

The id comes from ``X-Correlation-ID`` when the client supplies one and is
generated otherwise. It is bound into the structlog context, stored on
``scope["state"]`` so error bodies can quote it as ``requestId``, and echoed
in ``X-Correlation-ID`` and ``X-Request-ID`` on HTTP responses.

WebSocket scopes get the id bound for the lifetime of the socket, which ties
every frame logged by the realtime layer back to its handshake. Query strings
are never logged because ``/ws`` may carry a token in them.
"""

import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..structured_logging.enhanced_logging_config import (
    bind_request_context,
    clear_request_context,
    get_logger,
)

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationMiddleware:  # pylint: disable=too-few-public-methods  # Reason: ASGI callable
    """Pure ASGI middleware binding a correlation id per request or socket."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope["type"]
        if scope_type not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        correlation_id = Headers(scope=scope).get(CORRELATION_HEADER) or str(uuid.uuid4())
        scope.setdefault("state", {})["correlation_id"] = correlation_id
        client = scope.get("client")

        bind_request_context(
            correlation_id=correlation_id,
            request_id=correlation_id,
            remote_addr=client[0] if client else "unknown",
            method=scope.get("method", "WS"),
            path=scope.get("path", ""),
        )
        try:
            if scope_type == "websocket":
                await self.app(scope, receive, send)
            else:
                await self._handle_http(scope, receive, send, correlation_id)
        finally:
            clear_request_context()

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send, correlation_id: str) -> None:
        started = time.perf_counter()
        response_status = 500

        async def send_with_ids(message: Message) -> None:
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message.get("status", 500)
                headers = MutableHeaders(scope=message)
                headers[CORRELATION_HEADER] = correlation_id
                headers[REQUEST_ID_HEADER] = correlation_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_ids)
        except Exception:
            logger.error("Request failed", exc_info=True)
            raise
        logger.info(
            "Request completed",
            status_code=response_status,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
