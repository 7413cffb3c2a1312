"""
WebSocket handler for Educademy realtime communication.

Accepts a socket, authenticates it within the configured window, hands it to
the connection manager, and runs the receive loop until the client leaves,
the heartbeat window lapses or the transport fails. Teardown always runs
through the connection manager, whatever ended the loop.
"""

import asyncio
import json
from collections.abc import Coroutine
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ..config.models import RealtimeConfig
from ..error_types import create_websocket_error_response
from ..exceptions import AuthenticationError, EducademyError
from ..structured_logging.enhanced_logging_config import bind_connection_context, clear_request_context, get_logger
from .authenticator import AuthResult, HandshakeInfo, extract_credential
from .connection_manager import ConnectionManager
from .connection_models import ConnectionSession
from .connection_state_machine import ConnectionLifecycle
from .envelope import build_event
from .events import AuthenticateEvent, ServerEvent, parse_client_event
from .message_handlers import ClientMessageHandler

logger = get_logger(__name__)

AUTH_FAILED_CLOSE_CODE = 4001


def handshake_from_websocket(websocket: WebSocket) -> HandshakeInfo:
    return HandshakeInfo(
        ip_address=websocket.client.host if websocket.client else None,
        user_agent=websocket.headers.get("user-agent"),
        headers=dict(websocket.headers),
        query_params=dict(websocket.query_params),
    )


def _selected_subprotocol(websocket: WebSocket) -> str | None:
    """Echo ``bearer`` back when the client sent its token as a subprotocol."""
    offered = [p.strip() for p in websocket.headers.get("sec-websocket-protocol", "").split(",") if p.strip()]
    if offered and offered[0].lower() == "bearer":
        return offered[0]
    return None


async def _safe_close(websocket: WebSocket, code: int, reason: str) -> None:
    try:
        await websocket.close(code=code, reason=reason)
    except (RuntimeError, WebSocketDisconnect) as e:
        logger.debug("WebSocket already closed", code=code, reason=reason, error=str(e))


async def _receive_frame(websocket: WebSocket) -> str:
    """Return the next text frame, decoding binary frames as UTF-8."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(code=message.get("code", 1000), reason=message.get("reason"))
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


async def _await_authenticate_message(websocket: WebSocket) -> str | None:
    """Wait for the first frame and read a token from an ``authenticate`` event."""
    raw = await _receive_frame(websocket)
    try:
        event = parse_client_event(json.loads(raw))
    except (json.JSONDecodeError, EducademyError):
        return None
    return event.token if isinstance(event, AuthenticateEvent) else None


async def _authenticate(
    websocket: WebSocket, manager: ConnectionManager, lifecycle: ConnectionLifecycle, handshake: HandshakeInfo
) -> AuthResult:
    credential = extract_credential(handshake)
    if credential is None:
        credential = await _await_authenticate_message(websocket)
    return await manager.authenticate(lifecycle, credential, handshake)


async def _send_error(session: ConnectionSession, reason: str, message: str) -> None:
    try:
        await session.send(ServerEvent.ERROR, create_websocket_error_response(reason, message))
    except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: the error report itself may hit a dead socket
        logger.debug("Could not deliver error event", connection_id=session.connection_id, error=str(e))


async def _run_owned(session: ConnectionSession, work: Coroutine[Any, Any, None]) -> bool:
    """
    Run one client event as a task the connection owns.

    Teardown cancels owned tasks, so an eviction or cleaner sweep stops a
    handler still in flight.

    Returns:
        False when the connection's teardown cancelled the work
    """
    task = session.track_task(asyncio.create_task(work))
    try:
        await task
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise
        return False
    return True


async def _receive_loop(
    websocket: WebSocket, session: ConnectionSession, handler: ClientMessageHandler, config: RealtimeConfig
) -> str:
    """
    Process client frames until the connection ends.

    Returns:
        The disconnect reason
    """
    while True:
        try:
            raw = await asyncio.wait_for(_receive_frame(websocket), timeout=config.heartbeat_timeout_seconds)
        except TimeoutError:
            logger.info("Heartbeat window lapsed", connection_id=session.connection_id, user_id=session.user_id)
            await _send_error(session, "heartbeat_timeout", "No activity received, closing connection")
            await _safe_close(websocket, 1001, "heartbeat_timeout")
            return "heartbeat_timeout"

        session.touch()

        if len(raw.encode("utf-8")) > config.max_message_bytes:
            await _send_error(session, "message_too_large", "Message exceeds the maximum size")
            continue

        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError:
            await _send_error(session, "invalid_json", "Message is not valid JSON")
            continue

        try:
            event = parse_client_event(data)
            if not await _run_owned(session, handler.handle(session, event)):
                return "closed"
        except EducademyError as e:
            await _send_error(session, e.reason, e.user_friendly)
        except WebSocketDisconnect:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one bad event must not kill the connection
            logger.error(
                "Unhandled error processing client event",
                connection_id=session.connection_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await _send_error(session, "internal_error", "Failed to process message")


async def handle_websocket_connection(
    websocket: WebSocket,
    manager: ConnectionManager,
    handler: ClientMessageHandler,
    config: RealtimeConfig,
) -> None:
    """
    Serve one WebSocket connection from accept to close.

    Args:
        websocket: The accepted-to-be socket
        manager: Connection lifecycle orchestrator
        handler: Client event dispatcher
        config: Realtime settings (timeouts, limits)
    """
    handshake = handshake_from_websocket(websocket)
    await websocket.accept(subprotocol=_selected_subprotocol(websocket))
    lifecycle = manager.new_lifecycle()
    bind_connection_context(lifecycle.connection_id, client_ip=handshake.ip_address)

    try:
        try:
            identity = await asyncio.wait_for(
                _authenticate(websocket, manager, lifecycle, handshake), timeout=config.auth_timeout_seconds
            )
        except TimeoutError:
            manager.reject_timeout(lifecycle, handshake)
            await websocket.send_json(
                build_event(ServerEvent.ERROR, create_websocket_error_response("auth_timeout", "Authentication timeout"))
            )
            await _safe_close(websocket, AUTH_FAILED_CLOSE_CODE, "auth_timeout")
            return
        except AuthenticationError as e:
            await websocket.send_json(build_event(ServerEvent.ERROR, create_websocket_error_response(e.reason, e.user_friendly)))
            await _safe_close(websocket, AUTH_FAILED_CLOSE_CODE, e.reason)
            return
        except WebSocketDisconnect:
            if lifecycle.state_id == "connecting":
                lifecycle.reject()
            return

        bind_connection_context(lifecycle.connection_id, user_id=identity.user_id)

        try:
            session = await manager.open_session(lifecycle, identity, websocket, handshake)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: setup failure closes the socket
            logger.error("Failed to open realtime session", user_id=identity.user_id, error=str(e), exc_info=True)
            await _safe_close(websocket, 1011, "internal_error")
            return

        reason = "client_disconnect"
        try:
            reason = await _receive_loop(websocket, session, handler, config)
        except WebSocketDisconnect as e:
            logger.debug("Client disconnected", connection_id=session.connection_id, code=e.code)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: any transport failure ends in teardown
            reason = "transport_error"
            logger.warning(
                "WebSocket transport error",
                connection_id=session.connection_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            await manager.close_session(session, reason)
    finally:
        clear_request_context()
