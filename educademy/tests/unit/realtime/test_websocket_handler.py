"""
Tests for the WebSocket handler driven over a scripted socket.

Covers the auth and heartbeat windows, oversized frames, and teardown
cancelling a client event still being handled.
"""

# pylint: disable=redefined-outer-name
# Justification: pytest fixtures redefine names

import asyncio
import json
from types import SimpleNamespace
from typing import Any

import pytest

from educademy.auth.tokens import create_access_token
from educademy.config.models import AuthConfig, RealtimeConfig
from educademy.realtime.connection_manager import ConnectionManager
from educademy.realtime.message_handlers import ClientMessageHandler
from educademy.realtime.session_registry import SessionRegistry
from educademy.realtime.websocket_handler import AUTH_FAILED_CLOSE_CODE, handle_websocket_connection
from educademy.tests.fixtures.fakes import STUDENT_ID, InMemoryPersistence, RecordingAuditSink

HANDLER_DEADLINE = 2.0


class ScriptedWebSocket:
    """WebSocket double fed from a queue of ASGI receive messages."""

    def __init__(self, query_params: dict[str, str] | None = None) -> None:
        self.client = SimpleNamespace(host="10.0.0.9")
        self.headers: dict[str, str] = {"user-agent": "pytest"}
        self.query_params = query_params or {}
        self.inbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.closed: tuple[int, str | None] | None = None

    async def accept(self, subprotocol: str | None = None) -> None:
        self.accepted = True

    async def receive(self) -> dict[str, Any]:
        return await self.inbox.get()

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.closed is not None:
            raise RuntimeError("Cannot send once the socket has closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason)
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    def push(self, data: Any) -> None:
        text = data if isinstance(data, str) else json.dumps(data)
        self.inbox.put_nowait({"type": "websocket.receive", "text": text})

    def hang_up(self, code: int = 1000) -> None:
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    def event_types(self) -> list[str]:
        return [e["event_type"] for e in self.sent]

    def errors(self) -> list[str]:
        return [e["data"]["reason"] for e in self.sent if e["event_type"] == "error"]


@pytest.fixture
def realtime_config() -> RealtimeConfig:
    return RealtimeConfig(auth_timeout_seconds=0.05, heartbeat_timeout_seconds=0.05, max_message_bytes=256)


@pytest.fixture
def student_socket(auth_config: AuthConfig) -> ScriptedWebSocket:
    return ScriptedWebSocket({"token": create_access_token({"userId": STUDENT_ID}, auth_config)})


async def _serve(
    websocket: ScriptedWebSocket, manager: ConnectionManager, handler: Any, config: RealtimeConfig
) -> None:
    await asyncio.wait_for(handle_websocket_connection(websocket, manager, handler, config), HANDLER_DEADLINE)


class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_silent_connection_is_closed_and_torn_down(
        self,
        student_socket: ScriptedWebSocket,
        connection_manager: ConnectionManager,
        message_handler: ClientMessageHandler,
        realtime_config: RealtimeConfig,
        registry: SessionRegistry,
        persistence: InMemoryPersistence,
    ):
        await _serve(student_socket, connection_manager, message_handler, realtime_config)

        assert student_socket.event_types()[0] == "connected"
        assert student_socket.errors() == ["heartbeat_timeout"]
        assert student_socket.closed == (1001, "heartbeat_timeout")
        assert registry.total_connections() == 0
        assert registry.room_count() == 0
        assert not registry.is_online(STUDENT_ID)
        (device,) = persistence.device_sessions.values()
        assert device.is_active is False
        assert device.disconnect_reason == "heartbeat_timeout"

    @pytest.mark.asyncio
    async def test_ping_resets_the_window(
        self,
        student_socket: ScriptedWebSocket,
        connection_manager: ConnectionManager,
        message_handler: ClientMessageHandler,
        registry: SessionRegistry,
    ):
        config = RealtimeConfig(heartbeat_timeout_seconds=0.2)
        serving = asyncio.create_task(_serve(student_socket, connection_manager, message_handler, config))
        for _ in range(3):
            await asyncio.sleep(0.1)
            student_socket.push({"event": "ping"})
        await asyncio.sleep(0.05)
        assert registry.is_online(STUDENT_ID)

        student_socket.hang_up()
        await serving

        assert student_socket.event_types().count("pong") == 3
        assert "heartbeat_timeout" not in student_socket.errors()
        assert registry.total_connections() == 0


class TestAuthTimeout:
    @pytest.mark.asyncio
    async def test_unauthenticated_socket_is_dropped(
        self,
        connection_manager: ConnectionManager,
        message_handler: ClientMessageHandler,
        realtime_config: RealtimeConfig,
        registry: SessionRegistry,
        persistence: InMemoryPersistence,
        audit: RecordingAuditSink,
    ):
        websocket = ScriptedWebSocket()

        await _serve(websocket, connection_manager, message_handler, realtime_config)

        assert websocket.accepted
        assert websocket.errors() == ["auth_timeout"]
        assert websocket.closed is not None
        assert websocket.closed[0] == AUTH_FAILED_CLOSE_CODE
        assert audit.kinds() == ["socket_auth_timeout"]
        assert audit.security_events[0]["context"]["ip_address"] == "10.0.0.9"
        assert registry.total_connections() == 0
        assert registry.room_count() == 0
        assert persistence.device_sessions == {}


class TestFrameLimits:
    @pytest.mark.asyncio
    async def test_oversized_frame_is_rejected_and_connection_survives(
        self,
        student_socket: ScriptedWebSocket,
        connection_manager: ConnectionManager,
        message_handler: ClientMessageHandler,
        registry: SessionRegistry,
    ):
        config = RealtimeConfig(max_message_bytes=256)
        student_socket.push({"event": "typing", "roomId": "x" * 1024, "isTyping": True})
        student_socket.push({"event": "ping"})
        student_socket.hang_up()

        await _serve(student_socket, connection_manager, message_handler, config)

        assert student_socket.event_types() == ["connected", "error", "pong"]
        assert student_socket.errors() == ["message_too_large"]
        assert student_socket.closed is None
        assert registry.total_connections() == 0


class StalledHandler:
    """Client event handler that blocks until cancelled."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def handle(self, session: Any, event: Any) -> None:
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class TestOwnedTasks:
    @pytest.mark.asyncio
    async def test_eviction_cancels_event_in_flight(
        self,
        student_socket: ScriptedWebSocket,
        connection_manager: ConnectionManager,
        registry: SessionRegistry,
    ):
        handler = StalledHandler()
        config = RealtimeConfig(heartbeat_timeout_seconds=HANDLER_DEADLINE)
        serving = asyncio.create_task(_serve(student_socket, connection_manager, handler, config))
        student_socket.push({"event": "ping"})
        await asyncio.wait_for(handler.started.wait(), HANDLER_DEADLINE)

        evicted = await connection_manager.disconnect_user(STUDENT_ID, reason="admin_action")
        await serving

        assert evicted == 1
        assert handler.cancelled
        assert registry.total_connections() == 0
        assert student_socket.event_types() == ["connected", "force_disconnect"]
