"""
Tests for the connection manager.

Covers session establishment order, multi-device announcements, teardown,
forced eviction and the idle cleaner.
"""

# pylint: disable=redefined-outer-name,protected-access
# Justification: pytest fixtures redefine names, protected access needed for testing internals

import pytest

from educademy.auth.tokens import create_access_token
from educademy.config.models import AuthConfig
from educademy.exceptions import InvalidCredentialError
from educademy.models.user import UserRole
from educademy.realtime.authenticator import AuthResult, HandshakeInfo
from educademy.realtime.connection_manager import FORCE_DISCONNECT_CLOSE_CODE, ConnectionManager
from educademy.realtime.connection_models import RoomKey
from educademy.realtime.events import ServerEvent
from educademy.realtime.session_registry import SessionRegistry
from educademy.tests.fixtures.fakes import (
    DESKTOP_UA,
    INSTRUCTOR_ID,
    IPHONE_UA,
    STUDENT_ID,
    InMemoryPersistence,
    RecordingTransport,
    minutes_ago,
)

STUDENT = AuthResult(user_id=STUDENT_ID, role=UserRole.STUDENT, display_name="Ada Lovelace")


async def _open(manager: ConnectionManager, identity: AuthResult = STUDENT, user_agent: str = DESKTOP_UA):
    lifecycle = manager.new_lifecycle()
    lifecycle.authenticate()
    transport = RecordingTransport()
    session = await manager.open_session(
        lifecycle, identity, transport, HandshakeInfo(ip_address="10.0.0.1", user_agent=user_agent)
    )
    return session, transport


class TestAuthenticate:
    """Test the authentication step."""

    @pytest.mark.asyncio
    async def test_success_moves_lifecycle_to_authenticated(
        self, connection_manager: ConnectionManager, auth_config: AuthConfig
    ):
        lifecycle = connection_manager.new_lifecycle()
        token = create_access_token({"userId": STUDENT_ID}, auth_config)

        result = await connection_manager.authenticate(lifecycle, token, HandshakeInfo())

        assert result.user_id == STUDENT_ID
        assert lifecycle.state_id == "authenticated"

    @pytest.mark.asyncio
    async def test_failure_closes_lifecycle_and_registers_nothing(
        self, connection_manager: ConnectionManager, registry: SessionRegistry
    ):
        lifecycle = connection_manager.new_lifecycle()

        with pytest.raises(InvalidCredentialError):
            await connection_manager.authenticate(lifecycle, "not-a-jwt", HandshakeInfo())

        assert lifecycle.state_id == "closed"
        assert registry.total_connections() == 0


class TestOpenSession:
    """Test session establishment."""

    @pytest.mark.asyncio
    async def test_first_event_is_connected(self, connection_manager: ConnectionManager):
        session, transport = await _open(connection_manager)

        first = transport.sent[0]
        assert first["event_type"] == ServerEvent.CONNECTED
        assert first["data"]["userId"] == STUDENT_ID
        assert first["data"]["connectedDevices"] == 1
        assert first["data"]["rooms"] == ["role:STUDENT", f"user:{STUDENT_ID}"]
        assert session.lifecycle.state_id == "active"

    @pytest.mark.asyncio
    async def test_device_session_is_recorded(
        self, connection_manager: ConnectionManager, persistence: InMemoryPersistence
    ):
        session, _ = await _open(connection_manager, user_agent=IPHONE_UA)

        record = persistence.device_sessions[session.device_session_id]
        assert record.device_type == "mobile"
        assert record.os == "iOS"
        assert record.connection_id == session.connection_id

    @pytest.mark.asyncio
    async def test_device_recording_failure_does_not_refuse_connection(
        self, connection_manager: ConnectionManager, persistence: InMemoryPersistence
    ):
        persistence.fail_operations.add("create_device_session")

        session, transport = await _open(connection_manager)

        assert session.device_session_id is None
        assert transport.events(ServerEvent.CONNECTED)

    @pytest.mark.asyncio
    async def test_second_device_is_announced_to_first_only(self, connection_manager: ConnectionManager):
        _, first = await _open(connection_manager)
        _, second = await _open(connection_manager, user_agent=IPHONE_UA)

        [announcement] = first.events(ServerEvent.NEW_DEVICE_CONNECTED)
        assert announcement["data"]["totalDevices"] == 2
        assert announcement["data"]["deviceInfo"]["deviceType"] == "mobile"
        assert second.events(ServerEvent.NEW_DEVICE_CONNECTED) == []
        assert second.events(ServerEvent.CONNECTED)[0]["data"]["connectedDevices"] == 2

    @pytest.mark.asyncio
    async def test_pending_notifications_follow_connected(
        self, connection_manager: ConnectionManager, persistence: InMemoryPersistence
    ):
        persistence.add_notification(STUDENT_ID, "while you were away", created_at=minutes_ago(30))

        _, transport = await _open(connection_manager)

        assert transport.event_types() == [ServerEvent.CONNECTED, ServerEvent.PENDING_NOTIFICATIONS]

    @pytest.mark.asyncio
    async def test_drain_failure_leaves_session_active(
        self, connection_manager: ConnectionManager, persistence: InMemoryPersistence
    ):
        persistence.fail_operations.add("query_unread_notifications")

        session, _ = await _open(connection_manager)

        assert session.lifecycle.state_id == "active"

    @pytest.mark.asyncio
    async def test_failed_greeting_rolls_back_registration(
        self, connection_manager: ConnectionManager, registry: SessionRegistry
    ):
        lifecycle = connection_manager.new_lifecycle()
        lifecycle.authenticate()

        with pytest.raises(RuntimeError):
            await connection_manager.open_session(lifecycle, STUDENT, RecordingTransport(fail=True), HandshakeInfo())

        assert lifecycle.state_id == "closed"
        assert registry.total_connections() == 0
        assert registry.room_count() == 0


class TestCloseSession:
    """Test teardown."""

    @pytest.mark.asyncio
    async def test_close_cleans_registry_and_device_record(
        self, connection_manager: ConnectionManager, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        session, _ = await _open(connection_manager)
        await registry.join_room(session.connection_id, RoomKey("course", "100"))

        await connection_manager.close_session(session, "client_disconnect")

        assert session.lifecycle.state_id == "closed"
        assert not registry.is_online(STUDENT_ID)
        assert registry.room_count() == 0
        record = persistence.device_sessions[session.device_session_id]
        assert record.is_active is False
        assert record.disconnect_reason == "client_disconnect"

    @pytest.mark.asyncio
    async def test_remaining_devices_are_told(self, connection_manager: ConnectionManager):
        first_session, _ = await _open(connection_manager)
        _, second = await _open(connection_manager)

        await connection_manager.close_session(first_session, "client_disconnect")

        [event] = second.events(ServerEvent.DEVICE_DISCONNECTED)
        assert event["data"]["reason"] == "client_disconnect"
        assert event["data"]["totalDevices"] == 1

    @pytest.mark.asyncio
    async def test_close_twice_is_harmless(self, connection_manager: ConnectionManager, persistence):
        session, _ = await _open(connection_manager)

        await connection_manager.close_session(session, "client_disconnect")
        await connection_manager.close_session(session, "transport_error")

        assert session.lifecycle.disconnect_reason == "client_disconnect"
        assert persistence.calls.count("end_device_session") == 1


class TestAdministration:
    """Test eviction, stats and the cleaner."""

    @pytest.mark.asyncio
    async def test_disconnect_user_evicts_every_device(
        self, connection_manager: ConnectionManager, registry: SessionRegistry
    ):
        _, first = await _open(connection_manager)
        _, second = await _open(connection_manager)

        closed = await connection_manager.disconnect_user(STUDENT_ID, reason="account_suspended")

        assert closed == 2
        assert not registry.is_online(STUDENT_ID)
        for transport in (first, second):
            assert transport.events(ServerEvent.FORCE_DISCONNECT)[0]["data"]["reason"] == "account_suspended"
            assert transport.closed == (FORCE_DISCONNECT_CLOSE_CODE, "account_suspended")

    @pytest.mark.asyncio
    async def test_disconnect_offline_user(self, connection_manager: ConnectionManager):
        assert await connection_manager.disconnect_user(999) == 0

    @pytest.mark.asyncio
    async def test_system_stats(self, connection_manager: ConnectionManager):
        await _open(connection_manager)
        await _open(connection_manager)
        await _open(
            connection_manager, AuthResult(user_id=INSTRUCTOR_ID, role=UserRole.INSTRUCTOR, display_name="Grace Hopper")
        )

        stats = connection_manager.get_system_stats()

        assert stats["connectedUsers"] == 2
        assert stats["totalConnections"] == 3
        assert stats["onlineStudents"] == 1
        assert stats["onlineInstructors"] == 1
        assert stats["activeRooms"] == 4

    @pytest.mark.asyncio
    async def test_online_users_by_role(self, connection_manager: ConnectionManager):
        await _open(connection_manager)
        await _open(connection_manager)

        assert connection_manager.get_online_users_by_role(UserRole.STUDENT) == [
            {"userId": STUDENT_ID, "name": "Ada Lovelace", "connectedDevices": 2}
        ]

    @pytest.mark.asyncio
    async def test_cleanup_evicts_idle_connections(
        self, connection_manager: ConnectionManager, registry: SessionRegistry
    ):
        idle, idle_transport = await _open(connection_manager)
        fresh, _ = await _open(connection_manager)
        idle.last_seen -= 10_000

        closed = await connection_manager.cleanup_inactive_connections(max_idle_seconds=60)

        assert closed == 1
        assert registry.get_session(idle.connection_id) is None
        assert registry.get_session(fresh.connection_id) is fresh
        assert idle_transport.closed == (1001, "idle_timeout")

    @pytest.mark.asyncio
    async def test_cleanup_cycle_purges_expired_notifications(
        self, connection_manager: ConnectionManager, persistence: InMemoryPersistence
    ):
        persistence.add_notification(STUDENT_ID, "stale", expires_at=minutes_ago(1))

        result = await connection_manager.run_cleanup_cycle()

        assert result == {"closed_connections": 0, "purged_notifications": 1}
        assert persistence.notifications == {}

    @pytest.mark.asyncio
    async def test_shutdown_closes_everything(
        self, connection_manager: ConnectionManager, registry: SessionRegistry
    ):
        _, transport = await _open(connection_manager)
        connection_manager.start_cleaner()

        await connection_manager.shutdown()

        assert registry.total_connections() == 0
        assert transport.closed == (1001, "server_shutdown")
        assert connection_manager._cleaner_task is None
