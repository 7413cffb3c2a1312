"""
Connection manager for the Educademy realtime gateway.

Drives each connection through its lifecycle:

    connecting -> authenticated -> registered -> active -> disconnecting -> closed

and provides the server-side administration surface: forced eviction,
system statistics, and a periodic cleaner that evicts idle connections and
purges expired notifications.
"""

import asyncio
import contextlib
import uuid
from datetime import UTC, datetime
from typing import Any

from ..config.models import RealtimeConfig
from ..models.user import UserRole
from ..persistence.protocols import PersistenceProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import best_effort
from .authenticator import AuthResult, ConnectionAuthenticator, HandshakeInfo
from .connection_models import ConnectionSession, Transport
from .connection_state_machine import ConnectionLifecycle
from .device_info import classify_user_agent
from .device_session_recorder import DeviceSessionRecorder
from .events import (
    ConnectedPayload,
    DeviceDisconnectedPayload,
    DeviceInfoPayload,
    ForceDisconnectPayload,
    NewDeviceConnectedPayload,
    ServerEvent,
)
from .notification_dispatcher import NotificationDispatcher
from .room_membership import RoomMembershipManager
from .session_registry import SessionRegistry

logger = get_logger(__name__)

# Application-defined close code for server-initiated eviction
FORCE_DISCONNECT_CLOSE_CODE = 4000


class ConnectionManager:
    """
    Orchestrates connection establishment and teardown.

    One instance per process, owned by the application container.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        authenticator: ConnectionAuthenticator,
        recorder: DeviceSessionRecorder,
        membership: RoomMembershipManager,
        dispatcher: NotificationDispatcher,
        persistence: PersistenceProtocol,
        realtime_config: RealtimeConfig,
    ) -> None:
        self.registry = registry
        self.authenticator = authenticator
        self.recorder = recorder
        self.membership = membership
        self.dispatcher = dispatcher
        self.persistence = persistence
        self.config = realtime_config
        self._cleaner_task: asyncio.Task[None] | None = None

    @staticmethod
    def new_lifecycle() -> ConnectionLifecycle:
        """Start the lifecycle for a freshly accepted socket."""
        return ConnectionLifecycle(str(uuid.uuid4()))

    async def authenticate(
        self, lifecycle: ConnectionLifecycle, credential: str | None, handshake: HandshakeInfo
    ) -> AuthResult:
        """
        Authenticate a connecting client.

        On failure the lifecycle moves straight to ``closed`` and the error
        propagates; nothing is registered.
        """
        try:
            result = await self.authenticator.authenticate(credential, handshake)
        except Exception:
            lifecycle.reject()
            raise
        lifecycle.authenticate()
        return result

    def reject_timeout(self, lifecycle: ConnectionLifecycle, handshake: HandshakeInfo) -> None:
        """Close a connection that did not authenticate within the window."""
        self.authenticator.record_timeout(handshake)
        lifecycle.reject()
        logger.info("Connection dropped for authentication timeout", connection_id=lifecycle.connection_id)

    async def open_session(
        self,
        lifecycle: ConnectionLifecycle,
        identity: AuthResult,
        transport: Transport,
        handshake: HandshakeInfo,
    ) -> ConnectionSession:
        """
        Register an authenticated connection and bring it to ``active``.

        Steps: register (auto-joining user and role rooms), record the device
        (best-effort), greet the connection, tell the user's other devices,
        then drain pending notifications to this connection only. A failure
        part-way tears the connection down again before propagating.

        Returns:
            The active session
        """
        session = ConnectionSession(
            connection_id=lifecycle.connection_id,
            user_id=identity.user_id,
            role=identity.role,
            display_name=identity.display_name,
            email=identity.email,
            transport=transport,
            device=classify_user_agent(handshake.user_agent, handshake.ip_address),
            lifecycle=lifecycle,
        )

        try:
            await self._establish(session)
        except Exception:
            await self.close_session(session, "open_failed")
            raise
        return session

    async def _establish(self, session: ConnectionSession) -> None:
        lifecycle = session.lifecycle
        device_count = await self.registry.register(session)
        lifecycle.register()

        await self.recorder.record_connect(session)

        connected = ConnectedPayload(
            user_id=session.user_id,
            connection_id=session.connection_id,
            role=session.role,
            connected_devices=device_count,
            rooms=sorted(str(k) for k in session.joined_rooms),
        )
        await session.send(ServerEvent.CONNECTED, connected.to_wire())

        if device_count > 1:
            device = session.device
            announcement = NewDeviceConnectedPayload(
                device_info=DeviceInfoPayload(
                    device_type=device.device_type,
                    os=device.os,
                    browser=device.browser,
                    ip_address=device.ip_address,
                ),
                total_devices=device_count,
            )
            await self.dispatcher.push_to_user(
                session.user_id,
                ServerEvent.NEW_DEVICE_CONNECTED,
                announcement.to_wire(),
                exclude_connection_id=session.connection_id,
            )

        lifecycle.activate()
        await best_effort(
            "drain_pending_notifications",
            self.dispatcher.drain_pending_for(session),
            user_id=session.user_id,
            connection_id=session.connection_id,
        )

    async def close_session(self, session: ConnectionSession, reason: str) -> None:
        """
        Tear a connection down. Safe to call more than once.

        Unregisters the connection from the registry and every room, tells the
        user's remaining devices, closes the device record (best-effort) and
        cancels every task the connection owns.
        """
        if session.lifecycle.is_closing:
            return
        session.lifecycle.disconnect(reason=reason)

        await self.registry.unregister(session.connection_id)
        remaining = self.registry.device_count(session.user_id)
        if remaining:
            await self.dispatcher.push_to_user(
                session.user_id,
                ServerEvent.DEVICE_DISCONNECTED,
                DeviceDisconnectedPayload(reason=reason, total_devices=remaining).to_wire(),
            )

        await self.recorder.record_disconnect(session, reason)
        cancelled = await session.cancel_tasks()
        session.lifecycle.close()
        logger.info(
            "Connection closed",
            connection_id=session.connection_id,
            user_id=session.user_id,
            reason=reason,
            remaining_devices=remaining,
            cancelled_tasks=cancelled,
        )

    async def disconnect_user(
        self, user_id: int, reason: str = "admin_action", message: str = "You have been disconnected"
    ) -> int:
        """
        Evict every connection of a user.

        Returns:
            int: Number of connections closed
        """
        sessions = self.registry.sessions_for_user(user_id)
        for session in sessions:
            await best_effort(
                "send_force_disconnect",
                session.send(ServerEvent.FORCE_DISCONNECT, ForceDisconnectPayload(reason=reason, message=message).to_wire()),
                connection_id=session.connection_id,
            )
            await self.close_session(session, reason)
            await best_effort(
                "close_transport",
                session.transport.close(code=FORCE_DISCONNECT_CLOSE_CODE, reason=reason),
                connection_id=session.connection_id,
            )
        if sessions:
            logger.info("User disconnected by server", user_id=user_id, reason=reason, connections=len(sessions))
        return len(sessions)

    def get_system_stats(self) -> dict[str, Any]:
        """Snapshot of connection counts for monitoring."""
        return {
            "connectedUsers": self.registry.total_online_users(),
            "totalConnections": self.registry.total_connections(),
            "activeRooms": self.registry.room_count(),
            "onlineStudents": len(self.registry.online_users_by_role(UserRole.STUDENT)),
            "onlineInstructors": len(self.registry.online_users_by_role(UserRole.INSTRUCTOR)),
            "onlineAdmins": len(self.registry.online_users_by_role(UserRole.ADMIN))
            + len(self.registry.online_users_by_role(UserRole.MODERATOR)),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def get_online_users_by_role(self, role: str) -> list[dict[str, Any]]:
        users: dict[int, dict[str, Any]] = {}
        for session in self.registry.all_sessions():
            if session.role != role:
                continue
            entry = users.setdefault(
                session.user_id, {"userId": session.user_id, "name": session.display_name, "connectedDevices": 0}
            )
            entry["connectedDevices"] += 1
        return sorted(users.values(), key=lambda u: u["userId"])

    # Housekeeping

    async def cleanup_inactive_connections(self, max_idle_seconds: float | None = None) -> int:
        """
        Close connections with no inbound traffic for longer than the idle limit.

        Returns:
            int: Number of connections closed
        """
        limit = max_idle_seconds if max_idle_seconds is not None else self.config.max_idle_seconds
        stale = [s for s in self.registry.all_sessions() if s.idle_seconds() > limit]
        for session in stale:
            await self.close_session(session, "idle_timeout")
            await best_effort(
                "close_transport",
                session.transport.close(code=1001, reason="idle_timeout"),
                connection_id=session.connection_id,
            )
        if stale:
            logger.info("Idle connections cleaned up", closed=len(stale), max_idle_seconds=limit)
        return len(stale)

    async def run_cleanup_cycle(self) -> dict[str, int]:
        closed = await self.cleanup_inactive_connections()
        purged = await best_effort("purge_expired_notifications", self.persistence.delete_expired_notifications(), default=0)
        return {"closed_connections": closed, "purged_notifications": purged or 0}

    async def _cleaner_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            try:
                await self.run_cleanup_cycle()
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: the cleaner must survive a failed cycle
                logger.error("Connection cleanup cycle failed", error=str(e), error_type=type(e).__name__)

    def start_cleaner(self) -> None:
        if self._cleaner_task is None or self._cleaner_task.done():
            self._cleaner_task = asyncio.create_task(self._cleaner_loop(), name="realtime-connection-cleaner")
            logger.info("Connection cleaner started", interval_seconds=self.config.cleanup_interval_seconds)

    async def stop_cleaner(self) -> None:
        if self._cleaner_task is None:
            return
        self._cleaner_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._cleaner_task
        self._cleaner_task = None
        logger.info("Connection cleaner stopped")

    async def shutdown(self) -> None:
        """Stop housekeeping and close every live connection."""
        await self.stop_cleaner()
        for session in self.registry.all_sessions():
            await self.close_session(session, "server_shutdown")
            await best_effort(
                "close_transport",
                session.transport.close(code=1001, reason="server_shutdown"),
                connection_id=session.connection_id,
            )
