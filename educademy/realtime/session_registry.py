"""
Session registry for realtime connections.

Tracks which connections each user has open and which connections are in
which room. The registry is process-local and owned by the application
container; every mutation goes through a single asyncio lock, so a connection
is never half-registered or half-removed as seen by another task.

Invariants kept by every mutation:
- a connection is in room R exactly when R is in that connection's joined rooms
- a user entry exists only while the user has at least one connection
- a room exists only while it has at least one member
"""

import asyncio

from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ConnectionSession, RoomKey, RoomType
from .room_table import RoomTable

logger = get_logger(__name__)


class SessionRegistry:
    """Process-local index of live connections, users and rooms."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, ConnectionSession] = {}
        self._user_connections: dict[int, set[str]] = {}
        self._rooms = RoomTable()

    # Mutations

    async def register(self, session: ConnectionSession) -> int:
        """
        Add a connection under its user and auto-join its user and role rooms.

        Registering the same connection id twice is a no-op.

        Args:
            session: The authenticated connection

        Returns:
            int: Number of connections the user now has
        """
        async with self._lock:
            if session.connection_id in self._sessions:
                return len(self._user_connections.get(session.user_id, ()))

            self._sessions[session.connection_id] = session
            self._user_connections.setdefault(session.user_id, set()).add(session.connection_id)
            for key in (RoomKey(RoomType.USER, str(session.user_id)), RoomKey(RoomType.ROLE, session.role)):
                self._join_locked(session, key)

            device_count = len(self._user_connections[session.user_id])

        logger.info(
            "Connection registered",
            connection_id=session.connection_id,
            user_id=session.user_id,
            role=session.role,
            device_count=device_count,
        )
        return device_count

    async def unregister(self, connection_id: str) -> ConnectionSession | None:
        """
        Remove a connection from its user and from every room it joined.

        Args:
            connection_id: Connection to remove

        Returns:
            The removed session, or None if it was not registered
        """
        async with self._lock:
            session = self._sessions.pop(connection_id, None)
            if session is None:
                return None

            for key in list(session.joined_rooms):
                self._rooms.discard(key, connection_id)
            session.joined_rooms.clear()

            user_set = self._user_connections.get(session.user_id)
            if user_set is not None:
                user_set.discard(connection_id)
                if not user_set:
                    del self._user_connections[session.user_id]
            remaining = len(self._user_connections.get(session.user_id, ()))

        logger.info(
            "Connection unregistered",
            connection_id=connection_id,
            user_id=session.user_id,
            remaining_devices=remaining,
        )
        return session

    async def join_room(self, connection_id: str, key: RoomKey) -> int:
        """
        Add a registered connection to a room, creating the room if needed.

        Returns:
            int: Member count after the join; 0 if the connection is unknown
        """
        async with self._lock:
            session = self._sessions.get(connection_id)
            if session is None:
                return 0
            return self._join_locked(session, key)

    async def leave_room(self, connection_id: str, key: RoomKey) -> int:
        """
        Remove a connection from a room. Leaving a room not joined is a no-op.

        Returns:
            int: Member count after the leave
        """
        async with self._lock:
            session = self._sessions.get(connection_id)
            if session is not None:
                session.joined_rooms.discard(key)
            return self._rooms.discard(key, connection_id)

    def _join_locked(self, session: ConnectionSession, key: RoomKey) -> int:
        session.joined_rooms.add(key)
        return self._rooms.add(key, session.connection_id)

    # Queries

    def get_session(self, connection_id: str) -> ConnectionSession | None:
        return self._sessions.get(connection_id)

    def sessions_for_user(self, user_id: int) -> list[ConnectionSession]:
        return [self._sessions[cid] for cid in self._user_connections.get(user_id, ()) if cid in self._sessions]

    def all_sessions(self) -> list[ConnectionSession]:
        return list(self._sessions.values())

    def room_members(self, key: RoomKey) -> list[ConnectionSession]:
        return [self._sessions[cid] for cid in self._rooms.members(key) if cid in self._sessions]

    def room_member_count(self, key: RoomKey) -> int:
        return self._rooms.count(key)

    def room_exists(self, key: RoomKey) -> bool:
        return key in self._rooms

    def room_count(self) -> int:
        return len(self._rooms)

    def joined_rooms(self, connection_id: str) -> set[RoomKey]:
        session = self._sessions.get(connection_id)
        return set(session.joined_rooms) if session else set()

    def is_online(self, user_id: int) -> bool:
        return bool(self._user_connections.get(user_id))

    def device_count(self, user_id: int) -> int:
        return len(self._user_connections.get(user_id, ()))

    def total_online_users(self) -> int:
        return len(self._user_connections)

    def total_connections(self) -> int:
        return len(self._sessions)

    def online_users_by_role(self, role: str) -> list[int]:
        return sorted({s.user_id for s in self._sessions.values() if s.role == role})
