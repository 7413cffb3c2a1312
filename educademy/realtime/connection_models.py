"""
Data models for realtime connection management.

This module defines the room key, the transport seam, and the per-connection
session object tracked by the session registry.
"""

# pylint: disable=too-many-instance-attributes  # Reason: A connection session captures the full state of one socket

import asyncio
import time
from datetime import UTC, datetime
from typing import Any, NamedTuple, Protocol

from ..exceptions import ConnectionClosedError, InvalidRoomSpecError
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_state_machine import ConnectionLifecycle
from .device_info import DeviceInfo
from .envelope import build_event

logger = get_logger(__name__)


class RoomType:
    USER = "user"
    ROLE = "role"
    COURSE = "course"


class RoomKey(NamedTuple):
    """Composite room identifier; ``str()`` gives the ``type:id`` wire form."""

    room_type: str
    room_id: str

    def __str__(self) -> str:
        return f"{self.room_type}:{self.room_id}"

    @classmethod
    def of(cls, room_type: Any, room_id: Any) -> "RoomKey":
        """
        Build a key from client-supplied parts.

        Raises:
            InvalidRoomSpecError: If either part is missing or blank
        """
        type_part = str(room_type).strip() if room_type is not None else ""
        id_part = str(room_id).strip() if room_id is not None else ""
        if not type_part or not id_part:
            raise InvalidRoomSpecError(
                "Room type and room id are both required",
                field="room",
                value=f"{type_part}:{id_part}",
                user_friendly="Room type and ID are required",
            )
        return cls(type_part, id_part)

    @classmethod
    def parse(cls, value: str) -> "RoomKey":
        """Parse the ``type:id`` wire form."""
        room_type, sep, room_id = (value or "").partition(":")
        if not sep:
            return cls.of(None, None)
        return cls.of(room_type, room_id)


class Transport(Protocol):
    """The outbound half of a socket. Starlette's WebSocket satisfies it."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class ConnectionSession:
    """
    One live connection of one user.

    The owning user is fixed at construction. Outbound frames are serialised
    through a per-connection lock so the order of sends on a connection is the
    order in which they were issued. Background tasks started for the
    connection are tracked here and cancelled at teardown.
    """

    def __init__(
        self,
        connection_id: str,
        user_id: int,
        role: str,
        display_name: str,
        transport: Transport,
        device: DeviceInfo,
        email: str | None = None,
        lifecycle: ConnectionLifecycle | None = None,
    ):
        self.connection_id = connection_id
        self._user_id = user_id
        self.role = role
        self.display_name = display_name
        self.email = email
        self.transport = transport
        self.device = device
        self.connected_at = datetime.now(UTC)
        self.last_seen = time.monotonic()
        self.joined_rooms: set[RoomKey] = set()
        self.device_session_id: int | None = None
        self.lifecycle = lifecycle or ConnectionLifecycle(connection_id)
        self._send_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def user_id(self) -> int:
        return self._user_id

    @property
    def is_closed(self) -> bool:
        return self.lifecycle.state_id == "closed"

    def touch(self) -> None:
        """Record inbound activity."""
        self.last_seen = time.monotonic()

    def idle_seconds(self, now: float | None = None) -> float:
        return (now if now is not None else time.monotonic()) - self.last_seen

    async def send(self, event_type: str, data: dict[str, Any] | None = None, *, room_id: str | None = None) -> None:
        """
        Send one event to this connection.

        Raises:
            ConnectionClosedError: If the connection has closed
        """
        if self.is_closed:
            raise ConnectionClosedError(
                f"Connection {self.connection_id} is closed",
                details={"event_type": event_type},
            )
        event = build_event(event_type, data, room_id=room_id)
        async with self._send_lock:
            await self.transport.send_json(event)

    def track_task(self, task: "asyncio.Task[Any]") -> "asyncio.Task[Any]":
        """Own a background task so it is cancelled when the connection closes."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def cancel_tasks(self) -> int:
        """Cancel every task owned by this connection, except the caller's own."""
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)

    def __repr__(self) -> str:
        return (
            f"<ConnectionSession(connection_id={self.connection_id}, user_id={self._user_id}, "
            f"state={self.lifecycle.state_id})>"
        )
