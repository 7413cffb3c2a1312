"""
Handlers for client events on an active connection.

Each handler receives the parsed event and the session it arrived on. Errors
raised here are reported back to the same connection as an ``error`` event by
the caller; they never tear the connection down.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from ..exceptions import ForbiddenError
from ..persistence.protocols import PersistenceProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ConnectionSession, RoomKey, RoomType
from .events import (
    AuthenticateEvent,
    GetUnreadCountEvent,
    JoinCourseEvent,
    JoinRoomEvent,
    LeaveRoomEvent,
    MarkNotificationsReadEvent,
    NotificationsMarkedReadPayload,
    PingEvent,
    RoomAckPayload,
    ServerEvent,
    TypingEvent,
    UnreadCountPayload,
    UserTypingPayload,
)
from .notification_dispatcher import NotificationDispatcher
from .room_membership import RoomMembershipManager
from .session_registry import SessionRegistry

logger = get_logger(__name__)


class ClientMessageHandler:
    """Dispatches parsed client events to their handlers."""

    def __init__(
        self,
        registry: SessionRegistry,
        membership: RoomMembershipManager,
        dispatcher: NotificationDispatcher,
        persistence: PersistenceProtocol,
    ):
        self._registry = registry
        self._membership = membership
        self._dispatcher = dispatcher
        self._persistence = persistence
        self._handlers: dict[type, Callable[[ConnectionSession, Any], Awaitable[None]]] = {
            JoinRoomEvent: self.handle_join_room,
            LeaveRoomEvent: self.handle_leave_room,
            JoinCourseEvent: self.handle_join_course,
            MarkNotificationsReadEvent: self.handle_mark_notifications_read,
            GetUnreadCountEvent: self.handle_get_unread_count,
            TypingEvent: self.handle_typing,
            PingEvent: self.handle_ping,
            AuthenticateEvent: self.handle_authenticate,
        }

    async def handle(self, session: ConnectionSession, event: Any) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("No handler for client event", event_type=type(event).__name__)
            return
        await handler(session, event)

    async def handle_join_room(self, session: ConnectionSession, event: JoinRoomEvent) -> None:
        ack = await self._membership.join(session, event.room_type, event.room_id)
        await session.send(ServerEvent.JOINED_ROOM, RoomAckPayload(room_id=ack.room_id, member_count=ack.member_count).to_wire())

    async def handle_leave_room(self, session: ConnectionSession, event: LeaveRoomEvent) -> None:
        ack = await self._membership.leave(session, event.room_type, event.room_id)
        await session.send(ServerEvent.LEFT_ROOM, RoomAckPayload(room_id=ack.room_id, member_count=ack.member_count).to_wire())

    async def handle_join_course(self, session: ConnectionSession, event: JoinCourseEvent) -> None:
        ack = await self._membership.join(session, RoomType.COURSE, event.course_id)
        await session.send(ServerEvent.JOINED_ROOM, RoomAckPayload(room_id=ack.room_id, member_count=ack.member_count).to_wire())

    async def handle_mark_notifications_read(self, session: ConnectionSession, event: MarkNotificationsReadEvent) -> None:
        """
        Mark notifications read for the session's user.

        Only the caller's own notifications change. The acknowledgement goes to
        this connection; the new unread count goes to every device of the user.
        """
        if event.mark_all:
            count = await self._persistence.mark_all_notifications_read(session.user_id)
        else:
            count = await self._persistence.mark_notifications_read(event.notification_ids, session.user_id)

        payload = NotificationsMarkedReadPayload(
            notification_ids=event.notification_ids, mark_all=event.mark_all, count=count
        )
        await session.send(ServerEvent.NOTIFICATIONS_MARKED_READ, payload.to_wire())
        await self._dispatcher.push_unread_count(session.user_id)

    async def handle_get_unread_count(self, session: ConnectionSession, event: GetUnreadCountEvent) -> None:
        count = await self._persistence.count_unread_notifications(session.user_id)
        await session.send(ServerEvent.UNREAD_COUNT_UPDATED, UnreadCountPayload(count=count).to_wire())

    async def handle_typing(self, session: ConnectionSession, event: TypingEvent) -> None:
        """Relay a typing indicator to the other members of a room the sender has joined."""
        key = RoomKey.parse(event.room_id)
        if key not in session.joined_rooms:
            raise ForbiddenError(
                f"Connection {session.connection_id} is not in room {key}",
                user_friendly="Join the room before sending typing indicators",
            )
        payload = UserTypingPayload(
            user_id=session.user_id, user_name=session.display_name, room_id=str(key), is_typing=event.is_typing
        ).to_wire()
        others = [s for s in self._registry.room_members(key) if s.connection_id != session.connection_id]
        for other in others:
            try:
                await other.send(ServerEvent.USER_TYPING, payload, room_id=str(key))
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: typing indicators are best-effort
                logger.debug("Typing indicator not delivered", connection_id=other.connection_id, error=str(e))

    async def handle_ping(self, session: ConnectionSession, event: PingEvent) -> None:
        await session.send(ServerEvent.PONG, {})

    async def handle_authenticate(self, session: ConnectionSession, event: AuthenticateEvent) -> None:
        logger.debug("Ignoring authenticate on an established connection", connection_id=session.connection_id)
