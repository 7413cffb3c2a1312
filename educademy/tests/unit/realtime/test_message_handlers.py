"""
Tests for client event handlers.
"""

# pylint: disable=redefined-outer-name
# Justification: pytest fixtures redefine names

import pytest

from educademy.exceptions import ForbiddenError
from educademy.models.user import UserRole
from educademy.realtime.connection_models import ConnectionSession
from educademy.realtime.events import ServerEvent, parse_client_event
from educademy.realtime.message_handlers import ClientMessageHandler
from educademy.realtime.session_registry import SessionRegistry
from educademy.tests.fixtures.fakes import (
    COURSE_ID,
    INSTRUCTOR_ID,
    OTHER_STUDENT_ID,
    STUDENT_ID,
    InMemoryPersistence,
    RecordingTransport,
    make_session,
)


async def _online(registry: SessionRegistry, connection_id: str, user_id: int, role: str = UserRole.STUDENT):
    transport = RecordingTransport()
    session = make_session(connection_id, user_id, role, transport=transport, display_name=f"User {user_id}")
    await registry.register(session)
    return session, transport


async def _send(handler: ClientMessageHandler, session: ConnectionSession, frame: dict) -> None:
    await handler.handle(session, parse_client_event(frame))


class TestRoomEvents:
    """Test join/leave handling."""

    @pytest.mark.asyncio
    async def test_join_room_acknowledges_with_member_count(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry
    ):
        session, transport = await _online(registry, "c1", STUDENT_ID)

        await _send(message_handler, session, {"event": "join_room", "roomType": "course", "roomId": COURSE_ID})

        [ack] = transport.events(ServerEvent.JOINED_ROOM)
        assert ack["data"]["roomId"] == f"course:{COURSE_ID}"
        assert ack["data"]["memberCount"] == 1

    @pytest.mark.asyncio
    async def test_join_course_shortcut(self, message_handler: ClientMessageHandler, registry: SessionRegistry):
        session, transport = await _online(registry, "c1", INSTRUCTOR_ID, UserRole.INSTRUCTOR)

        await _send(message_handler, session, {"event": "join_course", "data": {"courseId": COURSE_ID}})

        assert transport.events(ServerEvent.JOINED_ROOM)[0]["data"]["roomId"] == f"course:{COURSE_ID}"

    @pytest.mark.asyncio
    async def test_unauthorized_join_raises(self, message_handler: ClientMessageHandler, registry: SessionRegistry):
        session, transport = await _online(registry, "c1", OTHER_STUDENT_ID)

        with pytest.raises(ForbiddenError):
            await _send(message_handler, session, {"event": "join_room", "roomType": "course", "roomId": COURSE_ID})

        assert transport.events(ServerEvent.JOINED_ROOM) == []

    @pytest.mark.asyncio
    async def test_leave_room(self, message_handler: ClientMessageHandler, registry: SessionRegistry):
        session, transport = await _online(registry, "c1", STUDENT_ID)
        await _send(message_handler, session, {"event": "join_room", "roomType": "course", "roomId": COURSE_ID})

        await _send(message_handler, session, {"event": "leave_room", "roomType": "course", "roomId": COURSE_ID})

        assert transport.events(ServerEvent.LEFT_ROOM)[0]["data"]["memberCount"] == 0


class TestNotificationEvents:
    """Test read acknowledgements and unread counts."""

    @pytest.mark.asyncio
    async def test_mark_read_acks_sender_and_updates_every_device(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        first = persistence.add_notification(STUDENT_ID, "one")
        persistence.add_notification(STUDENT_ID, "two")
        phone, phone_transport = await _online(registry, "c1", STUDENT_ID)
        _, laptop_transport = await _online(registry, "c2", STUDENT_ID)

        await _send(message_handler, phone, {"event": "mark_notifications_read", "notificationIds": [first.id]})

        [ack] = phone_transport.events(ServerEvent.NOTIFICATIONS_MARKED_READ)
        assert ack["data"]["count"] == 1
        assert laptop_transport.events(ServerEvent.NOTIFICATIONS_MARKED_READ) == []
        for transport in (phone_transport, laptop_transport):
            assert transport.events(ServerEvent.UNREAD_COUNT_UPDATED)[-1]["data"]["count"] == 1

    @pytest.mark.asyncio
    async def test_mark_read_twice_is_idempotent(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        note = persistence.add_notification(STUDENT_ID, "one")
        session, transport = await _online(registry, "c1", STUDENT_ID)
        frame = {"event": "mark_notifications_read", "notificationIds": [note.id]}

        await _send(message_handler, session, frame)
        read_at = persistence.notifications[note.id].read_at
        await _send(message_handler, session, frame)

        counts = [e["data"]["count"] for e in transport.events(ServerEvent.NOTIFICATIONS_MARKED_READ)]
        assert counts == [1, 0]
        assert persistence.notifications[note.id].read_at == read_at

    @pytest.mark.asyncio
    async def test_cannot_mark_another_users_notification(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        theirs = persistence.add_notification(OTHER_STUDENT_ID, "private")
        session, _ = await _online(registry, "c1", STUDENT_ID)

        await _send(message_handler, session, {"event": "mark_notifications_read", "notificationIds": [theirs.id]})

        assert persistence.notifications[theirs.id].is_read is False

    @pytest.mark.asyncio
    async def test_mark_all(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        for title in ("a", "b", "c"):
            persistence.add_notification(STUDENT_ID, title)
        session, transport = await _online(registry, "c1", STUDENT_ID)

        await _send(message_handler, session, {"event": "mark_notifications_read", "markAll": True})

        assert transport.events(ServerEvent.NOTIFICATIONS_MARKED_READ)[0]["data"]["count"] == 3
        assert transport.events(ServerEvent.UNREAD_COUNT_UPDATED)[-1]["data"]["count"] == 0

    @pytest.mark.asyncio
    async def test_get_unread_count(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        persistence.add_notification(STUDENT_ID, "a")
        session, transport = await _online(registry, "c1", STUDENT_ID)

        await _send(message_handler, session, {"event": "get_unread_count"})

        assert transport.events(ServerEvent.UNREAD_COUNT_UPDATED)[0]["data"]["count"] == 1


class TestTypingAndPing:
    """Test typing relays and heartbeats."""

    @pytest.mark.asyncio
    async def test_typing_relayed_to_other_members_only(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry
    ):
        student, student_transport = await _online(registry, "c1", STUDENT_ID)
        instructor, instructor_transport = await _online(registry, "c2", INSTRUCTOR_ID, UserRole.INSTRUCTOR)
        for session in (student, instructor):
            await _send(message_handler, session, {"event": "join_course", "courseId": COURSE_ID})

        await _send(message_handler, student, {"event": "typing", "roomId": f"course:{COURSE_ID}", "isTyping": True})

        [relay] = instructor_transport.events(ServerEvent.USER_TYPING)
        assert relay["data"]["userId"] == STUDENT_ID
        assert relay["data"]["userName"] == f"User {STUDENT_ID}"
        assert relay["data"]["isTyping"] is True
        assert student_transport.events(ServerEvent.USER_TYPING) == []

    @pytest.mark.asyncio
    async def test_typing_in_room_not_joined_is_refused(
        self, message_handler: ClientMessageHandler, registry: SessionRegistry
    ):
        session, _ = await _online(registry, "c1", STUDENT_ID)

        with pytest.raises(ForbiddenError):
            await _send(message_handler, session, {"event": "typing", "roomId": f"course:{COURSE_ID}"})

    @pytest.mark.asyncio
    async def test_ping_answers_pong(self, message_handler: ClientMessageHandler, registry: SessionRegistry):
        session, transport = await _online(registry, "c1", STUDENT_ID)

        await _send(message_handler, session, {"event": "ping"})

        assert transport.event_types() == [ServerEvent.PONG]
