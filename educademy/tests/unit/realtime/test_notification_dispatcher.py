"""
Tests for the notification dispatcher.

Personal notifications are persisted before any live push; room, role and
broadcast events are never persisted.
"""

# pylint: disable=redefined-outer-name
# Justification: pytest fixtures redefine names

import pytest

from educademy.exceptions import DatabaseError
from educademy.models.user import UserRole
from educademy.realtime.connection_models import RoomKey
from educademy.realtime.events import ServerEvent
from educademy.realtime.notification_dispatcher import NotificationDispatcher
from educademy.realtime.session_registry import SessionRegistry
from educademy.schemas.notification import NotificationDraft
from educademy.tests.fixtures.fakes import (
    INSTRUCTOR_ID,
    STUDENT_ID,
    InMemoryPersistence,
    RecordingTransport,
    make_session,
    minutes_ago,
)

DRAFT = NotificationDraft(type="SYSTEM", title="Heads up", message="Something happened", data={"k": "v"})


async def _online(registry: SessionRegistry, connection_id: str, user_id: int, role: str = UserRole.STUDENT, **kw):
    transport = RecordingTransport(**kw)
    session = make_session(connection_id, user_id, role, transport=transport)
    await registry.register(session)
    return session, transport


class TestSendToUser:
    """Test personal notification delivery."""

    @pytest.mark.asyncio
    async def test_offline_recipient_gets_queued_row(
        self, dispatcher: NotificationDispatcher, persistence: InMemoryPersistence
    ):
        record = await dispatcher.send_to_user(STUDENT_ID, ServerEvent.NEW_NOTIFICATION, DRAFT)

        assert record.is_delivered is False
        assert persistence.notifications[record.id].is_read is False
        assert "mark_notifications_delivered" not in persistence.calls

    @pytest.mark.asyncio
    async def test_every_device_receives_the_notification(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        _, phone = await _online(registry, "c1", STUDENT_ID)
        _, laptop = await _online(registry, "c2", STUDENT_ID)

        record = await dispatcher.send_to_user(STUDENT_ID, ServerEvent.NEW_NOTIFICATION, DRAFT)

        for transport in (phone, laptop):
            [event] = transport.events(ServerEvent.NEW_NOTIFICATION)
            assert event["data"]["id"] == record.id
            assert event["data"]["data"] == {"k": "v"}
            assert transport.events(ServerEvent.UNREAD_COUNT_UPDATED)[-1]["data"]["count"] == 1
        assert record.is_delivered is True
        assert persistence.notifications[record.id].is_delivered is True

    @pytest.mark.asyncio
    async def test_persistence_happens_before_push(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        _, transport = await _online(registry, "c1", STUDENT_ID)
        persistence.fail_operations.add("create_notification")

        with pytest.raises(DatabaseError):
            await dispatcher.send_to_user(STUDENT_ID, ServerEvent.NEW_NOTIFICATION, DRAFT)

        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_broken_transport_does_not_fail_send(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        await _online(registry, "c1", STUDENT_ID, fail=True)

        record = await dispatcher.send_to_user(STUDENT_ID, ServerEvent.NEW_NOTIFICATION, DRAFT)

        assert record.is_delivered is False
        assert record.id in persistence.notifications

    @pytest.mark.asyncio
    async def test_delivered_flag_failure_is_absorbed(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        _, transport = await _online(registry, "c1", STUDENT_ID)
        persistence.fail_operations.add("mark_notifications_delivered")

        record = await dispatcher.send_to_user(STUDENT_ID, ServerEvent.NEW_NOTIFICATION, DRAFT)

        assert record.is_delivered is False
        assert transport.events(ServerEvent.NEW_NOTIFICATION)

    @pytest.mark.asyncio
    async def test_send_to_users_isolates_failures(
        self, dispatcher: NotificationDispatcher, persistence: InMemoryPersistence
    ):
        original = persistence.create_notification

        async def flaky(user_id, draft):
            if user_id == INSTRUCTOR_ID:
                raise DatabaseError("disk full")
            return await original(user_id, draft)

        persistence.create_notification = flaky  # type: ignore[method-assign]

        report = await dispatcher.send_to_users([STUDENT_ID, INSTRUCTOR_ID, STUDENT_ID], "announcement", DRAFT)

        assert report.sent == [STUDENT_ID]
        assert report.failed == [INSTRUCTOR_ID]


class TestLiveOnly:
    """Test room, role and broadcast fan-out."""

    @pytest.mark.asyncio
    async def test_room_event_reaches_members_only(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        member, member_transport = await _online(registry, "c1", STUDENT_ID)
        _, outsider_transport = await _online(registry, "c2", INSTRUCTOR_ID, UserRole.INSTRUCTOR)
        room = RoomKey("course", "100")
        await registry.join_room(member.connection_id, room)

        accepted = await dispatcher.send_to_room("course:100", "course_announcement", {"text": "hi"})

        assert accepted == 1
        [event] = member_transport.events("course_announcement")
        assert event["room_id"] == "course:100"
        assert outsider_transport.events("course_announcement") == []
        assert persistence.notifications == {}

    @pytest.mark.asyncio
    async def test_send_to_role(self, dispatcher: NotificationDispatcher, registry: SessionRegistry):
        _, student = await _online(registry, "c1", STUDENT_ID)
        _, instructor = await _online(registry, "c2", INSTRUCTOR_ID, UserRole.INSTRUCTOR)

        assert await dispatcher.send_to_role(UserRole.INSTRUCTOR, "staff_memo", {}) == 1
        assert instructor.events("staff_memo")
        assert not student.events("staff_memo")

    @pytest.mark.asyncio
    async def test_broadcast_counts_accepting_connections(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry
    ):
        await _online(registry, "c1", STUDENT_ID)
        await _online(registry, "c2", INSTRUCTOR_ID, UserRole.INSTRUCTOR, fail=True)

        assert await dispatcher.broadcast("maintenance", {"in": "5m"}) == 1

    @pytest.mark.asyncio
    async def test_push_to_user_can_exclude_origin(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry
    ):
        _, first = await _online(registry, "c1", STUDENT_ID)
        _, second = await _online(registry, "c2", STUDENT_ID)

        await dispatcher.push_to_user(STUDENT_ID, "ping_other", {}, exclude_connection_id="c1")

        assert not first.events("ping_other")
        assert second.events("ping_other")


class TestDrain:
    """Test the connect-time drain."""

    @pytest.mark.asyncio
    async def test_drain_sends_one_batch_newest_first(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        older = persistence.add_notification(STUDENT_ID, "older", created_at=minutes_ago(10))
        newer = persistence.add_notification(STUDENT_ID, "newer", created_at=minutes_ago(1))
        persistence.add_notification(STUDENT_ID, "read", is_read=True)
        persistence.add_notification(STUDENT_ID, "expired", expires_at=minutes_ago(5))
        session, transport = await _online(registry, "c1", STUDENT_ID)

        sent = await dispatcher.drain_pending_for(session)

        assert sent == 2
        [batch] = transport.events(ServerEvent.PENDING_NOTIFICATIONS)
        assert [n["id"] for n in batch["data"]["notifications"]] == [newer.id, older.id]
        assert batch["data"]["count"] == 2
        assert persistence.notifications[older.id].is_read is False

    @pytest.mark.asyncio
    async def test_equal_timestamps_break_ties_by_id(
        self, dispatcher: NotificationDispatcher, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        moment = minutes_ago(3)
        first = persistence.add_notification(STUDENT_ID, "a", created_at=moment)
        second = persistence.add_notification(STUDENT_ID, "b", created_at=moment)
        session, transport = await _online(registry, "c1", STUDENT_ID)

        await dispatcher.drain_pending_for(session)

        ids = [n["id"] for n in transport.events(ServerEvent.PENDING_NOTIFICATIONS)[0]["data"]["notifications"]]
        assert ids == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_empty_backlog_sends_nothing(self, dispatcher: NotificationDispatcher, registry: SessionRegistry):
        session, transport = await _online(registry, "c1", STUDENT_ID)

        assert await dispatcher.drain_pending_for(session) == 0
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_drain_limit(self, registry: SessionRegistry, persistence: InMemoryPersistence):
        for i in range(5):
            persistence.add_notification(STUDENT_ID, f"n{i}", created_at=minutes_ago(10 - i))
        dispatcher = NotificationDispatcher(registry, persistence, drain_limit=3)
        session, transport = await _online(registry, "c1", STUDENT_ID)

        assert await dispatcher.drain_pending_for(session) == 3
        titles = [n["title"] for n in transport.events(ServerEvent.PENDING_NOTIFICATIONS)[0]["data"]["notifications"]]
        assert titles == ["n4", "n3", "n2"]
