"""
Notification dispatcher.

Two delivery modes share this module:

- Personal notifications (send_to_user, send_to_users) are persisted first
  and then pushed to every live connection of the recipient. Persisting is
  guaranteed and its failure reaches the caller; the live push and the
  delivered flag are best-effort. An offline recipient receives the
  notification in the next connect-time drain.
- Room, role and broadcast events are live-only and never persisted.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..models.base import utc_now_naive
from ..persistence.protocols import PersistenceProtocol
from ..schemas.notification import NotificationDraft, NotificationRecord
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import best_effort
from .connection_models import ConnectionSession, RoomKey, RoomType
from .events import PendingNotificationsPayload, ServerEvent, UnreadCountPayload
from .session_registry import SessionRegistry

logger = get_logger(__name__)


@dataclass
class DispatchReport:
    """Outcome of a multi-recipient personal send."""

    notifications: dict[int, NotificationRecord] = field(default_factory=dict)
    failures: dict[int, str] = field(default_factory=dict)

    @property
    def sent(self) -> list[int]:
        return sorted(self.notifications)

    @property
    def failed(self) -> list[int]:
        return sorted(self.failures)


class NotificationDispatcher:
    """Routes events to connections and persists personal notifications."""

    def __init__(self, registry: SessionRegistry, persistence: PersistenceProtocol, drain_limit: int | None = None):
        self._registry = registry
        self._persistence = persistence
        self._drain_limit = drain_limit

    # Live fan-out

    async def _push(
        self,
        sessions: Iterable[ConnectionSession],
        event: str,
        payload: dict[str, Any] | None,
        room_id: str | None = None,
    ) -> int:
        targets = list(sessions)
        if not targets:
            return 0
        results = await asyncio.gather(
            *(s.send(event, payload, room_id=room_id) for s in targets), return_exceptions=True
        )
        accepted = 0
        for session, result in zip(targets, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(
                    "Live push failed",
                    event_type=event,
                    connection_id=session.connection_id,
                    user_id=session.user_id,
                    error=str(result),
                    error_type=type(result).__name__,
                )
            else:
                accepted += 1
        return accepted

    async def push_to_user(
        self, user_id: int, event: str, payload: dict[str, Any] | None = None, exclude_connection_id: str | None = None
    ) -> int:
        """
        Push a live-only event to every connection of a user.

        Returns:
            int: Number of connections that accepted the event
        """
        sessions = [s for s in self._registry.sessions_for_user(user_id) if s.connection_id != exclude_connection_id]
        return await self._push(sessions, event, payload)

    async def send_to_room(self, room: RoomKey | str, event: str, payload: dict[str, Any] | None = None) -> int:
        """
        Push a live-only event to every member of a room.

        Args:
            room: Room key or its ``type:id`` form
            event: Event name
            payload: Event data

        Returns:
            int: Number of connections that accepted the event
        """
        key = room if isinstance(room, RoomKey) else RoomKey.parse(room)
        members = self._registry.room_members(key)
        accepted = await self._push(members, event, payload, room_id=str(key))
        logger.debug("Room event sent", room=str(key), event_type=event, members=len(members), accepted=accepted)
        return accepted

    async def send_to_role(self, role: str, event: str, payload: dict[str, Any] | None = None) -> int:
        return await self.send_to_room(RoomKey(RoomType.ROLE, role), event, payload)

    async def broadcast(self, event: str, payload: dict[str, Any] | None = None) -> int:
        """Push a live-only event to every connected session."""
        return await self._push(self._registry.all_sessions(), event, payload)

    # Personal notifications

    async def send_to_user(self, user_id: int, event: str, draft: NotificationDraft) -> NotificationRecord:
        """
        Persist a notification for a user and push it live if they are online.

        Args:
            user_id: Recipient
            event: Event name used for the live push
            draft: Notification content

        Returns:
            NotificationRecord: The persisted notification, flagged delivered
            when at least one connection accepted it

        Raises:
            DatabaseError: If the notification could not be persisted
        """
        record = await self._persistence.create_notification(user_id, draft)

        sessions = self._registry.sessions_for_user(user_id)
        if not sessions:
            logger.debug("Recipient offline, notification queued", user_id=user_id, notification_id=record.id)
            return record

        accepted = await self._push(sessions, event, record.to_wire())
        if accepted:
            marked = await best_effort(
                "mark_notifications_delivered",
                self._persistence.mark_notifications_delivered([record.id]),
                notification_id=record.id,
            )
            if marked is not None:
                record = record.model_copy(update={"is_delivered": True, "delivered_at": utc_now_naive()})
        await best_effort("push_unread_count", self.push_unread_count(user_id), user_id=user_id)
        logger.info(
            "Notification dispatched",
            user_id=user_id,
            notification_id=record.id,
            event_type=event,
            devices=len(sessions),
            accepted=accepted,
        )
        return record

    async def send_to_users(self, user_ids: Iterable[int], event: str, draft: NotificationDraft) -> DispatchReport:
        """
        Send the same notification to several users.

        A failure for one recipient is recorded in the report and does not
        affect the others.
        """
        report = DispatchReport()
        for user_id in dict.fromkeys(user_ids):
            try:
                report.notifications[user_id] = await self.send_to_user(user_id, event, draft)
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: per-recipient isolation
                report.failures[user_id] = str(e)
                logger.error("Notification dispatch failed", user_id=user_id, event_type=event, error=str(e))
        return report

    async def push_unread_count(self, user_id: int) -> int:
        """Push the user's current unread count to all of their connections."""
        count = await self._persistence.count_unread_notifications(user_id)
        await self.push_to_user(user_id, ServerEvent.UNREAD_COUNT_UPDATED, UnreadCountPayload(count=count).to_wire())
        return count

    async def drain_pending_for(self, session: ConnectionSession) -> int:
        """
        Send a newly established connection its unread notifications.

        Sends one ``pending_notifications`` batch, newest first, to this
        connection only. Nothing is marked read, so a device that drops before
        acknowledging receives the same notifications again next time. An
        empty backlog sends nothing.

        Returns:
            int: Number of notifications sent
        """
        notifications = await self._persistence.query_unread_notifications(session.user_id, limit=self._drain_limit)
        if not notifications:
            return 0
        payload = PendingNotificationsPayload(
            notifications=[n.to_wire() for n in notifications], count=len(notifications)
        )
        await session.send(ServerEvent.PENDING_NOTIFICATIONS, payload.to_wire())
        logger.info(
            "Pending notifications drained",
            user_id=session.user_id,
            connection_id=session.connection_id,
            count=len(notifications),
        )
        return len(notifications)
