"""
Pending-notification queue.

The durable side of personal notifications as seen by their owner: what is
still unread, acknowledging, deleting, and the expiry purge. Rows stay in the
queue until the user marks them read or they expire, so every reconnect
replays them. Every operation is scoped to the calling user.
"""

from collections.abc import Sequence

from ..exceptions import ResourceNotFoundError
from ..persistence.protocols import PersistenceProtocol
from ..realtime.notification_dispatcher import NotificationDispatcher
from ..schemas.notification import NotificationRecord
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import best_effort

logger = get_logger(__name__)


class PendingNotificationQueue:
    """User-scoped access to queued notifications."""

    def __init__(self, persistence: PersistenceProtocol, dispatcher: NotificationDispatcher):
        self._persistence = persistence
        self._dispatcher = dispatcher

    async def unread(self, user_id: int, limit: int | None = None) -> list[NotificationRecord]:
        """Unread, unexpired notifications, newest first."""
        return await self._persistence.query_unread_notifications(user_id, limit=limit)

    async def unread_count(self, user_id: int) -> int:
        return await self._persistence.count_unread_notifications(user_id)

    async def acknowledge(
        self, user_id: int, notification_ids: Sequence[int] | None = None, mark_all: bool = False
    ) -> int:
        """
        Mark notifications read. Repeating an acknowledgement changes nothing.

        Other users' ids in the list are ignored. The user's devices receive
        the new unread count.

        Returns:
            int: Number of notifications newly marked read
        """
        if mark_all:
            count = await self._persistence.mark_all_notifications_read(user_id)
        else:
            count = await self._persistence.mark_notifications_read(list(notification_ids or []), user_id)
        if count:
            await best_effort("push_unread_count", self._dispatcher.push_unread_count(user_id), user_id=user_id)
        logger.debug("Notifications acknowledged", user_id=user_id, count=count, mark_all=mark_all)
        return count

    async def remove(self, user_id: int, notification_id: int) -> None:
        """
        Delete one of the user's notifications.

        Raises:
            ResourceNotFoundError: If the user has no such notification
        """
        deleted = await self._persistence.delete_notification(notification_id, user_id)
        if not deleted:
            raise ResourceNotFoundError(
                f"Notification {notification_id} not found for user {user_id}",
                resource_type="notification",
                resource_id=str(notification_id),
                user_friendly="Notification not found",
            )
        await best_effort("push_unread_count", self._dispatcher.push_unread_count(user_id), user_id=user_id)

    async def purge_expired(self) -> int:
        purged = await self._persistence.delete_expired_notifications()
        if purged:
            logger.info("Expired notifications purged", count=purged)
        return purged
