"""
Notification repository for async persistence operations.

Notifications are the durable half of personal delivery: a row stays unread
until its owner acknowledges it, and unread unexpired rows are what the
connect-time drain sends.
"""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...exceptions import DatabaseError
from ...models.base import to_naive_utc, utc_now_naive
from ...models.notification import Notification
from ...schemas.notification import NotificationDraft, NotificationRecord
from ...structured_logging.enhanced_logging_config import get_logger
from ...utils.error_logging import create_error_context, log_and_raise

logger = get_logger(__name__)


def _unexpired(now: datetime):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


class NotificationRepository:
    """Repository for persisted notifications."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._logger = get_logger(__name__)

    async def create_notification(self, user_id: int, draft: NotificationDraft) -> NotificationRecord:
        """
        Persist a notification for one user.

        Args:
            user_id: Recipient
            draft: Notification content

        Returns:
            NotificationRecord: The stored notification

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(operation="create_notification", user_id=user_id)
        try:
            async with self._session_maker() as session:
                notification = Notification(
                    user_id=user_id,
                    type=draft.type,
                    title=draft.title,
                    message=draft.message,
                    priority=draft.priority.value,
                    data=dict(draft.data),
                    action_url=draft.action_url,
                    expires_at=to_naive_utc(draft.expires_at) if draft.expires_at else None,
                    created_at=utc_now_naive(),
                )
                session.add(notification)
                await session.commit()
                await session.refresh(notification)
                self._logger.debug("Notification created", notification_id=notification.id, user_id=user_id)
                return NotificationRecord.model_validate(notification)
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error creating notification for user '{user_id}': {e}",
                context=context,
                details={"user_id": user_id, "type": draft.type, "error": str(e)},
                user_friendly="Failed to store notification",
                operation="create_notification",
                table="notifications",
            )

    async def query_unread_notifications(
        self, user_id: int, limit: int | None = None, now: datetime | None = None
    ) -> list[NotificationRecord]:
        """
        Get unread, unexpired notifications newest first.

        Ties on ``created_at`` are broken by id, descending.

        Args:
            user_id: Owner of the notifications
            limit: Maximum rows to return, or None for all
            now: Reference time for expiry (defaults to current UTC)

        Returns:
            list[NotificationRecord]: Matching notifications
        """
        context = create_error_context(operation="query_unread_notifications", user_id=user_id)
        reference = to_naive_utc(now)
        try:
            async with self._session_maker() as session:
                stmt = (
                    select(Notification)
                    .where(Notification.user_id == user_id, Notification.is_read.is_(False), _unexpired(reference))
                    .order_by(Notification.created_at.desc(), Notification.id.desc())
                )
                if limit is not None:
                    stmt = stmt.limit(limit)
                result = await session.execute(stmt)
                return [NotificationRecord.model_validate(n) for n in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error querying unread notifications: {e}",
                context=context,
                details={"user_id": user_id, "error": str(e)},
                operation="query_unread_notifications",
                table="notifications",
            )

    async def count_unread_notifications(self, user_id: int, now: datetime | None = None) -> int:
        context = create_error_context(operation="count_unread_notifications", user_id=user_id)
        reference = to_naive_utc(now)
        try:
            async with self._session_maker() as session:
                stmt = select(func.count(Notification.id)).where(
                    Notification.user_id == user_id, Notification.is_read.is_(False), _unexpired(reference)
                )
                result = await session.execute(stmt)
                return int(result.scalar_one())
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error counting unread notifications: {e}",
                context=context,
                details={"user_id": user_id, "error": str(e)},
                operation="count_unread_notifications",
                table="notifications",
            )

    async def mark_notifications_read(self, notification_ids: Sequence[int], user_id: int) -> int:
        """
        Mark the listed notifications read.

        Only rows owned by ``user_id`` that are still unread change, so repeating
        the call is harmless and returns 0.

        Returns:
            int: Number of notifications newly marked read
        """
        if not notification_ids:
            return 0
        return await self._mark_read(
            and_(Notification.user_id == user_id, Notification.id.in_(list(notification_ids))), user_id
        )

    async def mark_all_notifications_read(self, user_id: int) -> int:
        return await self._mark_read(Notification.user_id == user_id, user_id)

    async def _mark_read(self, criteria, user_id: int) -> int:
        context = create_error_context(operation="mark_notifications_read", user_id=user_id)
        try:
            async with self._session_maker() as session:
                stmt = (
                    update(Notification)
                    .where(criteria, Notification.is_read.is_(False))
                    .values(is_read=True, read_at=utc_now_naive())
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                await session.commit()
                return int(result.rowcount or 0)
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error marking notifications read: {e}",
                context=context,
                details={"user_id": user_id, "error": str(e)},
                operation="mark_notifications_read",
                table="notifications",
            )

    async def mark_notifications_delivered(self, notification_ids: Sequence[int]) -> int:
        if not notification_ids:
            return 0
        context = create_error_context(operation="mark_notifications_delivered")
        try:
            async with self._session_maker() as session:
                stmt = (
                    update(Notification)
                    .where(Notification.id.in_(list(notification_ids)), Notification.is_delivered.is_(False))
                    .values(is_delivered=True, delivered_at=utc_now_naive())
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                await session.commit()
                return int(result.rowcount or 0)
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error marking notifications delivered: {e}",
                context=context,
                details={"notification_ids": list(notification_ids), "error": str(e)},
                operation="mark_notifications_delivered",
                table="notifications",
            )

    async def delete_notification(self, notification_id: int, user_id: int) -> bool:
        context = create_error_context(operation="delete_notification", user_id=user_id)
        try:
            async with self._session_maker() as session:
                stmt = delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
                result = await session.execute(stmt)
                await session.commit()
                return bool(result.rowcount)
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error deleting notification '{notification_id}': {e}",
                context=context,
                details={"notification_id": notification_id, "error": str(e)},
                operation="delete_notification",
                table="notifications",
            )

    async def delete_expired_notifications(self, now: datetime | None = None) -> int:
        context = create_error_context(operation="delete_expired_notifications")
        reference = to_naive_utc(now)
        try:
            async with self._session_maker() as session:
                stmt = delete(Notification).where(
                    Notification.expires_at.is_not(None), Notification.expires_at <= reference
                )
                result = await session.execute(stmt)
                await session.commit()
                removed = int(result.rowcount or 0)
                if removed:
                    self._logger.info("Expired notifications purged", removed=removed)
                return removed
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error purging expired notifications: {e}",
                context=context,
                details={"error": str(e)},
                operation="delete_expired_notifications",
                table="notifications",
            )
