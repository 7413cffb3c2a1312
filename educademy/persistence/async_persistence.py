"""
Async persistence facade for Educademy.

AsyncPersistenceLayer composes the SQLAlchemy repositories behind the single
PersistenceProtocol/AuthorizationOracleProtocol surface the realtime core
depends on.
"""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..schemas.grading import SubmissionInfo, SubmissionUpdate
from ..schemas.notification import NotificationDraft, NotificationRecord
from ..schemas.user import CourseRecord, DeviceSessionRecord, EnrollmentRecord, UserRecord
from ..structured_logging.enhanced_logging_config import get_logger
from .repositories.device_session_repository import DeviceSessionRepository
from .repositories.notification_repository import NotificationRepository
from .repositories.submission_repository import SubmissionRepository
from .repositories.user_repository import UserRepository

logger = get_logger(__name__)


class AsyncPersistenceLayer:
    """
    Facade over the async repositories.

    Each call opens its own session; multi-row writes that must be atomic are
    handled inside a single repository method.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._users = UserRepository(session_maker)
        self._notifications = NotificationRepository(session_maker)
        self._devices = DeviceSessionRepository(session_maker)
        self._submissions = SubmissionRepository(session_maker)
        logger.debug("AsyncPersistenceLayer initialized")

    # Users, courses and authorization

    async def find_user(self, user_id: int) -> UserRecord | None:
        return await self._users.find_user(user_id)

    async def find_course(self, course_id: int) -> CourseRecord | None:
        return await self._users.find_course(course_id)

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        return await self._users.is_enrolled(user_id, course_id)

    async def is_course_owner(self, user_id: int, course_id: int) -> bool:
        return await self._users.is_course_owner(user_id, course_id)

    async def create_enrollment(self, student_id: int, course_id: int) -> EnrollmentRecord:
        return await self._users.create_enrollment(student_id, course_id)

    # Device sessions

    async def create_device_session(
        self,
        user_id: int,
        connection_id: str,
        device_type: str,
        os: str,
        browser: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> DeviceSessionRecord:
        return await self._devices.create_device_session(
            user_id, connection_id, device_type, os, browser, ip_address, user_agent
        )

    async def end_device_session(self, session_id: int, reason: str) -> None:
        await self._devices.end_device_session(session_id, reason)

    # Notifications

    async def create_notification(self, user_id: int, draft: NotificationDraft) -> NotificationRecord:
        return await self._notifications.create_notification(user_id, draft)

    async def query_unread_notifications(
        self, user_id: int, limit: int | None = None, now: datetime | None = None
    ) -> list[NotificationRecord]:
        return await self._notifications.query_unread_notifications(user_id, limit, now)

    async def count_unread_notifications(self, user_id: int, now: datetime | None = None) -> int:
        return await self._notifications.count_unread_notifications(user_id, now)

    async def mark_notifications_read(self, notification_ids: Sequence[int], user_id: int) -> int:
        return await self._notifications.mark_notifications_read(notification_ids, user_id)

    async def mark_all_notifications_read(self, user_id: int) -> int:
        return await self._notifications.mark_all_notifications_read(user_id)

    async def mark_notifications_delivered(self, notification_ids: Sequence[int]) -> int:
        return await self._notifications.mark_notifications_delivered(notification_ids)

    async def delete_notification(self, notification_id: int, user_id: int) -> bool:
        return await self._notifications.delete_notification(notification_id, user_id)

    async def delete_expired_notifications(self, now: datetime | None = None) -> int:
        return await self._notifications.delete_expired_notifications(now)

    # Submissions

    async def find_submission(self, submission_id: int) -> SubmissionInfo | None:
        return await self._submissions.find_submission(submission_id)

    async def find_submissions(self, submission_ids: Sequence[int]) -> dict[int, SubmissionInfo]:
        return await self._submissions.find_submissions(submission_ids)

    async def update_assignment_submission(self, update: SubmissionUpdate) -> SubmissionInfo:
        return await self._submissions.update_assignment_submission(update)

    async def update_assignment_submissions(self, updates: Sequence[SubmissionUpdate]) -> list[SubmissionInfo]:
        return await self._submissions.update_assignment_submissions(updates)

    async def list_pending_submissions(
        self, instructor_id: int, course_id: int | None = None, limit: int = 100
    ) -> list[SubmissionInfo]:
        return await self._submissions.list_pending_submissions(instructor_id, course_id, limit)

    async def list_student_submissions(self, student_id: int, course_id: int) -> list[SubmissionInfo]:
        return await self._submissions.list_student_submissions(student_id, course_id)
