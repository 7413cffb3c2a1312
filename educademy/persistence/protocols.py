"""
Persistence protocols for the Educademy realtime core.

Explicit typing.Protocol definitions for the collaborators the realtime core
depends on. Services and the container depend on these protocols rather than
concrete classes, so tests can substitute in-memory doubles.
"""

# pylint: disable=unnecessary-ellipsis  # Reason: Protocol method bodies use ... per typing.Protocol convention

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..schemas.grading import SubmissionInfo, SubmissionUpdate
    from ..schemas.notification import NotificationDraft, NotificationRecord
    from ..schemas.user import CourseRecord, DeviceSessionRecord, EnrollmentRecord, UserRecord


class PersistenceProtocol(Protocol):
    """
    Storage operations used by the realtime core and the grading write path.

    Implemented by educademy.persistence.async_persistence.AsyncPersistenceLayer.
    """

    async def find_user(self, user_id: int) -> UserRecord | None:
        """Get a user by id."""
        ...

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
        """Record a newly connected device."""
        ...

    async def end_device_session(self, session_id: int, reason: str) -> None:
        """Mark a device session closed."""
        ...

    async def create_notification(self, user_id: int, draft: NotificationDraft) -> NotificationRecord:
        """Persist a notification for one user."""
        ...

    async def query_unread_notifications(
        self, user_id: int, limit: int | None = None, now: datetime | None = None
    ) -> list[NotificationRecord]:
        """Unread, unexpired notifications, newest first, ties broken by id descending."""
        ...

    async def count_unread_notifications(self, user_id: int, now: datetime | None = None) -> int:
        """Count unread, unexpired notifications."""
        ...

    async def mark_notifications_read(self, notification_ids: Sequence[int], user_id: int) -> int:
        """Mark the caller's listed notifications read. Returns the number newly marked."""
        ...

    async def mark_all_notifications_read(self, user_id: int) -> int:
        """Mark all of the caller's notifications read. Returns the number newly marked."""
        ...

    async def mark_notifications_delivered(self, notification_ids: Sequence[int]) -> int:
        """Flag notifications as delivered to at least one device."""
        ...

    async def delete_notification(self, notification_id: int, user_id: int) -> bool:
        """Delete one of the caller's notifications."""
        ...

    async def delete_expired_notifications(self, now: datetime | None = None) -> int:
        """Purge notifications whose expiry has passed."""
        ...

    async def find_submission(self, submission_id: int) -> SubmissionInfo | None:
        """Get a submission joined with assignment, course and student."""
        ...

    async def find_submissions(self, submission_ids: Sequence[int]) -> dict[int, SubmissionInfo]:
        """Get several submissions keyed by id; missing ids are absent."""
        ...

    async def update_assignment_submission(self, update: SubmissionUpdate) -> SubmissionInfo:
        """Persist a grade."""
        ...

    async def update_assignment_submissions(self, updates: Sequence[SubmissionUpdate]) -> list[SubmissionInfo]:
        """Persist several grades in one transaction."""
        ...

    async def list_pending_submissions(
        self, instructor_id: int, course_id: int | None = None, limit: int = 100
    ) -> list[SubmissionInfo]:
        """Submissions awaiting grading in the instructor's courses, oldest first."""
        ...

    async def list_student_submissions(self, student_id: int, course_id: int) -> list[SubmissionInfo]:
        """All submissions of one student in one course."""
        ...

    async def find_course(self, course_id: int) -> CourseRecord | None:
        """Get a course by id."""
        ...

    async def create_enrollment(self, student_id: int, course_id: int) -> EnrollmentRecord:
        """Enroll a student in a course."""
        ...


class AuthorizationOracleProtocol(Protocol):
    """Answers room-membership authorization questions."""

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        """Whether the user is enrolled in the course."""
        ...

    async def is_course_owner(self, user_id: int, course_id: int) -> bool:
        """Whether the user is the course's instructor."""
        ...


class CacheStoreProtocol(Protocol):
    """Key/value cache used by the instructor read path."""

    async def get(self, key: str) -> Any | None:
        """Get a cached value."""
        ...

    async def generation(self, key: str) -> int:
        """Invalidation generation covering key, read before a load."""
        ...

    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None, expected_generation: int | None = None
    ) -> bool:
        """Store a value unless the key was invalidated since expected_generation."""
        ...

    async def delete_by_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix. Returns the number removed."""
        ...


class AuditSinkProtocol(Protocol):
    """Destination for security and business audit events."""

    def log_security_event(
        self, kind: str, severity: Any, context: dict[str, Any] | None = None, subject_user_id: int | None = None
    ) -> None:
        """Record a security event."""
        ...

    def log_business_operation(
        self, operation: str, entity_type: str, entity_id: Any, outcome: str, context: dict[str, Any] | None = None
    ) -> None:
        """Record a business operation."""
        ...
