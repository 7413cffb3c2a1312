"""Tests for the enrollment write path."""

# pylint: disable=redefined-outer-name
# Justification: pytest fixtures redefine names

import pytest

from educademy.caching.cache_service import CacheStore
from educademy.caching.invalidation import CacheInvalidationCoordinator
from educademy.exceptions import ConflictError, ResourceNotFoundError
from educademy.models.notification import NotificationType
from educademy.models.user import UserRole
from educademy.realtime.events import ServerEvent
from educademy.realtime.notification_dispatcher import NotificationDispatcher
from educademy.realtime.session_registry import SessionRegistry
from educademy.services.enrollment_service import EnrollmentService
from educademy.tests.fixtures.fakes import (
    COURSE_ID,
    INSTRUCTOR_ID,
    OTHER_STUDENT_ID,
    STUDENT_ID,
    InMemoryPersistence,
    RecordingAuditSink,
    RecordingTransport,
    make_session,
)


@pytest.fixture
def enrollment_service(
    persistence: InMemoryPersistence,
    dispatcher: NotificationDispatcher,
    invalidator: CacheInvalidationCoordinator,
    audit: RecordingAuditSink,
) -> EnrollmentService:
    return EnrollmentService(persistence, dispatcher, invalidator, audit)


class TestEnrollStudent:
    """Test enroll_student."""

    @pytest.mark.asyncio
    async def test_enrollment_notifies_online_instructor(
        self, enrollment_service: EnrollmentService, registry: SessionRegistry, persistence: InMemoryPersistence
    ):
        transport = RecordingTransport()
        await registry.register(make_session("c1", INSTRUCTOR_ID, UserRole.INSTRUCTOR, transport=transport))

        enrollment = await enrollment_service.enroll_student(OTHER_STUDENT_ID, COURSE_ID)

        assert enrollment.student_id == OTHER_STUDENT_ID
        assert await persistence.is_enrolled(OTHER_STUDENT_ID, COURSE_ID)
        [event] = transport.events(ServerEvent.NEW_STUDENT_ENROLLED)
        assert event["data"]["type"] == NotificationType.NEW_STUDENT_ENROLLED
        assert event["data"]["data"]["studentName"] == "Alan Turing"
        assert event["data"]["data"]["courseName"] == "Intro to Testing"

    @pytest.mark.asyncio
    async def test_offline_instructor_gets_queued_notification(
        self, enrollment_service: EnrollmentService, persistence: InMemoryPersistence
    ):
        await enrollment_service.enroll_student(OTHER_STUDENT_ID, COURSE_ID)

        [note] = await persistence.query_unread_notifications(INSTRUCTOR_ID)
        assert note.title == "New Student Enrolled"

    @pytest.mark.asyncio
    async def test_enrollment_invalidates_student_views(
        self, enrollment_service: EnrollmentService, cache_store: CacheStore
    ):
        await cache_store.set(f"instructor:{INSTRUCTOR_ID}:students:{COURSE_ID}", ["cached"])
        await cache_store.set(f"instructor:{INSTRUCTOR_ID}:analytics:{COURSE_ID}", {"cached": True})
        await cache_store.set(f"instructor:{INSTRUCTOR_ID}:pending-grading:all:100", {"count": 0})

        await enrollment_service.enroll_student(OTHER_STUDENT_ID, COURSE_ID)

        assert await cache_store.get(f"instructor:{INSTRUCTOR_ID}:students:{COURSE_ID}") is None
        assert await cache_store.get(f"instructor:{INSTRUCTOR_ID}:analytics:{COURSE_ID}") is None
        assert await cache_store.get(f"instructor:{INSTRUCTOR_ID}:pending-grading:all:100") == {"count": 0}

    @pytest.mark.asyncio
    async def test_duplicate_enrollment_conflicts(
        self, enrollment_service: EnrollmentService, persistence: InMemoryPersistence
    ):
        with pytest.raises(ConflictError):
            await enrollment_service.enroll_student(STUDENT_ID, COURSE_ID)

        assert persistence.notifications == {}

    @pytest.mark.asyncio
    async def test_unknown_course(self, enrollment_service: EnrollmentService):
        with pytest.raises(ResourceNotFoundError):
            await enrollment_service.enroll_student(OTHER_STUDENT_ID, 999)

    @pytest.mark.asyncio
    async def test_unknown_student(self, enrollment_service: EnrollmentService):
        with pytest.raises(ResourceNotFoundError):
            await enrollment_service.enroll_student(999, COURSE_ID)

    @pytest.mark.asyncio
    async def test_audit_entry(self, enrollment_service: EnrollmentService, audit: RecordingAuditSink):
        await enrollment_service.enroll_student(OTHER_STUDENT_ID, COURSE_ID)

        assert [e["operation"] for e in audit.business_events] == ["ENROLL_STUDENT"]
