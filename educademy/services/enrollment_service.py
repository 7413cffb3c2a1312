"""Enrollment write path."""

from ..caching.cache_keys import QueryKind
from ..caching.invalidation import CacheInvalidationCoordinator
from ..exceptions import ResourceNotFoundError
from ..models.notification import NotificationPriority, NotificationType
from ..persistence.protocols import AuditSinkProtocol, PersistenceProtocol
from ..realtime.events import ServerEvent
from ..realtime.notification_dispatcher import NotificationDispatcher
from ..schemas.notification import NotificationDraft
from ..schemas.user import EnrollmentRecord
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import create_error_context

logger = get_logger(__name__)

INVALIDATED_FAMILIES = (QueryKind.STUDENTS, QueryKind.STUDENT, QueryKind.ANALYTICS)


class EnrollmentService:
    """Enrolls students and tells the course's instructor."""

    def __init__(
        self,
        persistence: PersistenceProtocol,
        dispatcher: NotificationDispatcher,
        invalidator: CacheInvalidationCoordinator,
        audit: AuditSinkProtocol,
    ):
        self._persistence = persistence
        self._dispatcher = dispatcher
        self._invalidator = invalidator
        self._audit = audit

    async def enroll_student(self, student_id: int, course_id: int) -> EnrollmentRecord:
        """
        Enroll a student in a course.

        Returns:
            EnrollmentRecord: The new enrollment

        Raises:
            ResourceNotFoundError: If the course or the student does not exist
            ConflictError: If the student is already enrolled
            DatabaseError: If the enrollment or the instructor's notification
                cannot be persisted
        """
        context = create_error_context(operation="enroll_student", user_id=student_id, course_id=course_id)
        course = await self._persistence.find_course(course_id)
        if course is None:
            raise ResourceNotFoundError(
                f"Course {course_id} not found",
                context=context,
                resource_type="course",
                resource_id=str(course_id),
                user_friendly="Course not found",
            )
        student = await self._persistence.find_user(student_id)
        if student is None:
            raise ResourceNotFoundError(
                f"User {student_id} not found",
                context=context,
                resource_type="user",
                resource_id=str(student_id),
                user_friendly="Student not found",
            )

        enrollment = await self._persistence.create_enrollment(student_id, course_id)
        await self._invalidator.invalidate_many(course.instructor_id, INVALIDATED_FAMILIES)

        draft = NotificationDraft(
            type=NotificationType.NEW_STUDENT_ENROLLED,
            title="New Student Enrolled",
            message=f'{student.display_name} enrolled in "{course.title}".',
            priority=NotificationPriority.NORMAL,
            action_url=f"/instructor/courses/{course.id}/students",
            data={
                "studentId": student.id,
                "studentName": student.display_name,
                "studentEmail": student.email,
                "courseId": course.id,
                "courseName": course.title,
                "enrolledAt": enrollment.enrolled_at.isoformat(),
            },
        )
        await self._dispatcher.send_to_user(course.instructor_id, ServerEvent.NEW_STUDENT_ENROLLED, draft)

        try:
            self._audit.log_business_operation(
                "ENROLL_STUDENT",
                "enrollment",
                enrollment.id,
                "SUCCESS",
                {"student_id": student_id, "course_id": course_id, "instructor_id": course.instructor_id},
            )
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: audit failure must not undo a committed enrollment
            logger.warning("Enrollment audit failed", enrollment_id=enrollment.id, error=str(e))

        logger.info("Student enrolled", student_id=student_id, course_id=course_id, enrollment_id=enrollment.id)
        return enrollment
