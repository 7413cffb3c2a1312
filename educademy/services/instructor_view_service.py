"""
Cached instructor read path.

Instructor dashboards read through the cache. Entries are keyed under
``instructor:<id>:<family>`` so the write paths can drop a whole family at
once through the invalidation coordinator.
"""

from typing import Any

from ..caching.cache_keys import pending_grading_key, student_detail_key
from ..exceptions import ForbiddenError, ResourceNotFoundError
from ..models.assignment import SubmissionStatus
from ..persistence.protocols import CacheStoreProtocol, PersistenceProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import create_error_context
from .grading_service import grade_percentage

logger = get_logger(__name__)


class InstructorViewService:
    """Read-through cache over the instructor's grading views."""

    def __init__(self, persistence: PersistenceProtocol, cache_store: CacheStoreProtocol, ttl_seconds: int | None = None):
        self._persistence = persistence
        self._cache = cache_store
        self._ttl_seconds = ttl_seconds

    async def _read_through(self, key: str, load) -> dict[str, Any]:
        """
        Serve key from the cache, or load it and cache the result.

        The invalidation generation is read before ``load`` so that a write
        committing while the load is in flight keeps its stale result out of
        the cache.
        """
        generation: int | None = None
        try:
            cached = await self._cache.get(key)
            generation = await self._cache.generation(key)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: a failing cache degrades to a direct read
            logger.warning("Cache read failed", cache_key=key, error=str(e))
            cached = None
        if cached is not None:
            return {"data": cached, "meta": {"cached": True}}

        data = await load()
        if generation is None:
            return {"data": data, "meta": {"cached": False}}
        try:
            await self._cache.set(key, data, self._ttl_seconds, expected_generation=generation)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: a failing cache degrades to a direct read
            logger.warning("Cache write failed", cache_key=key, error=str(e))
        return {"data": data, "meta": {"cached": False}}

    async def pending_grading(self, instructor_id: int, course_id: int | None = None, limit: int = 100) -> dict[str, Any]:
        """
        Submissions awaiting grading in the instructor's courses, oldest first.

        Returns:
            dict: ``{"data": {"submissions", "count"}, "meta": {"cached"}}``
        """

        async def load() -> dict[str, Any]:
            if course_id is not None:
                await self._require_owner(instructor_id, course_id, "pending_grading")
            submissions = await self._persistence.list_pending_submissions(instructor_id, course_id, limit)
            return {"submissions": [s.to_wire() for s in submissions], "count": len(submissions)}

        return await self._read_through(pending_grading_key(instructor_id, course_id, limit), load)

    async def student_detail(self, instructor_id: int, student_id: int, course_id: int) -> dict[str, Any]:
        """
        One student's submissions in one of the instructor's courses, with a summary.

        Raises:
            ResourceNotFoundError: If the course or the student does not exist
            ForbiddenError: If the instructor does not own the course
        """

        async def load() -> dict[str, Any]:
            course = await self._require_owner(instructor_id, course_id, "student_detail")
            student = await self._persistence.find_user(student_id)
            if student is None:
                raise ResourceNotFoundError(
                    f"User {student_id} not found",
                    resource_type="user",
                    resource_id=str(student_id),
                    user_friendly="Student not found",
                )
            submissions = await self._persistence.list_student_submissions(student_id, course_id)
            graded = [s for s in submissions if s.status == SubmissionStatus.GRADED and s.grade is not None]
            average = (
                round(sum(grade_percentage(s.grade, s.total_points) for s in graded) / len(graded)) if graded else None
            )
            return {
                "student": {"id": student.id, "name": student.display_name, "email": student.email},
                "course": {"id": course.id, "title": course.title},
                "submissions": [s.to_wire() for s in submissions],
                "summary": {
                    "totalSubmissions": len(submissions),
                    "graded": len(graded),
                    "pending": sum(1 for s in submissions if s.status == SubmissionStatus.SUBMITTED),
                    "averagePercentage": average,
                },
            }

        return await self._read_through(student_detail_key(instructor_id, student_id, course_id), load)

    async def _require_owner(self, instructor_id: int, course_id: int, operation: str):
        course = await self._persistence.find_course(course_id)
        context = create_error_context(operation=operation, user_id=instructor_id, course_id=course_id)
        if course is None:
            raise ResourceNotFoundError(
                f"Course {course_id} not found",
                context=context,
                resource_type="course",
                resource_id=str(course_id),
                user_friendly="Course not found",
            )
        if course.instructor_id != instructor_id:
            raise ForbiddenError(
                f"Instructor {instructor_id} does not own course {course_id}",
                context=context,
                user_friendly="You can only view your own courses",
            )
        return course
