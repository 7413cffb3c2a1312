"""
User, course and enrollment repository for async persistence operations.

This module also answers the authorization questions asked by room
membership: enrollment and course ownership.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...exceptions import ConflictError, DatabaseError
from ...models.course import Course, Enrollment
from ...models.user import User
from ...schemas.user import CourseRecord, EnrollmentRecord, UserRecord
from ...structured_logging.enhanced_logging_config import get_logger
from ...utils.error_logging import create_error_context, log_and_raise

logger = get_logger(__name__)


class UserRepository:
    """
    Repository for users, courses and enrollments.

    Handles lookups for authentication and authorization.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._logger = get_logger(__name__)

    async def find_user(self, user_id: int) -> UserRecord | None:
        """
        Get a user by ID.

        Args:
            user_id: User ID

        Returns:
            UserRecord | None: The user, or None if not found

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(operation="find_user", user_id=user_id)
        try:
            async with self._session_maker() as session:
                user = await session.get(User, user_id)
                return UserRecord.model_validate(user) if user else None
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error retrieving user '{user_id}': {e}",
                context=context,
                details={"user_id": user_id, "error": str(e)},
                user_friendly="Failed to retrieve user",
                operation="find_user",
                table="users",
            )

    async def find_course(self, course_id: int) -> CourseRecord | None:
        context = create_error_context(operation="find_course")
        try:
            async with self._session_maker() as session:
                course = await session.get(Course, course_id)
                return CourseRecord.model_validate(course) if course else None
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error retrieving course '{course_id}': {e}",
                context=context,
                details={"course_id": course_id, "error": str(e)},
                user_friendly="Failed to retrieve course",
                operation="find_course",
                table="courses",
            )

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        context = create_error_context(operation="is_enrolled", user_id=user_id)
        try:
            async with self._session_maker() as session:
                stmt = select(Enrollment.id).where(Enrollment.student_id == user_id, Enrollment.course_id == course_id)
                result = await session.execute(stmt)
                return result.first() is not None
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error checking enrollment: {e}",
                context=context,
                details={"course_id": course_id, "error": str(e)},
                operation="is_enrolled",
                table="enrollments",
            )

    async def is_course_owner(self, user_id: int, course_id: int) -> bool:
        course = await self.find_course(course_id)
        return course is not None and course.instructor_id == user_id

    async def create_enrollment(self, student_id: int, course_id: int) -> EnrollmentRecord:
        """
        Enroll a student in a course.

        Raises:
            ConflictError: If the student is already enrolled
            DatabaseError: If database operation fails
        """
        context = create_error_context(operation="create_enrollment", user_id=student_id)
        try:
            async with self._session_maker() as session:
                enrollment = Enrollment(student_id=student_id, course_id=course_id)
                session.add(enrollment)
                await session.commit()
                await session.refresh(enrollment)
                self._logger.info("Enrollment created", student_id=student_id, course_id=course_id)
                return EnrollmentRecord.model_validate(enrollment)
        except IntegrityError as e:
            log_and_raise(
                ConflictError,
                f"Student {student_id} is already enrolled in course {course_id}",
                context=context,
                details={"course_id": course_id, "error": str(e)},
                user_friendly="Student is already enrolled in this course",
            )
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error creating enrollment: {e}",
                context=context,
                details={"course_id": course_id, "error": str(e)},
                operation="create_enrollment",
                table="enrollments",
            )
