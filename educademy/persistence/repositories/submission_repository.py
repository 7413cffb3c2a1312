"""
Assignment submission repository for async persistence operations.

Submissions are always returned joined with their assignment, course and
student so the grading path has everything it needs in one read.
"""

from collections.abc import Sequence
from typing import NoReturn

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...exceptions import DatabaseError, InvalidStateError, ResourceNotFoundError
from ...models.assignment import Assignment, AssignmentSubmission, SubmissionStatus
from ...models.course import Course
from ...schemas.grading import SubmissionInfo, SubmissionUpdate
from ...structured_logging.enhanced_logging_config import get_logger
from ...utils.error_logging import create_error_context, log_and_raise

logger = get_logger(__name__)


def _to_info(submission: AssignmentSubmission) -> SubmissionInfo:
    assignment = submission.assignment
    course = assignment.course
    return SubmissionInfo(
        submission_id=submission.id,
        assignment_id=assignment.id,
        assignment_title=assignment.title,
        course_id=course.id,
        course_name=course.title,
        instructor_id=course.instructor_id,
        student_id=submission.student_id,
        student_name=submission.student.display_name if submission.student else "",
        status=SubmissionStatus(submission.status),
        grade=submission.grade,
        total_points=assignment.total_points,
        feedback=submission.feedback,
        submitted_at=submission.submitted_at,
        graded_at=submission.graded_at,
        graded_by=submission.graded_by,
    )


class SubmissionRepository:
    """Repository for assignment submissions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._logger = get_logger(__name__)

    async def find_submission(self, submission_id: int) -> SubmissionInfo | None:
        found = await self.find_submissions([submission_id])
        return found.get(submission_id)

    async def find_submissions(self, submission_ids: Sequence[int]) -> dict[int, SubmissionInfo]:
        """
        Get submissions by id.

        Args:
            submission_ids: Ids to look up

        Returns:
            dict[int, SubmissionInfo]: Found submissions keyed by id
        """
        if not submission_ids:
            return {}
        context = create_error_context(operation="find_submissions")
        try:
            async with self._session_maker() as session:
                stmt = select(AssignmentSubmission).where(AssignmentSubmission.id.in_(list(submission_ids)))
                result = await session.execute(stmt)
                return {s.id: _to_info(s) for s in result.unique().scalars().all()}
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error retrieving submissions: {e}",
                context=context,
                details={"submission_ids": list(submission_ids), "error": str(e)},
                operation="find_submissions",
                table="assignment_submissions",
            )

    async def update_assignment_submission(self, submission_update: SubmissionUpdate) -> SubmissionInfo:
        updated = await self.update_assignment_submissions([submission_update])
        return updated[0]

    async def update_assignment_submissions(self, updates: Sequence[SubmissionUpdate]) -> list[SubmissionInfo]:
        """
        Persist grades for one or more submissions in a single transaction.

        Each row is written with a conditional ``UPDATE ... WHERE status =
        'SUBMITTED'``, so of two concurrent graders only the first to commit
        changes the row; the other matches nothing and its whole transaction
        rolls back. Either every update is committed or none is.

        Raises:
            ResourceNotFoundError: If a submission disappeared before the write
            InvalidStateError: If a submission was graded since it was validated
            DatabaseError: If database operation fails
        """
        context = create_error_context(operation="update_assignment_submissions")
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    for u in updates:
                        result = await session.execute(
                            update(AssignmentSubmission)
                            .where(
                                AssignmentSubmission.id == u.submission_id,
                                AssignmentSubmission.status == SubmissionStatus.SUBMITTED.value,
                            )
                            .values(
                                grade=u.grade,
                                feedback=u.feedback,
                                status=u.status.value,
                                graded_at=u.graded_at,
                                graded_by=u.graded_by,
                            )
                            .execution_options(synchronize_session=False)
                        )
                        if result.rowcount != 1:
                            await self._raise_not_gradable(session, u.submission_id, context)
                    ids = [u.submission_id for u in updates]
                    rows = await session.execute(select(AssignmentSubmission).where(AssignmentSubmission.id.in_(ids)))
                    by_id = {s.id: s for s in rows.unique().scalars().all()}
                    infos = [_to_info(by_id[u.submission_id]) for u in updates]
                self._logger.info("Submissions graded", submission_count=len(infos))
                return infos
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error updating submissions: {e}",
                context=context,
                details={"error": str(e)},
                operation="update_assignment_submissions",
                table="assignment_submissions",
            )

    @staticmethod
    async def _raise_not_gradable(session: AsyncSession, submission_id: int, context) -> NoReturn:
        current = await session.scalar(
            select(AssignmentSubmission.status).where(AssignmentSubmission.id == submission_id)
        )
        if current is None:
            raise ResourceNotFoundError(
                f"Submission {submission_id} not found",
                context=context,
                resource_type="submission",
                resource_id=str(submission_id),
                user_friendly="Submission not found",
            )
        raise InvalidStateError(
            f"Submission {submission_id} is {current}, expected SUBMITTED",
            context=context,
            current_state=str(current),
            user_friendly="This submission is not awaiting grading",
        )

    async def list_pending_submissions(
        self, instructor_id: int, course_id: int | None = None, limit: int = 100
    ) -> list[SubmissionInfo]:
        context = create_error_context(operation="list_pending_submissions", user_id=instructor_id)
        try:
            async with self._session_maker() as session:
                stmt = (
                    select(AssignmentSubmission)
                    .join(Assignment, AssignmentSubmission.assignment_id == Assignment.id)
                    .join(Course, Assignment.course_id == Course.id)
                    .where(
                        Course.instructor_id == instructor_id,
                        AssignmentSubmission.status == SubmissionStatus.SUBMITTED.value,
                    )
                    .order_by(AssignmentSubmission.submitted_at.asc(), AssignmentSubmission.id.asc())
                    .limit(limit)
                )
                if course_id is not None:
                    stmt = stmt.where(Course.id == course_id)
                result = await session.execute(stmt)
                return [_to_info(s) for s in result.unique().scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error listing pending submissions: {e}",
                context=context,
                details={"instructor_id": instructor_id, "error": str(e)},
                operation="list_pending_submissions",
                table="assignment_submissions",
            )

    async def list_student_submissions(self, student_id: int, course_id: int) -> list[SubmissionInfo]:
        context = create_error_context(operation="list_student_submissions", user_id=student_id)
        try:
            async with self._session_maker() as session:
                stmt = (
                    select(AssignmentSubmission)
                    .join(Assignment, AssignmentSubmission.assignment_id == Assignment.id)
                    .where(AssignmentSubmission.student_id == student_id, Assignment.course_id == course_id)
                    .order_by(AssignmentSubmission.submitted_at.desc(), AssignmentSubmission.id.desc())
                )
                result = await session.execute(stmt)
                return [_to_info(s) for s in result.unique().scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error listing student submissions: {e}",
                context=context,
                details={"student_id": student_id, "course_id": course_id, "error": str(e)},
                operation="list_student_submissions",
                table="assignment_submissions",
            )
