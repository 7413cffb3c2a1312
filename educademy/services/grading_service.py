"""
Grading write path.

Grading a submission persists the grade, invalidates the instructor views it
changes, creates a durable notification for the student and pushes it live
when the student is online. The steps are independent: the grade stays
committed even if a later step fails, and only the notification step is
guaranteed to surface its failure to the caller.
"""

import math
from collections.abc import Sequence
from typing import Any

from ..caching.cache_keys import QueryKind
from ..caching.invalidation import CacheInvalidationCoordinator
from ..exceptions import ForbiddenError, InvalidStateError, OutOfRangeError, ResourceNotFoundError, ValidationError
from ..models.assignment import SubmissionStatus
from ..models.base import utc_now_naive
from ..models.notification import NotificationPriority, NotificationType
from ..persistence.protocols import AuditSinkProtocol, PersistenceProtocol
from ..realtime.notification_dispatcher import NotificationDispatcher
from ..schemas.grading import BulkGradeResult, GradeRequest, GradeResult, SubmissionInfo, SubmissionUpdate
from ..schemas.notification import NotificationDraft
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import create_error_context

logger = get_logger(__name__)

GRADING_STATUSES = (SubmissionStatus.GRADED, SubmissionStatus.RESUBMIT_REQUESTED)
INVALIDATED_FAMILIES = (QueryKind.PENDING, QueryKind.STUDENT)


def grade_percentage(grade: float, total_points: float) -> int:
    if total_points <= 0:
        return 0
    return round(grade / total_points * 100)


def build_grade_notification(info: SubmissionInfo) -> NotificationDraft:
    """Notification content for a freshly graded submission."""
    grade = info.grade if info.grade is not None else 0.0
    percentage = grade_percentage(grade, info.total_points)
    resubmit = info.status == SubmissionStatus.RESUBMIT_REQUESTED
    if resubmit:
        title = "Resubmission Requested"
        message = (
            f'Your instructor has requested changes to your assignment "{info.assignment_title}". '
            "Please review the feedback and resubmit."
        )
    else:
        title = "Assignment Graded"
        message = (
            f'Your assignment "{info.assignment_title}" has been graded. '
            f"You received {_points(grade)}/{_points(info.total_points)} points ({percentage}%)."
        )
    return NotificationDraft(
        type=NotificationType.RESUBMIT_REQUESTED if resubmit else NotificationType.ASSIGNMENT_GRADED,
        title=title,
        message=message,
        priority=NotificationPriority.HIGH if resubmit else NotificationPriority.NORMAL,
        action_url=f"/courses/{info.course_id}/assignments/{info.assignment_id}/submissions/{info.submission_id}",
        data={
            "submissionId": info.submission_id,
            "assignmentId": info.assignment_id,
            "assignmentTitle": info.assignment_title,
            "courseId": info.course_id,
            "courseName": info.course_name,
            "grade": grade,
            "totalPoints": info.total_points,
            "percentage": percentage,
            "feedback": info.feedback,
            "status": str(info.status),
        },
    )


def _points(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _clean_feedback(feedback: str | None) -> str | None:
    if feedback is None:
        return None
    return feedback.strip() or None


class GradingService:
    """Grades submissions on behalf of instructors."""

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

    def _validate(self, instructor_id: int, request: GradeRequest, info: SubmissionInfo | None) -> SubmissionInfo:
        """
        Check one grading request against its submission.

        Checks run in a fixed order: existence, ownership, state, range, then
        the request's own status and feedback.

        Raises:
            ResourceNotFoundError: If the submission does not exist
            ForbiddenError: If the instructor does not own the course
            InvalidStateError: If the submission is not awaiting grading
            OutOfRangeError: If the grade is outside 0..total_points
            ValidationError: If the status is not a grading outcome, or a
                resubmission is requested without feedback
        """
        context = create_error_context(
            operation="grade_assignment", user_id=instructor_id, submission_id=request.submission_id
        )
        if info is None:
            raise ResourceNotFoundError(
                f"Submission {request.submission_id} not found",
                context=context,
                resource_type="submission",
                resource_id=str(request.submission_id),
                user_friendly="Submission not found",
            )
        if info.instructor_id != instructor_id:
            raise ForbiddenError(
                f"Instructor {instructor_id} does not own course {info.course_id}",
                context=context,
                user_friendly="You can only grade submissions for your own courses",
            )
        if info.status != SubmissionStatus.SUBMITTED:
            raise InvalidStateError(
                f"Submission {info.submission_id} is {info.status}, expected SUBMITTED",
                context=context,
                current_state=str(info.status),
                user_friendly="This submission is not awaiting grading",
            )
        if not math.isfinite(request.grade) or request.grade < 0 or request.grade > info.total_points:
            raise OutOfRangeError(
                f"Grade {request.grade} outside 0..{info.total_points}",
                context=context,
                field="grade",
                value=request.grade,
                user_friendly=f"Grade must be between 0 and {_points(info.total_points)}",
            )
        if request.status not in GRADING_STATUSES:
            raise ValidationError(
                f"Status {request.status} is not a grading outcome",
                context=context,
                field="status",
                value=request.status,
                user_friendly="Status must be one of: GRADED, RESUBMIT_REQUESTED",
            )
        if request.status == SubmissionStatus.RESUBMIT_REQUESTED and not _clean_feedback(request.feedback):
            raise ValidationError(
                "Feedback is required when requesting resubmission",
                context=context,
                field="feedback",
                user_friendly="Feedback is required when requesting resubmission",
            )
        return info

    @staticmethod
    def _to_update(instructor_id: int, request: GradeRequest) -> SubmissionUpdate:
        return SubmissionUpdate(
            submission_id=request.submission_id,
            grade=request.grade,
            feedback=_clean_feedback(request.feedback),
            status=request.status,
            graded_at=utc_now_naive(),
            graded_by=instructor_id,
        )

    async def _notify(self, info: SubmissionInfo) -> bool:
        """Create and dispatch the student's notification. Returns whether it reached a live device."""
        draft = build_grade_notification(info)
        record = await self._dispatcher.send_to_user(info.student_id, draft.type, draft)
        return record.is_delivered

    def _audit_grade(self, instructor_id: int, info: SubmissionInfo, extra: dict[str, Any] | None = None) -> None:
        try:
            self._audit.log_business_operation(
                "GRADE_ASSIGNMENT",
                "assignment_submission",
                info.submission_id,
                "SUCCESS",
                {
                    "instructor_id": instructor_id,
                    "student_id": info.student_id,
                    "course_id": info.course_id,
                    "grade": info.grade,
                    "status": str(info.status),
                    **(extra or {}),
                },
            )
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: audit failure must not undo a committed grade
            logger.warning("Grading audit failed", submission_id=info.submission_id, error=str(e))

    async def grade_assignment(
        self,
        instructor_id: int,
        submission_id: int,
        grade: float,
        feedback: str | None = None,
        status: SubmissionStatus = SubmissionStatus.GRADED,
    ) -> GradeResult:
        """
        Grade one submission.

        Args:
            instructor_id: Grading instructor
            submission_id: Submission to grade
            grade: Points awarded
            feedback: Optional feedback, required for a resubmission request
            status: GRADED or RESUBMIT_REQUESTED

        Returns:
            GradeResult: The persisted grade

        Raises:
            ResourceNotFoundError, ForbiddenError, InvalidStateError,
            OutOfRangeError, ValidationError: When a precondition fails;
                nothing is written in that case
            DatabaseError: If the grade or the notification cannot be persisted
        """
        request = GradeRequest(submission_id=submission_id, grade=grade, feedback=feedback, status=status)
        info = self._validate(instructor_id, request, await self._persistence.find_submission(submission_id))

        updated = await self._persistence.update_assignment_submission(self._to_update(instructor_id, request))
        await self._invalidator.invalidate_many(info.instructor_id, INVALIDATED_FAMILIES)

        delivered = await self._notify(updated)
        self._audit_grade(instructor_id, updated)
        logger.info(
            "Assignment graded",
            instructor_id=instructor_id,
            submission_id=submission_id,
            student_id=updated.student_id,
            status=str(updated.status),
            notification_delivered=delivered,
        )
        return GradeResult(
            submission_id=updated.submission_id,
            grade=updated.grade if updated.grade is not None else request.grade,
            feedback=updated.feedback,
            graded_at=updated.graded_at or utc_now_naive(),
            status=updated.status,
            notification_delivered=delivered,
        )

    async def bulk_grade_assignments(self, instructor_id: int, items: Sequence[GradeRequest]) -> BulkGradeResult:
        """
        Grade several submissions as one unit.

        Every item is validated before anything is written; the first failing
        item aborts the batch with no change. The updates commit in one
        transaction. Notification failures are logged and reported per
        submission and never fail the batch.

        Raises:
            ValidationError: If the batch is empty or repeats a submission
            ResourceNotFoundError, ForbiddenError, InvalidStateError,
            OutOfRangeError: For the first item failing validation
        """
        if not items:
            raise ValidationError(
                "Bulk grading requires at least one grade",
                field="grades",
                user_friendly="At least one grade is required",
            )
        ids = [item.submission_id for item in items]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate submission ids in batch: {duplicates}",
                field="grades",
                value=duplicates,
                user_friendly="Each submission may appear only once per batch",
            )

        found = await self._persistence.find_submissions(ids)
        infos = [self._validate(instructor_id, item, found.get(item.submission_id)) for item in items]

        updated = await self._persistence.update_assignment_submissions(
            [self._to_update(instructor_id, item) for item in items]
        )
        for owner in dict.fromkeys(info.instructor_id for info in infos):
            await self._invalidator.invalidate_many(owner, INVALIDATED_FAMILIES)

        results: list[GradeResult] = []
        failures: list[int] = []
        for info in updated:
            delivered = False
            try:
                delivered = await self._notify(info)
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: per-student notification failures are reported, not raised
                failures.append(info.submission_id)
                logger.error(
                    "Grade notification failed",
                    submission_id=info.submission_id,
                    student_id=info.student_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            self._audit_grade(instructor_id, info, {"bulk": True})
            results.append(
                GradeResult(
                    submission_id=info.submission_id,
                    grade=info.grade if info.grade is not None else 0.0,
                    feedback=info.feedback,
                    graded_at=info.graded_at or utc_now_naive(),
                    status=info.status,
                    notification_delivered=delivered,
                )
            )

        logger.info(
            "Bulk grading completed",
            instructor_id=instructor_id,
            graded=len(results),
            notification_failures=len(failures),
        )
        return BulkGradeResult(graded=results, notification_failures=failures)
