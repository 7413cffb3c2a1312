"""Grading records and request bodies."""

from datetime import datetime

from pydantic import Field

from ..models.assignment import SubmissionStatus
from .notification import CamelModel


class SubmissionInfo(CamelModel):
    """A submission joined with its assignment, course and student."""

    submission_id: int
    assignment_id: int
    assignment_title: str
    course_id: int
    course_name: str
    instructor_id: int
    student_id: int
    student_name: str
    status: SubmissionStatus
    grade: float | None = None
    total_points: float
    feedback: str | None = None
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    graded_by: int | None = None


class SubmissionUpdate(CamelModel):
    """Fields written when a submission is graded."""

    submission_id: int
    grade: float
    feedback: str | None
    status: SubmissionStatus
    graded_at: datetime
    graded_by: int


class GradeRequest(CamelModel):
    submission_id: int
    grade: float
    feedback: str | None = None
    status: SubmissionStatus = SubmissionStatus.GRADED


class BulkGradeRequest(CamelModel):
    grades: list[GradeRequest] = Field(min_length=1)


class GradeResult(CamelModel):
    submission_id: int
    grade: float
    feedback: str | None
    graded_at: datetime
    status: SubmissionStatus
    notification_delivered: bool = False


class BulkGradeResult(CamelModel):
    graded: list[GradeResult]
    notification_failures: list[int] = Field(default_factory=list)
