"""Assignment and submission models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utc_now_naive


class SubmissionStatus(StrEnum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"
    RESUBMIT_REQUESTED = "RESUBMIT_REQUESTED"


class Assignment(Base):
    """Gradable assignment belonging to a course."""

    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(length=255), nullable=False)
    total_points: Mapped[float] = mapped_column(Float, nullable=False, default=100)

    course = relationship("Course", lazy="joined")


class AssignmentSubmission(Base):
    """A student's submission for an assignment."""

    __tablename__ = "assignment_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(ForeignKey("assignments.id"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(length=30), nullable=False, default=SubmissionStatus.SUBMITTED.value)
    grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False, default=utc_now_naive)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    graded_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    assignment = relationship("Assignment", lazy="joined")
    student = relationship("User", foreign_keys=[student_id], lazy="joined")
