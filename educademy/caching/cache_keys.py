"""
Cache key construction for instructor views.

Every key has the form ``instructor:<instructorId>:<queryKind>:<params...>``
so all views of one family share the prefix ``instructor:<id>:<queryKind>``.
"""

from enum import StrEnum


class QueryKind(StrEnum):
    """Families of cached instructor views."""

    PENDING = "pending"
    STUDENT = "student"
    STUDENTS = "students"
    ANALYTICS = "analytics"


def family_prefix(instructor_id: int, query_kind_prefix: str) -> str:
    """Prefix shared by every key in a view family."""
    return f"instructor:{instructor_id}:{query_kind_prefix}"


def pending_grading_key(instructor_id: int, course_id: int | None, limit: int) -> str:
    return f"instructor:{instructor_id}:pending-grading:{course_id if course_id is not None else 'all'}:{limit}"


def student_detail_key(instructor_id: int, student_id: int, course_id: int) -> str:
    return f"instructor:{instructor_id}:student:{student_id}:course:{course_id}:detail"
