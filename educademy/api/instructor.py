"""
Instructor API endpoints.

Grading (single and bulk) and the cached grading dashboards. All routes
require an instructor token; course ownership is checked by the services.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_grading_service, get_instructor_view_service, require_instructor
from ..schemas.grading import BulkGradeRequest, GradeRequest
from ..schemas.user import UserRecord
from ..services.grading_service import GradingService
from ..services.instructor_view_service import InstructorViewService
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

instructor_router = APIRouter(prefix="/api/instructor", tags=["instructor"])


@instructor_router.post("/grade")
async def grade_submission(
    body: GradeRequest,
    current_user: UserRecord = Depends(require_instructor),
    grading_service: GradingService = Depends(get_grading_service),
) -> dict[str, Any]:
    """Grade one submission and notify the student."""
    result = await grading_service.grade_assignment(
        current_user.id, body.submission_id, body.grade, body.feedback, body.status
    )
    return {"success": True, "message": "Submission graded successfully", "data": result.to_wire()}


@instructor_router.post("/grade/bulk")
async def bulk_grade_submissions(
    body: BulkGradeRequest,
    current_user: UserRecord = Depends(require_instructor),
    grading_service: GradingService = Depends(get_grading_service),
) -> dict[str, Any]:
    """
    Grade several submissions as one unit.

    Either every grade is applied or, when any item fails validation, none.
    """
    result = await grading_service.bulk_grade_assignments(current_user.id, body.grades)
    return {
        "success": True,
        "message": f"{len(result.graded)} submissions graded successfully",
        "data": result.to_wire(),
    }


@instructor_router.get("/pending-grading")
async def get_pending_grading(
    course_id: int | None = Query(default=None, alias="courseId"),
    limit: int = Query(default=100, ge=1, le=500),
    current_user: UserRecord = Depends(require_instructor),
    view_service: InstructorViewService = Depends(get_instructor_view_service),
) -> dict[str, Any]:
    view = await view_service.pending_grading(current_user.id, course_id, limit)
    return {"success": True, **view}


@instructor_router.get("/students/{student_id}/courses/{course_id}")
async def get_student_detail(
    student_id: int,
    course_id: int,
    current_user: UserRecord = Depends(require_instructor),
    view_service: InstructorViewService = Depends(get_instructor_view_service),
) -> dict[str, Any]:
    view = await view_service.student_detail(current_user.id, student_id, course_id)
    return {"success": True, **view}
