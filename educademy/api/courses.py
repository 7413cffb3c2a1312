"""Course enrollment endpoint."""

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from ..dependencies import get_current_user, get_enrollment_service
from ..exceptions import ForbiddenError
from ..models.user import UserRole
from ..schemas.user import EnrollmentRequest, UserRecord
from ..services.enrollment_service import EnrollmentService

course_router = APIRouter(prefix="/api/courses", tags=["courses"])

ENROLL_OTHERS_ROLES = (UserRole.ADMIN, UserRole.MODERATOR)


@course_router.post("/{course_id}/enrollments", status_code=status.HTTP_201_CREATED)
async def enroll_in_course(
    course_id: int,
    body: EnrollmentRequest | None = Body(default=None),
    current_user: UserRecord = Depends(get_current_user),
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
) -> dict[str, Any]:
    """
    Enroll in a course.

    Students enroll themselves. Administrators may enroll another student by
    passing ``studentId``.
    """
    student_id = current_user.id
    if body is not None and body.student_id is not None and body.student_id != current_user.id:
        if current_user.role not in ENROLL_OTHERS_ROLES:
            raise ForbiddenError(
                f"User {current_user.id} may not enroll user {body.student_id}",
                user_friendly="You can only enroll yourself",
            )
        student_id = body.student_id

    enrollment = await enrollment_service.enroll_student(student_id, course_id)
    return {"success": True, "message": "Enrolled successfully", "data": enrollment.to_wire()}
