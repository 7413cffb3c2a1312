"""
Dependency injection providers for the Educademy REST API.

Every provider resolves its service from the ApplicationContainer stored on
``app.state`` by the lifespan; nothing here holds global state.
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog.contextvars import bind_contextvars

from .auth.tokens import decode_access_token, extract_user_id
from .container import ApplicationContainer
from .exceptions import AccountInactiveError, ForbiddenError, MissingCredentialError, UnknownUserError
from .models.user import UserRole
from .realtime.connection_manager import ConnectionManager
from .schemas.user import UserRecord
from .services.enrollment_service import EnrollmentService
from .services.grading_service import GradingService
from .services.instructor_view_service import InstructorViewService
from .services.pending_notification_queue import PendingNotificationQueue
from .services.system_broadcast_service import SystemBroadcastService
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ApplicationContainer:
    """
    Get the application container from request state.

    This is the base dependency that all other dependencies use.
    """
    container = getattr(request.app.state, "container", None)
    if container is None or not container.is_initialized:
        raise RuntimeError(
            "ApplicationContainer not found in app.state - ensure container is initialized in lifespan context"
        )
    return container


def get_grading_service(container: ApplicationContainer = Depends(get_container)) -> GradingService:
    assert container.grading_service is not None
    return container.grading_service


def get_enrollment_service(container: ApplicationContainer = Depends(get_container)) -> EnrollmentService:
    assert container.enrollment_service is not None
    return container.enrollment_service


def get_instructor_view_service(container: ApplicationContainer = Depends(get_container)) -> InstructorViewService:
    assert container.instructor_view_service is not None
    return container.instructor_view_service


def get_notification_queue(container: ApplicationContainer = Depends(get_container)) -> PendingNotificationQueue:
    assert container.notification_queue is not None
    return container.notification_queue


def get_broadcast_service(container: ApplicationContainer = Depends(get_container)) -> SystemBroadcastService:
    assert container.broadcast_service is not None
    return container.broadcast_service


def get_connection_manager(container: ApplicationContainer = Depends(get_container)) -> ConnectionManager:
    assert container.connection_manager is not None
    return container.connection_manager


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    container: ApplicationContainer = Depends(get_container),
) -> UserRecord:
    """
    Resolve the authenticated user from the ``Authorization: Bearer`` header.

    Raises:
        MissingCredentialError: If no bearer token was sent
        InvalidCredentialError: If the token is invalid or expired
        UnknownUserError: If the token's user does not exist
        AccountInactiveError: If the account is disabled
    """
    if credentials is None or not credentials.credentials:
        raise MissingCredentialError("No bearer token on request", user_friendly="Authentication required")

    assert container.config is not None
    claims = decode_access_token(credentials.credentials, container.config.auth)
    user_id = extract_user_id(claims)
    user = await container.persistence.find_user(user_id)
    if user is None:
        raise UnknownUserError(f"User {user_id} not found", user_friendly="User not found")
    if not user.is_active:
        raise AccountInactiveError(f"User {user_id} is inactive", user_friendly="Account is inactive")

    bind_contextvars(user_id=user.id)
    return user


def require_roles(*roles: str) -> Callable[[UserRecord], Awaitable[UserRecord]]:
    """Build a dependency that admits only users holding one of ``roles``."""

    async def dependency(user: UserRecord = Depends(get_current_user)) -> UserRecord:
        if user.role not in roles:
            raise ForbiddenError(
                f"Role {user.role} not permitted; requires one of {sorted(roles)}",
                user_friendly="You do not have permission to perform this action",
            )
        return user

    return dependency


require_instructor = require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)
require_admin = require_roles(UserRole.ADMIN, UserRole.MODERATOR)
