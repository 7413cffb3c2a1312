"""
Exception hierarchy for the Educademy realtime server.

This module defines the exception taxonomy shared by the WebSocket layer,
the grading write path and the REST handlers. Every exception carries a
short machine-readable ``reason`` that is echoed to socket clients in
``error`` events, plus a structured context used for logging.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """
    Contextual information for error handling.

    Provides structured context for error reporting and debugging.
    """

    user_id: str | None = None
    connection_id: str | None = None
    room_id: str | None = None
    request_id: str | None = None
    operation: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "user_id": self.user_id,
            "connection_id": self.connection_id,
            "room_id": self.room_id,
            "request_id": self.request_id,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class EducademyError(Exception):
    """
    Base exception for all Educademy errors.

    Provides structured error handling with context and metadata
    for proper error categorization and debugging.
    """

    reason: str = "internal_error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
    ):
        """
        Initialize an Educademy error.

        Args:
            message: Technical error message
            context: Error context information
            details: Additional error details
            user_friendly: User-friendly error message
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self.user_friendly = user_friendly or message
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with structured context."""
        logger.warning(
            "Educademy error occurred",
            error_type=self.__class__.__name__,
            reason=self.reason,
            message=self.message,
            context=self.context.to_dict(),
            details=self.details,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "reason": self.reason,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "context": self.context.to_dict(),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class AuthenticationError(EducademyError):
    """Credential and identity errors raised while establishing a session."""

    reason = "authentication_failed"

    def __init__(self, message: str, context: ErrorContext | None = None, auth_type: str = "jwt", **kwargs):
        super().__init__(message, context, **kwargs)
        self.auth_type = auth_type
        self.details["auth_type"] = auth_type


class MissingCredentialError(AuthenticationError):
    """No credential was supplied in any accepted location."""

    reason = "missing_credential"


class InvalidCredentialError(AuthenticationError):
    """The credential failed signature or expiry verification."""

    reason = "invalid_credential"


class UnknownUserError(AuthenticationError):
    """The credential names a user that does not exist."""

    reason = "unknown_user"


class AccountInactiveError(AuthenticationError):
    """The user exists but their account is deactivated."""

    reason = "account_inactive"


class ForbiddenError(EducademyError):
    """The caller is authenticated but not allowed to perform the operation."""

    reason = "forbidden"


class ValidationError(EducademyError):
    """Data validation errors."""

    reason = "validation_failed"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        field: str | None = None,
        value: Any = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.field = field
        self.value = value
        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = str(value)


class InvalidRoomSpecError(ValidationError):
    """A room request is missing its type or its id."""

    reason = "invalid_room_spec"


class OutOfRangeError(ValidationError):
    """A numeric input falls outside its permitted range."""

    reason = "out_of_range"


class InvalidStateError(EducademyError):
    """The target entity is not in a state that permits the operation."""

    reason = "invalid_state"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        current_state: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.current_state = current_state
        if current_state:
            self.details["current_state"] = current_state


class ConflictError(EducademyError):
    """The operation would duplicate an existing record."""

    reason = "conflict"


class ResourceNotFoundError(EducademyError):
    """Resource not found errors."""

    reason = "not_found"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        resource_type: str = "unknown",
        resource_id: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.details["resource_type"] = resource_type
        if resource_id is not None:
            self.details["resource_id"] = str(resource_id)


NotFoundError = ResourceNotFoundError


class DatabaseError(EducademyError):
    """Database operation errors."""

    reason = "database_error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        operation: str = "unknown",
        table: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.operation = operation
        self.table = table
        self.details["operation"] = operation
        if table:
            self.details["table"] = table


class CacheError(EducademyError):
    """Cache store errors."""

    reason = "cache_error"


class ConnectionClosedError(EducademyError):
    """An operation targeted a connection that has already closed."""

    reason = "connection_closed"


class ConfigurationError(EducademyError):
    """Configuration errors."""

    reason = "configuration_error"

    def __init__(self, message: str, context: ErrorContext | None = None, config_key: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.config_key = config_key
        if config_key:
            self.details["config_key"] = config_key


def create_error_context(**kwargs) -> ErrorContext:
    """
    Create an error context with the provided information.

    Unknown keyword arguments are stored in ``metadata``.

    Args:
        **kwargs: Context fields

    Returns:
        ErrorContext: Populated error context
    """
    known = {"user_id", "connection_id", "room_id", "request_id", "operation"}
    context_fields = {k: v for k, v in kwargs.items() if k in known}
    metadata = {k: v for k, v in kwargs.items() if k not in known}
    return ErrorContext(**context_fields, metadata=metadata)
