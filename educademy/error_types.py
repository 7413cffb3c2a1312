"""
Centralized error types and constants for Educademy.

This module defines standardized error types and the two error envelopes the
server emits: the REST body and the WebSocket ``error`` event.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorType(Enum):
    """Standardized error types for consistent categorization."""

    # Authentication and Authorization
    AUTHENTICATION_FAILED = "authentication_failed"
    AUTHORIZATION_DENIED = "authorization_denied"
    INVALID_TOKEN = "invalid_token"

    # Validation Errors
    VALIDATION_ERROR = "validation_error"
    OUT_OF_RANGE = "out_of_range"
    INVALID_ROOM_SPEC = "invalid_room_spec"

    # Resource Errors
    RESOURCE_NOT_FOUND = "resource_not_found"
    RESOURCE_CONFLICT = "resource_conflict"
    INVALID_STATE = "invalid_state"

    # Database Errors
    DATABASE_ERROR = "database_error"

    # Configuration and System
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"

    # Real-time Communication
    WEBSOCKET_ERROR = "websocket_error"
    MESSAGE_PROCESSING_ERROR = "message_processing_error"


class ErrorSeverity(Enum):
    """Error severity levels for logging and audit events."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def create_standard_error_response(
    message: str,
    error_type: ErrorType = ErrorType.INTERNAL_ERROR,
    request_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create the REST error body.

    Args:
        message: Message safe to show to the caller
        error_type: The type of error
        request_id: Correlation id of the failing request
        details: Additional error details (optional)

    Returns:
        Error body of the form ``{success, message, requestId, errorType}``
    """
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "requestId": request_id,
        "errorType": error_type.value,
    }
    if details:
        body["details"] = details
    return body


def create_websocket_error_response(reason: str, message: str) -> dict[str, Any]:
    """
    Create the payload of a WebSocket ``error`` event.

    Args:
        reason: Short machine-readable reason (for example ``forbidden``)
        message: Human-readable message

    Returns:
        Event payload
    """
    return {
        "reason": reason,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
    }
