"""
Standardized error responses for the REST API.

Every failing request answers with the same body,
``{success: false, message, requestId, errorType}``, and a status code chosen
from the exception type.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..error_types import ErrorType, create_standard_error_response
from ..exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    EducademyError,
    ForbiddenError,
    InvalidCredentialError,
    InvalidRoomSpecError,
    InvalidStateError,
    OutOfRangeError,
    ResourceNotFoundError,
    ValidationError,
)
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

# Most specific first; the first isinstance match wins.
EXCEPTION_MAPPINGS: tuple[tuple[type[EducademyError], ErrorType, int], ...] = (
    (InvalidCredentialError, ErrorType.INVALID_TOKEN, status.HTTP_401_UNAUTHORIZED),
    (AuthenticationError, ErrorType.AUTHENTICATION_FAILED, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, ErrorType.AUTHORIZATION_DENIED, status.HTTP_403_FORBIDDEN),
    (OutOfRangeError, ErrorType.OUT_OF_RANGE, status.HTTP_400_BAD_REQUEST),
    (InvalidRoomSpecError, ErrorType.INVALID_ROOM_SPEC, status.HTTP_400_BAD_REQUEST),
    (ValidationError, ErrorType.VALIDATION_ERROR, status.HTTP_400_BAD_REQUEST),
    (ResourceNotFoundError, ErrorType.RESOURCE_NOT_FOUND, status.HTTP_404_NOT_FOUND),
    (ConflictError, ErrorType.RESOURCE_CONFLICT, status.HTTP_409_CONFLICT),
    (InvalidStateError, ErrorType.INVALID_STATE, status.HTTP_409_CONFLICT),
    (DatabaseError, ErrorType.DATABASE_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, ErrorType.CONFIGURATION_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

STATUS_CODE_ERROR_TYPES = {
    status.HTTP_400_BAD_REQUEST: ErrorType.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorType.AUTHENTICATION_FAILED,
    status.HTTP_403_FORBIDDEN: ErrorType.AUTHORIZATION_DENIED,
    status.HTTP_404_NOT_FOUND: ErrorType.RESOURCE_NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorType.RESOURCE_CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorType.VALIDATION_ERROR,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorType.DATABASE_ERROR,
}

INTERNAL_ERROR_MESSAGE = "An internal error occurred"


def classify_exception(exc: EducademyError) -> tuple[ErrorType, int]:
    """Map a domain exception to its error type and HTTP status."""
    for exception_class, error_type, status_code in EXCEPTION_MAPPINGS:
        if isinstance(exc, exception_class):
            return error_type, status_code
    return ErrorType.INTERNAL_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None) or request.headers.get("x-correlation-id")


def create_error_json_response(
    request: Request,
    status_code: int,
    message: str,
    error_type: ErrorType,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_standard_error_response(message, error_type, _request_id(request), details),
    )


def register_error_handlers(app: FastAPI, include_details: bool = False) -> None:
    """
    Register the exception handlers that render the standard error body.

    Args:
        app: FastAPI application instance
        include_details: Whether to include structured error details in bodies
    """

    @app.exception_handler(EducademyError)
    async def educademy_error_handler(request: Request, exc: EducademyError) -> JSONResponse:
        error_type, status_code = classify_exception(exc)
        if status_code >= 500:
            logger.error("Request failed", error_type=type(exc).__name__, error=exc.message, path=request.url.path)
        message = exc.user_friendly if status_code < 500 or isinstance(exc, DatabaseError) else INTERNAL_ERROR_MESSAGE
        return create_error_json_response(
            request, status_code, message, error_type, exc.details if include_details else None
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return create_error_json_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "Invalid request data",
            ErrorType.VALIDATION_ERROR,
            {"errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error_type = STATUS_CODE_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_ERROR)
        response = create_error_json_response(request, exc.status_code, str(exc.detail), error_type)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )
        return create_error_json_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE, ErrorType.INTERNAL_ERROR
        )

    logger.info("Error handlers registered for FastAPI application", include_details=include_details)
