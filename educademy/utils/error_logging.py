"""
Error logging utilities for the Educademy server.

Provides the two error contracts used across the realtime core:
``log_and_raise`` for guaranteed steps, whose failure must reach the caller,
and ``best_effort`` for side effects whose failure is logged and absorbed.
"""

from collections.abc import Awaitable
from typing import Any, TypeVar

from ..exceptions import EducademyError, ErrorContext, create_error_context
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def log_and_raise(
    exception_class: type[EducademyError],
    message: str,
    context: ErrorContext | None = None,
    details: dict[str, Any] | None = None,
    user_friendly: str | None = None,
    logger_name: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Log an error and raise an Educademy exception.

    Args:
        exception_class: The exception class to raise
        message: Technical error message
        context: Error context information
        details: Additional error details
        user_friendly: User-friendly error message
        logger_name: Specific logger name to use (defaults to current module)
        **kwargs: Extra constructor arguments for the exception class

    Raises:
        The specified Educademy exception
    """
    error_logger = get_logger(logger_name) if logger_name else logger

    if context is None:
        context = create_error_context()

    error_logger.error(
        f"Error logged and exception raised: {message}",
        error_type=exception_class.__name__,
        details=details or {},
        user_friendly=user_friendly,
    )

    raise exception_class(
        message,
        context=context,
        details=details,
        user_friendly=user_friendly,
        **kwargs,
    )


async def best_effort(operation: str, awaitable: Awaitable[T], default: T | None = None, **log_context: Any) -> T | None:
    """
    Await a side effect whose failure must not abort the caller.

    Args:
        operation: Name of the side effect, used in the log entry
        awaitable: The coroutine to run
        default: Value returned when the side effect fails
        **log_context: Extra structured fields for the failure log entry

    Returns:
        The awaited result, or ``default`` on failure
    """
    try:
        return await awaitable
    except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: best-effort side effects absorb every failure by contract
        logger.warning(
            "Best-effort operation failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
            **log_context,
        )
        return default
