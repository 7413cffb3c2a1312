"""
Structlog-based logging configuration for the Educademy server.

This module provides the logging entry point: structlog configuration with
request context (MDC), correlation IDs and sensitive-field sanitization, and
routing of uvicorn's loggers through the same pipeline.
"""

# pylint: disable=too-few-public-methods  # Reason: Logging state container with focused responsibility

import json
import logging
import re
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_context import bind_connection_context, bind_request_context, clear_request_context
from .logging_processors import add_correlation_id, add_request_context, sanitize_sensitive_data

__all__ = [
    "bind_connection_context",
    "bind_request_context",
    "clear_request_context",
    "configure_structlog",
    "get_logger",
    "setup_logging",
]

# NOTE: Infrastructure code uses structlog.get_logger() directly to avoid a
# circular import during initialization. Application modules use get_logger().
logger = structlog.get_logger(__name__)

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class _LoggingState:
    """State container for logging initialization to avoid global statements."""

    initialized: bool = False
    signature: str | None = None


_logging_state = _LoggingState()


def _strip_ansi_renderer(bound_logger: Any, name: str, event_dict: dict[str, Any]) -> str:
    """Render key=value pairs with ANSI escape sequences removed."""
    try:
        formatted = structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])(
            bound_logger, name, event_dict
        )
        return _ANSI_ESCAPE.sub("", formatted)
    except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: a renderer failure must never crash the caller
        return f"Logging renderer error: {type(e).__name__}: {str(e)}"


def configure_structlog(log_level: str = "INFO", log_format: str = "key_value") -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: ``json`` for JSON lines, anything else for key=value lines
    """
    base_processors: list[Any] = [
        # Merge context variables (MDC) first so bound ids win over generated ones
        merge_contextvars,
        # Security - sanitize sensitive data
        sanitize_sensitive_data,
        add_correlation_id,
        add_request_context,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Any = structlog.processors.JSONRenderer() if log_format == "json" else _strip_ansi_renderer

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    if not any(getattr(h, "_educademy_handler", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        setattr(handler, "_educademy_handler", True)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    structlog.configure(
        processors=base_processors + [renderer],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_logging(
    logging_config: dict[str, Any],
    *,
    force_reconfigure: bool = False,
) -> None:
    """
    Set up logging from the ``logging`` section of the application config.

    Repeated calls with an already-initialized system are skipped unless
    ``force_reconfigure`` is set.

    Args:
        logging_config: Logging configuration dictionary
        force_reconfigure: When True, reconfigure even if already initialized
    """
    config_signature = json.dumps(logging_config, sort_keys=True, default=str)

    if _logging_state.initialized and not force_reconfigure:
        get_logger("educademy.structured_logging.setup").debug(
            "setup_logging skipped; logging system already initialized",
            config_signature=_logging_state.signature,
        )
        return

    if logging_config.get("disable_logging", False):
        configure_structlog("CRITICAL")
        _logging_state.initialized = True
        _logging_state.signature = config_signature
        return

    log_level = logging_config.get("level", "INFO")
    configure_structlog(log_level, logging_config.get("format", "key_value"))
    _configure_uvicorn_logging()

    get_logger("educademy.structured_logging.setup").info(
        "Logging system initialized",
        environment=logging_config.get("environment"),
        log_level=log_level,
        security_sanitization=True,
        correlation_ids=True,
    )

    _logging_state.initialized = True
    _logging_state.signature = config_signature


def _configure_uvicorn_logging() -> None:
    """Route uvicorn's loggers through the root handler."""
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    This is the public API for obtaining loggers. All application code
    should use this function rather than calling structlog.get_logger()
    directly.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
