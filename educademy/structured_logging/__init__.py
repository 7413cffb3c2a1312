"""
Structured logging package for Educademy.

This package provides structlog configuration, request-scoped logging context
and the audit sink used for security and business events.

All imports should use explicit paths like
'from educademy.structured_logging.enhanced_logging_config import get_logger'.
"""

__all__: list[str] = []
