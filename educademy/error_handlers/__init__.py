"""
Error handlers package for Educademy.

Renders domain exceptions as the standard REST error body.
"""

from .standardized_responses import classify_exception, register_error_handlers

__all__ = ["classify_exception", "register_error_handlers"]
