"""Dependency injection container for the Educademy server."""

from .main import ApplicationContainer

__all__ = ["ApplicationContainer"]
