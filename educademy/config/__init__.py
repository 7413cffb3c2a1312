"""
Configuration module for the Educademy server.

Usage:
    from educademy.config import get_config

    config = get_config()
    logger.info("Realtime configuration", heartbeat=config.realtime.heartbeat_timeout_seconds)
"""

import sys
import threading
from functools import lru_cache
from os import getenv

from .models import AppConfig

__all__ = ["get_config", "reset_config", "AppConfig"]

_config_lock = threading.Lock()


class _ConfigState:
    instance: AppConfig | None = None


_config_state = _ConfigState()


def _is_test_mode() -> bool:
    """
    Detect if running under pytest.

    Returns:
        bool: True if running in test mode, False otherwise
    """
    if "pytest" in sys.modules:
        return True
    return bool(getenv("PYTEST_CURRENT_TEST"))


@lru_cache(maxsize=1)
def _get_config_cached() -> AppConfig:
    """Production config loader with caching."""
    with _config_lock:
        if _config_state.instance is None:
            _config_state.instance = AppConfig()
    return _config_state.instance


def get_config() -> AppConfig:
    """
    Get application configuration (singleton in production, fresh in tests).

    Configuration is loaded from environment variables and the .env file.

    Returns:
        AppConfig: The application configuration

    Raises:
        pydantic.ValidationError: If configuration is invalid
    """
    if _is_test_mode():
        return AppConfig()
    return _get_config_cached()


def reset_config() -> None:
    """Reset the configuration cache so the next get_config() reloads it."""
    with _config_lock:
        _get_config_cached.cache_clear()
        _config_state.instance = None
