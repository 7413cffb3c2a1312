"""
FastAPI application factory for the Educademy server.

This module handles app creation, middleware configuration, error handler
registration and router registration.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..api.courses import course_router
from ..api.health import health_router
from ..api.instructor import instructor_router
from ..api.notifications import notification_router
from ..api.real_time import realtime_router
from ..config import get_config
from ..config.models import AppConfig
from ..container import ApplicationContainer
from ..error_handlers import register_error_handlers
from ..middleware.correlation_middleware import CorrelationMiddleware
from ..structured_logging.enhanced_logging_config import get_logger
from .lifespan import lifespan

logger = get_logger(__name__)


def create_app(config: AppConfig | None = None, container: ApplicationContainer | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration; defaults to get_config()
        container: Pre-built container to adopt at startup, used by tests

    Returns:
        FastAPI: The configured application
    """
    config = config or (container.config if container is not None and container.config is not None else get_config())

    app = FastAPI(
        title="Educademy Realtime API",
        description="Real-time connection and notification delivery for the Educademy learning platform",
        version="0.1.0",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    cors = config.cors
    logger.info(
        "CORS configuration",
        allow_origins=cors.allow_origins,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
        allow_credentials=cors.allow_credentials,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.allow_origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=[m.upper() for m in cors.allow_methods],
        allow_headers=cors.allow_headers,
        expose_headers=["X-Correlation-ID", "X-Request-ID"],
    )
    # Added last so it wraps CORS and sees every request first
    app.add_middleware(CorrelationMiddleware)

    register_error_handlers(app, include_details=config.logging.environment != "production")

    app.include_router(health_router)
    app.include_router(realtime_router)
    app.include_router(instructor_router)
    app.include_router(course_router)
    app.include_router(notification_router)

    return app
