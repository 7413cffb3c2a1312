"""
Application lifecycle management for the Educademy server.

Startup builds (or adopts) the ApplicationContainer, initializes it and
starts the connection cleaner. Shutdown closes every live connection and
releases the database.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..config import get_config
from ..container import ApplicationContainer
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("educademy.lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    A container already placed on ``app.state`` (as tests do) is adopted;
    otherwise one is built from configuration.
    """
    logger.info("Starting Educademy realtime server")

    container: ApplicationContainer = getattr(app.state, "container", None) or ApplicationContainer(get_config())
    await container.initialize(create_tables=_should_create_tables(container))
    app.state.container = container

    assert container.connection_manager is not None
    container.connection_manager.start_cleaner()
    logger.info("Educademy realtime server started")

    try:
        yield
    finally:
        logger.info("Shutting down Educademy realtime server")
        try:
            await container.shutdown()
        except asyncio.CancelledError:
            logger.warning("Shutdown interrupted")
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: shutdown must finish logging even when teardown fails
            logger.error("Shutdown failure", error=str(e), error_type=type(e).__name__, exc_info=True)
        logger.info("Educademy realtime server shutdown complete")


def _should_create_tables(container: ApplicationContainer) -> bool:
    """Create tables on SQLite development databases; PostgreSQL schemas are managed externally."""
    config = container.config
    return container.persistence is None and config is not None and config.database.url.startswith("sqlite")
