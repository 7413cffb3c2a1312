"""
Database configuration for Educademy.

This module provides the async engine and session factory. The manager is
owned by the application container; nothing here is a module-level singleton.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config.models import DatabaseConfig
from .exceptions import ConfigurationError
from .models import Base
from .structured_logging.enhanced_logging_config import get_logger
from .utils.error_logging import create_error_context, log_and_raise

logger = get_logger(__name__)


class DatabaseManager:
    """
    Owns the async engine and session maker for one database URL.

    Initialization is lazy: the engine is created on first use.
    """

    def __init__(self, database_config: DatabaseConfig | None = None, database_url: str | None = None) -> None:
        if database_config is None and database_url is None:
            log_and_raise(
                ConfigurationError,
                "DatabaseManager requires a database config or URL",
                context=create_error_context(operation="database_initialization"),
                user_friendly="Database cannot be initialized: configuration missing",
            )
        self._config = database_config
        self.database_url: str = database_url or database_config.url  # type: ignore[union-attr]
        self.engine: AsyncEngine | None = None
        self.session_maker: async_sessionmaker[AsyncSession] | None = None

    def _initialize_database(self) -> None:
        if self.engine is not None:
            return

        if self.database_url.startswith("sqlite+aiosqlite://") and ":memory:" in self.database_url:
            # In-memory SQLite must share one connection across sessions
            self.engine = create_async_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif self.database_url.startswith("sqlite+aiosqlite://"):
            # File SQLite: one connection per session so transactions stay isolated
            self.engine = create_async_engine(self.database_url, connect_args={"timeout": 15})
        else:
            config = self._config or DatabaseConfig(url=self.database_url)
            self.engine = create_async_engine(
                self.database_url,
                echo=config.echo,
                pool_size=config.pool_size,
                max_overflow=config.max_overflow,
                pool_timeout=config.pool_timeout,
                pool_pre_ping=True,
            )

        self.session_maker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.info("Database engine initialized", dialect=self.engine.dialect.name)

    def get_engine(self) -> AsyncEngine:
        self._initialize_database()
        assert self.engine is not None
        return self.engine

    def get_session_maker(self) -> async_sessionmaker[AsyncSession]:
        """
        Get the session factory, creating the engine if needed.

        Returns:
            async_sessionmaker: Factory producing AsyncSession instances
        """
        self._initialize_database()
        assert self.session_maker is not None
        return self.session_maker

    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session, rolling back on error."""
        async with self.get_session_maker()() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create every table registered on the shared metadata (development and tests)."""
        async with self.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created", table_count=len(Base.metadata.tables))

    async def close(self) -> None:
        """Dispose the engine and its pool."""
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.session_maker = None
