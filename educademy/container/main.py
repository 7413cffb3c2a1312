"""
ApplicationContainer: explicit dependency wiring for the Educademy server.

The container owns one instance of every service and builds them in
dependency order. There is no module-level singleton: the application
lifespan creates the container and stores it on ``app.state``. Tests build
their own container with in-memory collaborators.
"""

# pylint: disable=too-many-instance-attributes  # Reason: DI container holds every service instance
from typing import Any

from anyio import Lock

from ..caching.cache_service import CacheStore
from ..caching.invalidation import CacheInvalidationCoordinator
from ..config import get_config
from ..config.models import AppConfig
from ..database import DatabaseManager
from ..persistence.async_persistence import AsyncPersistenceLayer
from ..persistence.protocols import (
    AuditSinkProtocol,
    AuthorizationOracleProtocol,
    CacheStoreProtocol,
    PersistenceProtocol,
)
from ..realtime.authenticator import ConnectionAuthenticator
from ..realtime.connection_manager import ConnectionManager
from ..realtime.device_session_recorder import DeviceSessionRecorder
from ..realtime.message_handlers import ClientMessageHandler
from ..realtime.notification_dispatcher import NotificationDispatcher
from ..realtime.room_membership import RoomMembershipManager
from ..realtime.session_registry import SessionRegistry
from ..services.enrollment_service import EnrollmentService
from ..services.grading_service import GradingService
from ..services.instructor_view_service import InstructorViewService
from ..services.pending_notification_queue import PendingNotificationQueue
from ..services.system_broadcast_service import SystemBroadcastService
from ..structured_logging.audit_logger import AuditLogger
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class ApplicationContainer:
    """
    Dependency injection container for the Educademy application.

    Collaborators passed to the constructor are used as given; anything left
    out is built from configuration in initialize().
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        persistence: PersistenceProtocol | None = None,
        oracle: AuthorizationOracleProtocol | None = None,
        cache_store: CacheStoreProtocol | None = None,
        audit: AuditSinkProtocol | None = None,
    ) -> None:
        """Record injected collaborators. Services are NOT built here - use initialize()."""
        self.config: AppConfig | None = config
        self.database_manager: DatabaseManager | None = None
        self.persistence: Any = persistence
        self.oracle: Any = oracle
        self.cache_store: Any = cache_store
        self.audit: Any = audit

        self.registry: SessionRegistry | None = None
        self.dispatcher: NotificationDispatcher | None = None
        self.authenticator: ConnectionAuthenticator | None = None
        self.device_recorder: DeviceSessionRecorder | None = None
        self.membership: RoomMembershipManager | None = None
        self.connection_manager: ConnectionManager | None = None
        self.message_handler: ClientMessageHandler | None = None

        self.invalidator: CacheInvalidationCoordinator | None = None
        self.grading_service: GradingService | None = None
        self.enrollment_service: EnrollmentService | None = None
        self.instructor_view_service: InstructorViewService | None = None
        self.notification_queue: PendingNotificationQueue | None = None
        self.broadcast_service: SystemBroadcastService | None = None

        self._initialized: bool = False
        self._initialization_lock = Lock()

        logger.info("ApplicationContainer created (not yet initialized)")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self, create_tables: bool = False) -> None:
        """
        Build every service in dependency order. Safe to call more than once.

        Args:
            create_tables: Create missing tables on the configured database
        """
        async with self._initialization_lock:
            if self._initialized:
                return

            config = self.config = self.config or get_config()

            if self.persistence is None:
                self.database_manager = DatabaseManager(config.database)
                if create_tables:
                    await self.database_manager.create_tables()
                self.persistence = AsyncPersistenceLayer(self.database_manager.get_session_maker())
            if self.oracle is None:
                self.oracle = self.persistence
            if self.audit is None:
                self.audit = AuditLogger(config.logging.audit_directory)
            if self.cache_store is None:
                self.cache_store = CacheStore(config.cache)

            self.registry = SessionRegistry()
            self.dispatcher = NotificationDispatcher(
                self.registry, self.persistence, drain_limit=config.realtime.pending_drain_limit
            )
            self.authenticator = ConnectionAuthenticator(self.persistence, self.audit, config.auth)
            self.device_recorder = DeviceSessionRecorder(self.persistence)
            self.membership = RoomMembershipManager(self.registry, self.oracle, self.audit)
            self.connection_manager = ConnectionManager(
                registry=self.registry,
                authenticator=self.authenticator,
                recorder=self.device_recorder,
                membership=self.membership,
                dispatcher=self.dispatcher,
                persistence=self.persistence,
                realtime_config=config.realtime,
            )
            self.message_handler = ClientMessageHandler(self.registry, self.membership, self.dispatcher, self.persistence)

            self.invalidator = CacheInvalidationCoordinator(self.cache_store)
            self.grading_service = GradingService(self.persistence, self.dispatcher, self.invalidator, self.audit)
            self.enrollment_service = EnrollmentService(self.persistence, self.dispatcher, self.invalidator, self.audit)
            self.instructor_view_service = InstructorViewService(
                self.persistence, self.cache_store, ttl_seconds=config.cache.ttl_seconds
            )
            self.notification_queue = PendingNotificationQueue(self.persistence, self.dispatcher)
            self.broadcast_service = SystemBroadcastService(self.dispatcher, self.audit)

            self._initialized = True
            logger.info(
                "ApplicationContainer initialized",
                persistence=type(self.persistence).__name__,
                cache_store=type(self.cache_store).__name__,
            )

    async def shutdown(self) -> None:
        """Close every live connection, flush the audit file and release the database engine."""
        if self.connection_manager is not None:
            await self.connection_manager.shutdown()
        if isinstance(self.audit, AuditLogger):
            await self.audit.flush()
        if self.database_manager is not None:
            await self.database_manager.close()
        self._initialized = False
        logger.info("ApplicationContainer shut down")
