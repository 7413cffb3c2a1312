"""
Test configuration and fixtures for the Educademy test suite.

Environment variables are set before any educademy module loads its
configuration. Services are wired over in-memory collaborators from
educademy.tests.fixtures.fakes.
"""

import os
from collections.abc import Generator
from typing import Any

import pytest

os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("LOGGING_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-key-for-testing-only")

from educademy.caching.cache_service import CacheStore  # noqa: E402
from educademy.caching.invalidation import CacheInvalidationCoordinator  # noqa: E402
from educademy.config import reset_config  # noqa: E402
from educademy.config.models import AuthConfig, CacheConfig, RealtimeConfig  # noqa: E402
from educademy.models.user import UserRole  # noqa: E402
from educademy.realtime.authenticator import ConnectionAuthenticator  # noqa: E402
from educademy.realtime.connection_manager import ConnectionManager  # noqa: E402
from educademy.realtime.device_session_recorder import DeviceSessionRecorder  # noqa: E402
from educademy.realtime.message_handlers import ClientMessageHandler  # noqa: E402
from educademy.realtime.notification_dispatcher import NotificationDispatcher  # noqa: E402
from educademy.realtime.room_membership import RoomMembershipManager  # noqa: E402
from educademy.realtime.session_registry import SessionRegistry  # noqa: E402
from educademy.structured_logging.enhanced_logging_config import get_logger  # noqa: E402
from educademy.tests.fixtures.fakes import (  # noqa: E402
    ADMIN_ID,
    ASSIGNMENT_ID,
    COURSE_ID,
    INSTRUCTOR_ID,
    OTHER_INSTRUCTOR_ID,
    OTHER_STUDENT_ID,
    STUDENT_ID,
    InMemoryPersistence,
    RecordingAuditSink,
)

logger = get_logger(__name__)


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the config singleton before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(jwt_secret="unit-test-secret", jwt_algorithm="HS256")


@pytest.fixture
def realtime_config() -> RealtimeConfig:
    return RealtimeConfig()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    """Persistence double seeded with one course, its instructor and an enrolled student."""
    store = InMemoryPersistence()
    store.add_user(STUDENT_ID, UserRole.STUDENT, "Ada", "Lovelace")
    store.add_user(OTHER_STUDENT_ID, UserRole.STUDENT, "Alan", "Turing")
    store.add_user(INSTRUCTOR_ID, UserRole.INSTRUCTOR, "Grace", "Hopper")
    store.add_user(OTHER_INSTRUCTOR_ID, UserRole.INSTRUCTOR, "Edsger", "Dijkstra")
    store.add_user(ADMIN_ID, UserRole.ADMIN, "Barbara", "Liskov")
    store.add_course(COURSE_ID, INSTRUCTOR_ID, "Intro to Testing")
    store.enroll(STUDENT_ID, COURSE_ID)
    store.add_assignment(ASSIGNMENT_ID, COURSE_ID, "Essay 1", total_points=100)
    return store


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def dispatcher(registry: SessionRegistry, persistence: InMemoryPersistence) -> NotificationDispatcher:
    return NotificationDispatcher(registry, persistence)


@pytest.fixture
def membership(
    registry: SessionRegistry, persistence: InMemoryPersistence, audit: RecordingAuditSink
) -> RoomMembershipManager:
    return RoomMembershipManager(registry, persistence, audit)


@pytest.fixture
def authenticator(
    persistence: InMemoryPersistence, audit: RecordingAuditSink, auth_config: AuthConfig
) -> ConnectionAuthenticator:
    return ConnectionAuthenticator(persistence, audit, auth_config)


@pytest.fixture
def connection_manager(
    registry: SessionRegistry,
    authenticator: ConnectionAuthenticator,
    membership: RoomMembershipManager,
    dispatcher: NotificationDispatcher,
    persistence: InMemoryPersistence,
    realtime_config: RealtimeConfig,
) -> ConnectionManager:
    return ConnectionManager(
        registry=registry,
        authenticator=authenticator,
        recorder=DeviceSessionRecorder(persistence),
        membership=membership,
        dispatcher=dispatcher,
        persistence=persistence,
        realtime_config=realtime_config,
    )


@pytest.fixture
def message_handler(
    registry: SessionRegistry,
    membership: RoomMembershipManager,
    dispatcher: NotificationDispatcher,
    persistence: InMemoryPersistence,
) -> ClientMessageHandler:
    return ClientMessageHandler(registry, membership, dispatcher, persistence)


@pytest.fixture
def cache_store() -> CacheStore:
    return CacheStore(CacheConfig(max_size=100, ttl_seconds=300))


@pytest.fixture
def invalidator(cache_store: CacheStore) -> CacheInvalidationCoordinator:
    return CacheInvalidationCoordinator(cache_store)


def pytest_collection_modifyitems(config: Any, items: list[Any]) -> None:
    """
    Auto-mark tests based on their file path.

    Tests in unit/ get @pytest.mark.unit
    Tests in integration/ get @pytest.mark.integration
    """
    for item in items:
        file_path = str(item.fspath)

        if "/unit/" in file_path or "\\unit\\" in file_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in file_path or "\\integration\\" in file_path:
            item.add_marker(pytest.mark.integration)
