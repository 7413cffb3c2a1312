"""
Fixtures for end-to-end tests through the FastAPI app.

The app runs its real lifespan over a container built with the in-memory
persistence double, so REST calls and WebSocket sessions share one
process-local registry.
"""

# pylint: disable=redefined-outer-name
# Justification: pytest fixtures redefine names

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from educademy.app.factory import create_app
from educademy.auth.tokens import create_access_token
from educademy.config.models import AppConfig, AuthConfig
from educademy.container import ApplicationContainer
from educademy.tests.fixtures.fakes import InMemoryPersistence, RecordingAuditSink


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(auth=AuthConfig(jwt_secret="integration-secret"))


@pytest.fixture
def container(
    app_config: AppConfig, persistence: InMemoryPersistence, audit: RecordingAuditSink
) -> ApplicationContainer:
    return ApplicationContainer(app_config, persistence=persistence, audit=audit)


@pytest.fixture
def client(app_config: AppConfig, container: ApplicationContainer) -> Generator[TestClient, None, None]:
    """TestClient with the lifespan running for the duration of the test."""
    app = create_app(app_config, container=container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def token_for(app_config: AppConfig) -> Callable[[int], str]:
    def build(user_id: int) -> str:
        return create_access_token({"userId": user_id}, app_config.auth)

    return build


@pytest.fixture
def auth_headers(token_for: Callable[[int], str]) -> Callable[[int], dict[str, str]]:
    def build(user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user_id)}"}

    return build
