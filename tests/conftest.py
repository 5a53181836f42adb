"""Shared fixtures: the FastAPI app with auth, database and rate limiting stubbed out."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from api.main import app as fastapi_app
from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.entities.profile import UserRole
from api.shared.rate_limit import RateLimiter

TEST_USER = AuthenticatedUser(id="11111111-1111-1111-1111-111111111111", email="user@example.com")
TEST_ADMIN = AuthenticatedUser(
    id="22222222-2222-2222-2222-222222222222",
    email="admin@example.com",
    role=UserRole.ADMIN,
)
TEST_CONVERSATION_ID = "33333333-3333-3333-3333-333333333333"


@pytest.fixture
def db_session():
    """An AsyncSession stand-in; ``add`` is synchronous on the real thing."""
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def app(db_session, monkeypatch):
    async def _session():
        yield db_session

    fastapi_app.dependency_overrides[get_db_session] = _session
    monkeypatch.setattr(RateLimiter, "check", AsyncMock(return_value=True))
    overridden = []

    def override(provider, value):
        provider.override(providers.Object(value))
        overridden.append(provider)
        return value

    fastapi_app.state.override = override
    yield fastapi_app
    for provider in overridden:
        provider.reset_override()
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # No context manager: lifespan would try to reach Postgres, Redis and MinIO.
    return TestClient(app)


@pytest.fixture
def as_user(app):
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    return TEST_USER


@pytest.fixture
def as_admin(app):
    app.dependency_overrides[get_current_user] = lambda: TEST_ADMIN
    return TEST_ADMIN


@pytest.fixture
def make_conversation():
    """Factory for conversation rows as the services read them."""

    def _make(**overrides):
        values = {
            "id": TEST_CONVERSATION_ID,
            "user_id": TEST_USER.id,
            "title": "Nueva conversación",
            "status": SimpleNamespace(value="active"),
            "bot_paused": False,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    return _make
