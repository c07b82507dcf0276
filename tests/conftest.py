"""Global pytest fixtures for the verdict service.

This module provides shared fixtures for testing including:
- Settings and a container wired with in-memory stores
- An httpx client over ASGITransport bound to that container
- Bearer-token helpers for test accounts
"""

import os
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

os.environ.setdefault("VERDICT_JWT_SECRET", "test-secret-key-for-verdict")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.factories import make_settings
from verdict.auth import create_access_token
from verdict.config import Settings
from verdict.container import Container, build_container
from verdict.main import create_app


# ===========================================
# SETTINGS / CONTAINER
# ===========================================


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def container(settings: Settings) -> Container:
    """Container backed entirely by in-memory stores."""
    return build_container(settings)


@pytest.fixture
def container_factory() -> Callable[..., Container]:
    """Build extra containers with settings overrides."""

    def _build(**overrides: Any) -> Container:
        return build_container(make_settings(**overrides))

    return _build


# ===========================================
# DATABASE
# ===========================================


@pytest.fixture
def db_session() -> AsyncMock:
    """Mock async session for exercising the SQL stores without PostgreSQL."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.add = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


@pytest.fixture
def mock_db(db_session: AsyncMock) -> MagicMock:
    """Database stand-in whose every session() is db_session."""
    db = MagicMock()
    db.session = MagicMock(return_value=db_session)
    return db


# ===========================================
# HTTP CLIENT
# ===========================================


@pytest_asyncio.fixture
async def client(container: Container) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await container.bus.drain()


@pytest.fixture
def auth_headers(settings: Settings) -> Callable[[UUID], dict[str, str]]:
    """Return a function that builds an Authorization header for an account."""

    def _headers(account_id: UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(account_id, settings)}"}

    return _headers


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()
