"""
ContactBook Backend — Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the test suite.
How:   Every test gets its own app built by create_app(settings) over a fresh
       in-memory SQLite database (aiosqlite + StaticPool), with the mailer
       replaced by an AsyncMock and photos written to a tmp directory.

Fixture Hierarchy (all function-scoped):
    test_settings
    └── app                 create_app + init_state + create_schema
        ├── mock_mailer     AsyncMock standing in for SMTP
        ├── db_session      AsyncSession for service-level tests
        └── client          httpx AsyncClient over ASGITransport
    sample_image_bytes      a well-formed 1x1 PNG header libmagic reports as image/png
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import create_schema, dispose_engine
from app.main import create_app, init_state
from app.services.mailer import Mailer
from helpers import settings_for


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return settings_for(storage_root=str(tmp_path / "storage"))


@pytest.fixture
def mock_mailer() -> AsyncMock:
    return AsyncMock(spec=Mailer)


@pytest_asyncio.fixture
async def app(test_settings, mock_mailer):
    application = create_app(test_settings)
    init_state(application)
    application.state.mailer = mock_mailer
    application.state.auth_service.mailer = mock_mailer
    await create_schema(application.state.engine)
    yield application
    await dispose_engine(application.state.engine)


@pytest_asyncio.fixture
async def db_session(app) -> AsyncGenerator[AsyncSession, None]:
    async with app.state.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client talking to the app in-process.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def sample_image_bytes() -> bytes:
    """PNG signature plus a 1x1 RGBA IHDR chunk."""
    return (
        b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
        b"\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    )

