# tests/integration/conftest.py
"""Integration test fixtures - real SQLAlchemy stack on SQLite + the HTTP app"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from leadintel.config import settings
from leadintel.database import create_session_factory, init_models
from leadintel.repositories import SQLAlchemyRepository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def sql_engine():
    """Fresh in-memory SQLite schema per test"""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    await init_models(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def sql_repository(sql_engine):
    return SQLAlchemyRepository(create_session_factory(sql_engine))


@pytest.fixture
def client(monkeypatch):
    """App client running its real startup wiring against the in-memory store"""
    monkeypatch.setattr(settings, "DATABASE_URL", "memory://")
    monkeypatch.setattr(settings, "CRM_SYNC_DELAY_SECONDS", 0.0)
    monkeypatch.setattr(settings, "ENABLE_IDENTITY_CACHE", False)

    from leadintel.main import app

    with TestClient(app) as test_client:
        yield test_client
