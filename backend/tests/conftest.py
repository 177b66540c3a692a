"""Pytest fixtures for the tenancy, audit and secrets layer.

Provides reusable test fixtures for:
- Async database engine on a per-test SQLite file (aiosqlite)
- Session factory and a test-side session
- Secret cipher and audit recorder
- A FastAPI app wired to the test database and an httpx AsyncClient

Usage:
    async def test_me_org(client, two_org_user):
        user, org_a, org_b = two_org_user
        response = await client.get("/api/v1/me/org", headers=auth_headers(user))
        assert response.status_code == 200
"""

import os
import sys
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-256-bits-minimum-length-required-for-security")
os.environ.setdefault("MASTER_KEY", "7f" * 32)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./agencyhub-test.db")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("ENVIRONMENT", "development")

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

import pytest
from httpx import ASGITransport, AsyncClient

from audit.service import AuditRecorder
from database import create_engine_from_url, create_session_factory, get_db, init_models
from infrastructure.encryption import SecretCipher
from main import create_app

pytest_plugins = ["fixtures.multi_org"]

TEST_MASTER_KEY = os.environ["MASTER_KEY"]


@pytest.fixture
async def engine(tmp_path):
    """Async engine on a fresh SQLite file; all tables created."""
    test_engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    """Test-side session. Fixtures commit, so app sessions see their rows."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher.from_secret(TEST_MASTER_KEY)


@pytest.fixture
def recorder(session_factory) -> AuditRecorder:
    return AuditRecorder(session_factory)


@pytest.fixture
def app(session_factory, cipher, recorder):
    """App instance bound to the test database.

    cipher and audit_recorder are placed on app.state directly because the
    ASGI transport does not run the lifespan.
    """
    application = create_app()
    application.state.cipher = cipher
    application.state.audit_recorder = recorder

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
