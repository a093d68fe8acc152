"""
Test configuration and fixtures for the accounts API.

Every test gets its own SQLite database file (aiosqlite) and a mocked mailer,
so nothing leaks between tests and no email is ever sent.
"""

from datetime import datetime, timedelta
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.features.auth.models import User  # noqa: F401  registers auth tables
from app.features.auth.services.auth_service import AccountService
from app.features.auth.services.credential_store import CredentialStore
from app.features.auth.utils.security import PasswordHasher, SessionIssuer
from app.main import create_app
from app.platform.config import Settings
from app.platform.db.base import Base
from app.platform.db.session import build_engine, build_sessionmaker
from app.platform.services.email import Mailer

TEST_SECRET = "test-secret-key-0123456789abcdef0123"


class FrozenClock:
    """Callable clock the service reads; tests move it forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        JWT_SECRET_KEY=TEST_SECRET,
        BCRYPT_ROUNDS=4,
        EMAIL_API_KEY=None,
        FRONTEND_URL="spike://",
        CREATE_TABLES_ON_STARTUP=True,
    )


@pytest.fixture
def mailer():
    return MagicMock(spec=Mailer)


@pytest.fixture
def test_app(settings, mailer):
    """Create FastAPI test application with the mailer swapped for a mock."""
    app = create_app(settings)
    app.state.mailer = mailer
    return app


@pytest.fixture
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Entering the context runs the lifespan, which creates the tables.
    """
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def register_user(client):
    """POST /auth/register with a known verification code; returns the request payload."""

    def _register(username="alice", email="alice@x.com", password="password123", code="123456"):
        with patch(
            "app.features.auth.services.auth_service.generate_verification_code",
            return_value=code,
        ):
            response = client.post(
                "/auth/register",
                json={"username": username, "email": email, "password": password},
            )
        assert response.status_code == 200, response.json()
        return {"username": username, "email": email, "password": password, "code": code}

    return _register


# ── Service-level fixtures ─────────────────────


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
async def session_factory(settings):
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_sessionmaker(engine)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def issuer() -> SessionIssuer:
    return SessionIssuer(TEST_SECRET, expires_minutes=15)


@pytest.fixture
def account_service(db_session, settings, mailer, clock, issuer) -> AccountService:
    return AccountService(
        store=CredentialStore(db_session),
        hasher=PasswordHasher(rounds=4),
        issuer=issuer,
        mailer=mailer,
        settings=settings,
        clock=clock,
    )
