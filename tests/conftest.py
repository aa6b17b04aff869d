"""Shared pytest fixtures for all test suites."""

import base64
import os
import time
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import jwt
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.auth.tokens import JwtTokenVerifier
from backend.app.config import Settings
from backend.app.db.engine import create_session_factory
from backend.app.db.inmemory import InMemoryRecordStore, InMemoryUserStore
from backend.app.db.models import Base
from backend.app.email.client import InMemoryEmailSender
from backend.app.main import create_app
from backend.app.services import Services
from backend.app.storage.uploads import InMemoryObjectStorage
from backend.app.webhooks.signature import SignatureVerifier

JWT_SECRET = "test-session-signing-secret-0123456789abcdef"
WEBHOOK_KEY = b"test-webhook-signing-key-0123456"
WEBHOOK_SECRET = "whsec_" + base64.b64encode(WEBHOOK_KEY).decode()

USER_A = "user_alice"
USER_B = "user_bob"


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, isolated from any local .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        database_url="sqlite+aiosqlite:///:memory:",
        auth_jwt_key=JWT_SECRET,
        auth_jwt_algorithms=["HS256"],
        clerk_webhook_secret=WEBHOOK_SECRET,
        resend_api_key="re_test",
    )


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def email_sender() -> InMemoryEmailSender:
    return InMemoryEmailSender()


@pytest.fixture
def object_storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def signature_verifier() -> SignatureVerifier:
    return SignatureVerifier(WEBHOOK_SECRET)


@pytest.fixture
def services(
    settings: Settings,
    record_store: InMemoryRecordStore,
    user_store: InMemoryUserStore,
    email_sender: InMemoryEmailSender,
    object_storage: InMemoryObjectStorage,
    signature_verifier: SignatureVerifier,
) -> Services:
    """Capability container backed by in-memory stores."""
    return Services(
        settings=settings,
        records=record_store,
        users=user_store,
        email=email_sender,
        storage=object_storage,
        token_verifier=JwtTokenVerifier(key=JWT_SECRET, algorithms=["HS256"]),
        signature_verifier=signature_verifier,
    )


@pytest.fixture
def client(services: Services) -> TestClient:
    """Test client wired to the in-memory services."""
    return TestClient(create_app(services=services))


def make_token(subject: str | None = USER_A, expires_in: int = 300, **claims: Any) -> str:
    """Mint an HS256 session token like the identity provider would."""
    now = int(time.time())
    payload: dict[str, Any] = {"iat": now, "exp": now + expires_in, **claims}
    if subject is not None:
        payload["sub"] = subject
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build an Authorization header for a subject."""

    def _headers(subject: str = USER_A) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(subject)}"}

    return _headers


@pytest.fixture
def signed_headers(signature_verifier: SignatureVerifier) -> Callable[..., dict[str, str]]:
    """Build svix headers that sign ``body`` with the test secret."""

    def _sign(body: bytes, msg_id: str = "msg_test_1", timestamp: int | None = None) -> dict[str, str]:
        ts = int(time.time()) if timestamp is None else timestamp
        return {
            "svix-id": msg_id,
            "svix-timestamp": str(ts),
            "svix-signature": signature_verifier.sign(msg_id, ts, body),
            "content-type": "application/json",
        }

    return _sign


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with all tables created.

    A file is used rather than ``:memory:`` so every pooled connection sees
    the same database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def sqlite_session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(sqlite_engine)


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    # Ensure it's a postgres URL
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    # Convert to async driver if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
