from __future__ import annotations

import os

# Settings are cached on first use, so the environment is prepared before
# anything from the portal package is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-with-at-least-thirty-two-bytes")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("RESEND_FROM_EMAIL", "portal@example.com")
os.environ.setdefault("FRONTEND_BASE_URL", "https://portal.example.com")

from collections.abc import AsyncIterator  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from portal.api.deps import get_db_session, get_setup_email_service  # noqa: E402
from portal.api.main import app  # noqa: E402
from portal.domain.services.setup_email import SetupEmailService  # noqa: E402
from portal.infrastructure.db.base import Base  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from tests.utils import FakeEmailSender, FrozenClock  # noqa: E402


@pytest.fixture()
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    # File-backed so concurrent sessions get independent connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}", poolclass=NullPool)

    # Writers queue on the busy timeout instead of failing a read-to-write upgrade
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Provide a database session for tests that need direct DB access."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture()
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    email_sender: FakeEmailSender,
) -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the app with the test database and a fake mailer."""

    async def override_db_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_setup_email_service] = lambda: SetupEmailService(
        client=email_sender
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
