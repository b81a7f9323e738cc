"""Pytest configuration and shared fixtures.

Organization:
    - Application Fixtures: FastAPI app and HTTP client
    - Database Fixtures: SQLAlchemy engine, session factory and session
    - Delivery Fixtures: fake channel senders and recipient directory
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DB_CREATE_TABLES", "false")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("NOTIFY_SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_JSON_LOGS", "false")

from notify_service.features.notifications.channels.registry import (  # noqa: E402
    ChannelSenderRegistry,
    set_channel_sender_registry,
)
from notify_service.features.notifications.recipients import (  # noqa: E402
    InMemoryRecipientDirectory,
    set_recipient_directory,
)
from tests.utils import FakeSender  # noqa: E402

ALL_CHANNELS = ("email", "sms", "push", "webhook", "in_app")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """In-memory SQLite engine with every table created.

    ``StaticPool`` keeps one connection so all sessions see the same database.
    """
    from notify_service.core.database.base import Base
    from notify_service.features.notifications import models  # noqa: F401
    from notify_service.infra.database.session import enable_sqlite_foreign_keys

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Session for a single test; rolled back afterwards."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
async def file_engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """File-backed SQLite engine, for tests that need several real connections."""
    from notify_service.core.database.base import Base
    from notify_service.features.notifications import models  # noqa: F401
    from notify_service.infra.database.session import enable_sqlite_foreign_keys

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'notify.db'}",
        connect_args={"timeout": 30},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


# ============================================================================
# Delivery Fixtures
# ============================================================================


@pytest.fixture
def fake_senders() -> dict[str, FakeSender]:
    """Succeeding fake sender per channel, keyed by channel name."""
    return {channel: FakeSender(channel) for channel in ALL_CHANNELS}


@pytest.fixture
def sender_registry(fake_senders: dict[str, FakeSender]):
    """Install a registry of fake senders as the process-wide registry."""
    registry = ChannelSenderRegistry(fake_senders, timeout_seconds=2.0)
    set_channel_sender_registry(registry)
    yield registry
    set_channel_sender_registry(None)


@pytest.fixture
def directory():
    """Install an empty in-memory recipient directory."""
    directory = InMemoryRecipientDirectory()
    set_recipient_directory(directory)
    yield directory
    set_recipient_directory(None)


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app(session_factory, sender_registry, directory):
    """FastAPI application wired to the test database and fake senders."""
    from notify_service.app.main import create_app
    from notify_service.core.dependencies.database import get_db_session

    application = create_app()

    async def override_get_db_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = override_get_db_session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client bound to the app; lifespan is not run."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
