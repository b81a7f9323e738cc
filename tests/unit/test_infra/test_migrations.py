"""Tests for the Alembic migrations."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from notify_service.core.database.base import Base
from notify_service.features.notifications import models  # noqa: F401
from notify_service.infra.database.migrations import get_alembic_commands


@pytest.fixture
async def migration_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'migrations.db'}")
    try:
        yield engine
    finally:
        await engine.dispose()


async def _schema(engine) -> dict[str, set[str]]:
    def _read(sync_conn) -> dict[str, set[str]]:
        inspector = inspect(sync_conn)
        return {
            table: {column["name"] for column in inspector.get_columns(table)}
            for table in inspector.get_table_names()
            if table != "alembic_version"
        }

    async with engine.connect() as conn:
        return await conn.run_sync(_read)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upgrade_creates_the_mapped_schema(migration_engine):
    commands = get_alembic_commands(migration_engine)
    assert await commands.get_current_revision() is None

    await commands.upgrade("head")

    expected = {name: {column.name for column in table.columns} for name, table in Base.metadata.tables.items()}
    assert await _schema(migration_engine) == expected
    assert await commands.is_up_to_date()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upgrade_creates_unique_constraints_and_indexes(migration_engine):
    await get_alembic_commands(migration_engine).upgrade("head")

    def _read(sync_conn):
        inspector = inspect(sync_conn)
        return (
            {c["name"] for c in inspector.get_unique_constraints("notification_digest_queue")},
            {i["name"] for i in inspector.get_indexes("notification_delivery_logs")},
        )

    async with migration_engine.connect() as conn:
        uniques, indexes = await conn.run_sync(_read)

    assert "uq_notification_digest_queue_subscription_channel" in uniques
    assert {"ix_notification_delivery_logs_retry", "ix_notification_delivery_logs_pair"} <= indexes


@pytest.mark.unit
@pytest.mark.asyncio
async def test_downgrade_to_base_drops_everything(migration_engine):
    commands = get_alembic_commands(migration_engine)
    await commands.upgrade("head")

    await commands.downgrade("base")

    assert await _schema(migration_engine) == {}
    assert await commands.get_current_revision() is None
