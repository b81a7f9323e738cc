"""Programmatic Alembic commands for the notification schema.

Example:
    from notify_service.infra.database.migrations import get_alembic_commands

    commands = get_alembic_commands()
    await commands.upgrade("head")
    assert await commands.is_up_to_date()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import io
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from alembic import command

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]


@dataclass
class AlembicCommandConfig:
    """Where the migrations live and which database they target.

    Migrations open their own connections from the engine's URL, so the
    engine's pool is never shared with Alembic's event loop.
    """

    engine: AsyncEngine
    script_location: Path = PROJECT_ROOT / "alembic"
    ini_path: Path = PROJECT_ROOT / "alembic.ini"
    render_as_batch: bool = False
    compare_type: bool = True

    def get_alembic_config(self, output_buffer: io.StringIO | None = None) -> Config:
        if not self.ini_path.exists():
            msg = f"alembic.ini not found at {self.ini_path}"
            raise FileNotFoundError(msg)

        config = Config(str(self.ini_path), stdout=output_buffer or io.StringIO())
        config.set_main_option("script_location", str(self.script_location))
        # render_as_string keeps the password, which str() masks
        url = self.engine.url.render_as_string(hide_password=False)
        config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))

        config.attributes["configure_logger"] = False
        config.attributes["render_as_batch"] = self.render_as_batch
        config.attributes["compare_type"] = self.compare_type
        return config


class AlembicCommands:
    """Async wrappers around Alembic commands.

    Alembic is synchronous and ``env.py`` starts its own event loop, so every
    command runs in a worker thread.
    """

    def __init__(self, config: AlembicCommandConfig) -> None:
        self.config = config

    async def upgrade(self, revision: str = "head") -> str:
        logger.info("Upgrading database", extra={"revision": revision})
        output = io.StringIO()
        alembic_config = self.config.get_alembic_config(output)

        await asyncio.to_thread(command.upgrade, alembic_config, revision)
        logger.info("Database upgraded", extra={"revision": revision})
        return output.getvalue()

    async def downgrade(self, revision: str = "-1") -> str:
        logger.warning("Downgrading database", extra={"revision": revision})
        output = io.StringIO()
        alembic_config = self.config.get_alembic_config(output)

        await asyncio.to_thread(command.downgrade, alembic_config, revision)
        return output.getvalue()

    async def get_current_revision(self) -> str | None:
        """Revision recorded in the database, or None before the first upgrade."""
        async with self.config.engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: MigrationContext.configure(sync_conn).get_current_revision())

    async def get_head_revision(self) -> str | None:
        script = ScriptDirectory.from_config(self.config.get_alembic_config())
        return script.get_current_head()

    async def is_up_to_date(self) -> bool:
        return await self.get_current_revision() == await self.get_head_revision()


def get_alembic_commands(engine: AsyncEngine | None = None, *, render_as_batch: bool = False) -> AlembicCommands:
    """Commands bound to ``engine``, or to the application engine by default."""
    if engine is None:
        from notify_service.infra.database.session import engine as default_engine

        engine = default_engine
    return AlembicCommands(AlembicCommandConfig(engine=engine, render_as_batch=render_as_batch))


__all__ = ["AlembicCommandConfig", "AlembicCommands", "get_alembic_commands"]
