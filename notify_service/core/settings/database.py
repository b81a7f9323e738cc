"""Database connection settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """SQLAlchemy async engine configuration.

    Environment variables use DB_ prefix.
    Example: DB_DATABASE_URL=postgresql+psycopg://user:pass@db/notify
    """

    database_url: str = Field(
        default="sqlite+aiosqlite:///./notify.db",
        min_length=1,
        description="SQLAlchemy async URL (sqlite+aiosqlite or postgresql+asyncpg)",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True, description="Check connections on checkout")
    create_tables: bool = Field(
        default=True,
        description="Create missing tables at startup (development and SQLite deployments)",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured URL targets SQLite."""
        return self.database_url.startswith("sqlite")


__all__ = ["DatabaseSettings"]
