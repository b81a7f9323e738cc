"""Database infrastructure: async engine and session factory.

Example:
    from notify_service.infra.database import get_async_session

    async with get_async_session() as session:
        result = await session.execute(...)
"""

from notify_service.infra.database.session import (
    AsyncSessionLocal,
    close_database,
    engine,
    get_async_session,
    init_database,
)

__all__ = [
    "AsyncSessionLocal",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
