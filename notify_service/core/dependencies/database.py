"""Database dependency for FastAPI route handlers.

Route handlers take ``Depends(get_db_session)``; background tasks and
scripts use ``notify_service.infra.database.get_async_session`` directly.
Both draw from the same session factory.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_async_session() as session:
        yield session
