"""Database utilities and helpers."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decision_maker.core.exceptions import DatabaseError
from decision_maker.db.session import get_sessionmaker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def get_session(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions with automatic error handling.

    Usage:
        async with get_session() as session:
            entry = await get_entry(session, collection, doc_id)

    Yields:
        AsyncSession: Database session

    Raises:
        DatabaseError: If no database is configured or the operation fails
    """
    factory = factory or get_sessionmaker()
    if factory is None:
        raise DatabaseError("Database is not configured")

    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database error: {e}", exc_info=True)
            raise DatabaseError(f"Database operation failed: {e}") from e
        finally:
            await session.close()
