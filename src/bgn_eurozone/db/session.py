"""
Database session management and context managers.

Provides the async session factory and a context manager with automatic
commit / rollback.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bgn_eurozone.db.engine import get_engine

logger = logging.getLogger(__name__)

SessionMaker = async_sessionmaker[AsyncSession]


def create_session_maker(engine: AsyncEngine | None = None) -> SessionMaker:
    """
    Build a session factory bound to ``engine`` (the application engine by default).

    Example:
        >>> maker = create_session_maker()
        >>> async with maker() as session:
        ...     result = await session.execute(select(Product))
    """
    return async_sessionmaker(
        bind=engine or get_engine(),
        class_=AsyncSession,
        autoflush=True,
        # Entities are read back after commit by the catalog; keep them loaded
        expire_on_commit=False,
    )


@asynccontextmanager
async def session_scope(maker: SessionMaker) -> AsyncIterator[AsyncSession]:
    """
    Context manager for sessions with automatic transaction handling.

    Commits on successful completion, rolls back on exception.

    Example:
        >>> async with session_scope(maker) as session:
        ...     session.add(Option(key="store_currency", value='"BGN"'))
        ...     # Automatically committed on exit

    Raises:
        Any exception from database operations (after rollback)
    """
    async with maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Session rolled back due to error: {e}")
            raise
