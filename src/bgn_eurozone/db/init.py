"""
Database initialization and schema management.
"""

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine

from bgn_eurozone.db.config import DatabaseConfig
from bgn_eurozone.db.engine import get_engine
from bgn_eurozone.db.models.base import Base

logger = logging.getLogger(__name__)


def ensure_database_directory(db_path: str | None = None) -> None:
    """Create the parent directory of the database file if it is missing."""
    path = db_path or DatabaseConfig.DB_PATH
    if path == ":memory:":
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)


async def init_database(engine: AsyncEngine | None = None) -> None:
    """
    Create every table that does not exist yet.

    Safe to call on every startup; existing data is left alone.

    Example:
        >>> await init_database()
    """
    if engine is None:
        ensure_database_directory()
        engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized")


async def drop_all_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("Dropped all database tables")
