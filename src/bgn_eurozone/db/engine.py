"""
Database engine creation and management.

Provides the async SQLAlchemy engine with SQLite configuration and pragma
enforcement on connect.
"""

import logging

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from bgn_eurozone.db.config import DatabaseConfig

logger = logging.getLogger(__name__)

# Module-level engine cache
_engine: AsyncEngine | None = None


def create_engine(
    db_path: str,
    pragmas: dict[str, str | int] | None = None,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine for SQLite with proper configuration.

    Args:
        db_path: Path to SQLite database file, or ":memory:"
        pragmas: PRAGMA settings to apply on each connection.
                If None, uses DatabaseConfig.SQLITE_PRAGMAS
        echo: If True, log all SQL queries

    Returns:
        Configured AsyncEngine instance

    Example:
        >>> engine = create_engine("data/eurozone.db")
        >>> async with engine.begin() as conn:
        ...     await conn.execute(text("SELECT 1"))
    """
    if pragmas is None:
        pragmas = DatabaseConfig.SQLITE_PRAGMAS

    engine = create_async_engine(
        DatabaseConfig.get_db_url(db_path),
        # A single reused connection; also keeps ":memory:" databases alive
        poolclass=StaticPool,
        echo=echo,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            for pragma, value in pragmas.items():
                cursor.execute(f"PRAGMA {pragma}={value}")
            logger.debug(f"Applied {len(pragmas)} PRAGMAs to connection for {db_path}")
        except Exception as e:
            logger.error(f"Failed to apply PRAGMAs to {db_path}: {e}")
            raise
        finally:
            cursor.close()

    logger.info(f"Created async engine for database: {db_path}")
    return engine


def get_engine() -> AsyncEngine:
    """
    Get or create the application engine (singleton) for DatabaseConfig.DB_PATH.

    Returns:
        AsyncEngine for the eurozone database
    """
    global _engine

    if _engine is None:
        _engine = create_engine(DatabaseConfig.DB_PATH, echo=DatabaseConfig.ECHO_SQL)

    return _engine


async def check_engine_health(engine: AsyncEngine) -> bool:
    """Run a trivial query; False when the database cannot be reached."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def dispose_engine() -> None:
    """Close all pooled connections. Call during application shutdown."""
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Disposed database engine")
