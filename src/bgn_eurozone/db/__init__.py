"""
Database connection and session management for the eurozone toolkit.

Usage:
    from bgn_eurozone.db import create_session_maker, init_database, session_scope

    await init_database()
    maker = create_session_maker()
    async with session_scope(maker) as session:
        ...
"""

from bgn_eurozone.db.config import DatabaseConfig
from bgn_eurozone.db.engine import (
    check_engine_health,
    create_engine,
    dispose_engine,
    get_engine,
)
from bgn_eurozone.db.init import drop_all_tables, ensure_database_directory, init_database
from bgn_eurozone.db.session import SessionMaker, create_session_maker, session_scope

__all__ = [
    "DatabaseConfig",
    "SessionMaker",
    "check_engine_health",
    "create_engine",
    "create_session_maker",
    "dispose_engine",
    "drop_all_tables",
    "ensure_database_directory",
    "get_engine",
    "init_database",
    "session_scope",
]
