"""
Database configuration constants and settings.

Defines the default database path and the SQLite pragmas applied to every
connection of the eurozone database.
"""


class DatabaseConfig:
    """Configuration for the SQLite database holding options and products."""

    # Overridden at startup from EurozoneConfig.database.path
    DB_PATH: str = "data/eurozone.db"

    # SQLite pragmas applied on each connection via event listeners
    SQLITE_PRAGMAS: dict[str, str | int] = {
        # Write-Ahead Logging lets the API read status while a batch writes
        "journal_mode": "WAL",
        "synchronous": "NORMAL",
        "foreign_keys": 1,
        "temp_store": "MEMORY",
        # Negative value = size in KB (16MB cache)
        "cache_size": -16000,
        # Wait up to 5 seconds when database is locked
        "busy_timeout": 5000,
    }

    ECHO_SQL: bool = False

    @classmethod
    def get_db_url(cls, db_path: str | None = None) -> str:
        """
        Get SQLAlchemy database URL.

        Args:
            db_path: Database file path, or ":memory:". Defaults to DB_PATH.

        Returns:
            Database URL string
        """
        return f"sqlite+aiosqlite:///{db_path or cls.DB_PATH}"

    @classmethod
    def get_pragma_commands(cls) -> list[str]:
        return [f"PRAGMA {pragma}={value}" for pragma, value in cls.SQLITE_PRAGMAS.items()]
