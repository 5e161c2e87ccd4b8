"""
FastAPI dependencies for the eurozone pricing service.

Holds the process-wide configuration and collaborators (session maker,
settings store, catalog) and exposes them to routers through ``Depends``.
"""

import logging
from collections.abc import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.models import EurozoneConfig
from ..db.config import DatabaseConfig
from ..db.engine import create_engine, dispose_engine
from ..db.init import ensure_database_directory, init_database
from ..db.session import SessionMaker, create_session_maker
from ..migration.job import MigrationJob
from ..services.catalog import SqlCatalog
from ..services.settings_store import SqlSettingsStore
from .exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

# Global instances (initialized on startup)
_config: EurozoneConfig | None = None
_engine = None
_session_maker: SessionMaker | None = None
_settings_store: SqlSettingsStore | None = None
_catalog: SqlCatalog | None = None

# Security
security = HTTPBearer(auto_error=False)


# ================================
# LIFECYCLE
# ================================


async def init_services(config: EurozoneConfig) -> None:
    """Create the engine, tables and collaborators for ``config``."""
    global _config, _engine, _session_maker, _settings_store, _catalog

    await shutdown_services()

    DatabaseConfig.DB_PATH = config.database.path
    DatabaseConfig.ECHO_SQL = config.database.echo
    ensure_database_directory(config.database.path)

    _config = config
    _engine = create_engine(config.database.path, echo=config.database.echo)
    await init_database(_engine)

    _session_maker = create_session_maker(_engine)
    _settings_store = SqlSettingsStore(_session_maker)
    _catalog = SqlCatalog(
        _session_maker,
        cache_ttl_seconds=config.cache.price_range_ttl_seconds,
        cache_max_entries=config.cache.max_entries,
    )
    logger.info(f"Services initialized for database {config.database.path}")


async def shutdown_services() -> None:
    global _engine, _session_maker, _settings_store, _catalog

    if _engine is not None:
        await _engine.dispose()
        _engine = None
    await dispose_engine()
    _session_maker = None
    _settings_store = None
    _catalog = None


# ================================
# CONFIGURATION DEPENDENCIES
# ================================


async def get_config() -> EurozoneConfig:
    """Get the current configuration, defaults until one is loaded."""
    global _config
    if _config is None:
        _config = EurozoneConfig()
    return _config


async def get_settings_store() -> SqlSettingsStore:
    if _settings_store is None:
        await init_services(await get_config())
    return _settings_store


async def get_catalog() -> SqlCatalog:
    if _catalog is None:
        await init_services(await get_config())
    return _catalog


# ================================
# AUTHENTICATION
# ================================


async def get_authorizer(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    config: EurozoneConfig = Depends(get_config),
) -> Callable[[], bool]:
    """
    Build the authorization check handed to the migration job.

    Without a configured API key every caller is allowed.
    """
    api_key = config.api_key
    presented = credentials.credentials if credentials else None

    def is_authorized() -> bool:
        return not api_key or presented == api_key

    return is_authorized


async def require_authorized(
    authorizer: Callable[[], bool] = Depends(get_authorizer),
) -> None:
    """Dependency for endpoints that change settings directly."""
    if not authorizer():
        raise UnauthorizedError()


async def get_migration_job(
    authorizer: Callable[[], bool] = Depends(get_authorizer),
    config: EurozoneConfig = Depends(get_config),
    settings: SqlSettingsStore = Depends(get_settings_store),
    catalog: SqlCatalog = Depends(get_catalog),
) -> MigrationJob:
    return MigrationJob(
        settings,
        catalog,
        authorizer=authorizer,
        batch_size=config.migration.batch_size,
        strict_finalize=config.migration.strict_finalize,
    )
