"""
SQL-backed settings store.

Values are JSON-encoded into the ``options`` table so that the migration
state reads back as the bool / int / dict it was written as.
"""

import json
import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from bgn_eurozone.db.models.options import Option
from bgn_eurozone.db.session import SessionMaker, session_scope
from bgn_eurozone.services.base import BaseSettingsStore
from bgn_eurozone.shared.exceptions import CatalogError

logger = logging.getLogger(__name__)


class SqlSettingsStore(BaseSettingsStore):
    """Settings store over the ``options`` table."""

    def __init__(self, session_maker: SessionMaker):
        self._session_maker = session_maker

    async def get_setting(self, key: str, default: Any = None) -> Any:
        try:
            async with session_scope(self._session_maker) as session:
                raw = await session.scalar(select(Option.value).where(Option.key == key))
        except SQLAlchemyError as e:
            raise CatalogError(f"Failed to read setting '{key}'", e) from e

        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Values written by hand (e.g. via sqlite3) come back as plain text
            logger.warning(f"Setting '{key}' is not valid JSON; returning raw text")
            return raw

    async def set_setting(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, default=str)
        try:
            async with session_scope(self._session_maker) as session:
                option = await session.get(Option, key)
                if option is None:
                    session.add(Option(key=key, value=encoded))
                else:
                    option.value = encoded
        except SQLAlchemyError as e:
            raise CatalogError(f"Failed to write setting '{key}'", e) from e
        logger.debug(f"Setting '{key}' updated")

    async def delete_setting(self, key: str) -> None:
        try:
            async with session_scope(self._session_maker) as session:
                await session.execute(delete(Option).where(Option.key == key))
        except SQLAlchemyError as e:
            raise CatalogError(f"Failed to delete setting '{key}'", e) from e
