"""
Pytest configuration and fixtures for eurozone pricing tests.

Provides in-memory collaborators (settings store, catalog) and SQLite-backed
fixtures for the integration tests.
"""

import dataclasses
import sys
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure src/ is on sys.path for local test runs without installation
_SRC = Path(__file__).resolve().parents[1] / "src"
if _SRC.exists() and str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from bgn_eurozone.db.engine import create_engine
from bgn_eurozone.db.init import init_database
from bgn_eurozone.db.session import create_session_maker
from bgn_eurozone.services.base import (
    BaseCatalog,
    BaseSettingsStore,
    EntityKind,
    PricedEntity,
)
from bgn_eurozone.services.catalog import SqlCatalog
from bgn_eurozone.services.settings_store import SqlSettingsStore


class InMemorySettingsStore(BaseSettingsStore):
    """Dict-backed settings store that records every write."""

    def __init__(self, values: dict | None = None):
        self.values = dict(values or {})
        self.writes: list[tuple[str, object]] = []

    async def get_setting(self, key, default=None):
        return self.values.get(key, default)

    async def set_setting(self, key, value):
        self.values[key] = value
        self.writes.append((key, value))

    async def delete_setting(self, key):
        self.values.pop(key, None)


class InMemoryCatalog(BaseCatalog):
    """
    Dict-backed catalog.

    ``fail_on_load`` / ``fail_on_save`` map ids to the exception to raise,
    ``missing`` lists top-level ids that are listed but cannot be loaded.
    """

    def __init__(self):
        self.entities: dict[int, PricedEntity] = {}
        self.missing: set[int] = set()
        self.fail_on_load: dict[int, BaseException] = {}
        self.fail_on_save: dict[int, BaseException] = {}
        self.fail_listing: Exception | None = None
        self.saved: list[int] = []
        self.resynced: list[int] = []
        self.cache_invalidations = 0

    def add(self, entity: PricedEntity) -> PricedEntity:
        self.entities[entity.id] = entity
        return entity

    def add_simple(self, entity_id: int, regular="25.00", sale=None) -> PricedEntity:
        return self.add(
            PricedEntity(
                id=entity_id,
                regular_price=Decimal(regular) if regular is not None else None,
                sale_price=Decimal(sale) if sale is not None else None,
            )
        )

    def price(self, entity_id: int) -> Decimal | None:
        return self.entities[entity_id].regular_price

    def _top_level_ids(self) -> list[int]:
        ids = {e.id for e in self.entities.values() if e.parent_id is None} | self.missing
        return sorted(ids)

    async def count_entities(self):
        return len(self._top_level_ids())

    async def list_entity_ids(self, offset, limit):
        if self.fail_listing is not None:
            raise self.fail_listing
        return self._top_level_ids()[offset : offset + limit]

    async def load_entity(self, entity_id):
        if entity_id in self.fail_on_load:
            raise self.fail_on_load[entity_id]
        entity = self.entities.get(entity_id)
        if entity is None:
            return None
        return dataclasses.replace(entity, variant_ids=list(entity.variant_ids))

    async def save_entity(self, entity):
        if entity.id in self.fail_on_save:
            raise self.fail_on_save[entity.id]
        self.entities[entity.id] = dataclasses.replace(entity)
        self.saved.append(entity.id)

    async def resync_variant_price_range(self, parent_id):
        self.resynced.append(parent_id)

    async def invalidate_price_cache(self):
        self.cache_invalidations += 1


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    """Settings store of a BGN shop."""
    return InMemorySettingsStore({"store_currency": "BGN"})


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Catalog of 120 simple products priced 25.00 лв."""
    catalog = InMemoryCatalog()
    for entity_id in range(1, 121):
        catalog.add_simple(entity_id)
    return catalog


@pytest.fixture
def empty_catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def variable_product(catalog: InMemoryCatalog) -> PricedEntity:
    """Variable product #500 with two variations and one dangling variation id."""
    catalog.add(PricedEntity(id=501, kind=EntityKind.VARIATION, parent_id=500,
                             regular_price=Decimal("10.00")))
    catalog.add(PricedEntity(id=502, kind=EntityKind.VARIATION, parent_id=500,
                             regular_price=Decimal("20.00"), sale_price=Decimal("15.00")))
    return catalog.add(
        PricedEntity(id=500, kind=EntityKind.VARIABLE, variant_ids=[501, 502, 599])
    )


# ================================
# SQLITE FIXTURES
# ================================


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path):
    """Fresh SQLite database file with all tables created."""
    engine = create_engine(str(tmp_path / "eurozone.db"))
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(sqlite_engine):
    return create_session_maker(sqlite_engine)


@pytest.fixture
def sql_settings(session_maker) -> SqlSettingsStore:
    return SqlSettingsStore(session_maker)


@pytest.fixture
def sql_catalog(session_maker) -> SqlCatalog:
    return SqlCatalog(session_maker, cache_ttl_seconds=60, cache_max_entries=16)
