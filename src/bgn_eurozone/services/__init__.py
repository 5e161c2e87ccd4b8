"""Settings store and catalog collaborators."""

from bgn_eurozone.services.base import (
    BaseCatalog,
    BaseSettingsStore,
    EntityKind,
    PricedEntity,
)
from bgn_eurozone.services.catalog import SqlCatalog
from bgn_eurozone.services.settings_store import SqlSettingsStore

__all__ = [
    "BaseCatalog",
    "BaseSettingsStore",
    "EntityKind",
    "PricedEntity",
    "SqlCatalog",
    "SqlSettingsStore",
]
