"""
Collaborator interfaces for the conversion core.

The migration and display code never touch storage directly; they are handed
a settings store and a catalog implementing these base classes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

# Settings key holding the store's operating currency
STORE_CURRENCY_KEY = "store_currency"


class EntityKind(str, Enum):
    SIMPLE = "simple"
    VARIABLE = "variable"
    VARIATION = "variation"


@dataclass
class PricedEntity:
    """A catalog item as the migration sees it."""

    id: int
    kind: EntityKind = EntityKind.SIMPLE
    regular_price: Decimal | None = None
    sale_price: Decimal | None = None
    parent_id: int | None = None
    variant_ids: list[int] = field(default_factory=list)

    @property
    def has_variants(self) -> bool:
        return self.kind is EntityKind.VARIABLE

    @property
    def active_price(self) -> Decimal | None:
        return self.sale_price if self.sale_price else self.regular_price


class BaseSettingsStore(ABC):
    """Key-value option storage shared by the whole installation."""

    @abstractmethod
    async def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` when the key is absent."""

    @abstractmethod
    async def set_setting(self, key: str, value: Any) -> None:
        """Create or overwrite a value."""

    @abstractmethod
    async def delete_setting(self, key: str) -> None:
        """Remove a key; deleting an absent key is not an error."""

    async def get_store_currency(self) -> str | None:
        value = await self.get_setting(STORE_CURRENCY_KEY)
        return str(value).upper() if value else None

    async def set_store_currency(self, currency: str) -> None:
        await self.set_setting(STORE_CURRENCY_KEY, currency.upper())


class BaseCatalog(ABC):
    """Paged read/write access to the product catalog."""

    @abstractmethod
    async def count_entities(self) -> int:
        """Count every top-level product, whatever its status."""

    @abstractmethod
    async def list_entity_ids(self, offset: int, limit: int) -> list[int]:
        """Top-level product ids in a stable order (ascending id)."""

    @abstractmethod
    async def load_entity(self, entity_id: int) -> PricedEntity | None:
        """Load a product or variation, None when it does not exist."""

    @abstractmethod
    async def save_entity(self, entity: PricedEntity) -> None:
        """Persist the entity's prices."""

    @abstractmethod
    async def resync_variant_price_range(self, parent_id: int) -> None:
        """Recompute a variable product's cached min/max from its variations."""

    @abstractmethod
    async def invalidate_price_cache(self) -> None:
        """Drop every cached price derived from catalog data."""
