"""
SQL-backed product catalog.

Implements the paged read / write access the migration needs, plus the
cached price ranges of variable products shown on the storefront.
"""

import logging
from decimal import Decimal

from cachetools import TTLCache
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from bgn_eurozone.db.models.catalog import Product
from bgn_eurozone.db.session import SessionMaker, session_scope
from bgn_eurozone.services.base import BaseCatalog, EntityKind, PricedEntity
from bgn_eurozone.shared.exceptions import CatalogError

logger = logging.getLogger(__name__)

PriceRange = tuple[Decimal | None, Decimal | None]


def _to_entity(product: Product, variant_ids: list[int]) -> PricedEntity:
    return PricedEntity(
        id=product.id,
        kind=EntityKind(product.kind),
        regular_price=product.regular_price,
        sale_price=product.sale_price,
        parent_id=product.parent_id,
        variant_ids=variant_ids,
    )


class SqlCatalog(BaseCatalog):
    """
    Catalog over the ``products`` table.

    Only top-level rows (``parent_id IS NULL``) are counted and listed; the
    migration reaches variations through ``PricedEntity.variant_ids``.
    """

    def __init__(
        self,
        session_maker: SessionMaker,
        cache_ttl_seconds: float = 300,
        cache_max_entries: int = 1024,
    ):
        self._session_maker = session_maker
        self._price_ranges: TTLCache = TTLCache(maxsize=cache_max_entries, ttl=cache_ttl_seconds)

    async def count_entities(self) -> int:
        try:
            async with session_scope(self._session_maker) as session:
                count = await session.scalar(
                    select(func.count(Product.id)).where(Product.parent_id.is_(None))
                )
        except SQLAlchemyError as e:
            raise CatalogError("Failed to count products", e) from e
        return count or 0

    async def list_entity_ids(self, offset: int, limit: int) -> list[int]:
        stmt = (
            select(Product.id)
            .where(Product.parent_id.is_(None))
            .order_by(Product.id.asc())
            .offset(offset)
            .limit(limit)
        )
        try:
            async with session_scope(self._session_maker) as session:
                result = await session.scalars(stmt)
                return list(result)
        except SQLAlchemyError as e:
            raise CatalogError(f"Failed to list products at offset {offset}", e) from e

    async def load_entity(self, entity_id: int) -> PricedEntity | None:
        async with session_scope(self._session_maker) as session:
            product = await session.get(Product, entity_id)
            if product is None:
                return None

            variant_ids: list[int] = []
            if product.kind == EntityKind.VARIABLE.value:
                result = await session.scalars(
                    select(Product.id)
                    .where(Product.parent_id == entity_id)
                    .order_by(Product.id.asc())
                )
                variant_ids = list(result)

            return _to_entity(product, variant_ids)

    async def save_entity(self, entity: PricedEntity) -> None:
        async with session_scope(self._session_maker) as session:
            product = await session.get(Product, entity.id)
            if product is None:
                product = Product(id=entity.id, kind=entity.kind.value, parent_id=entity.parent_id)
                session.add(product)
            product.regular_price = entity.regular_price
            product.sale_price = entity.sale_price

    async def resync_variant_price_range(self, parent_id: int) -> None:
        """Recompute min/max active price over the parent's variations."""
        active = func.coalesce(Product.sale_price, Product.regular_price)
        async with session_scope(self._session_maker) as session:
            row = (
                await session.execute(
                    select(func.min(active), func.max(active)).where(
                        Product.parent_id == parent_id, active > 0
                    )
                )
            ).one()

            parent = await session.get(Product, parent_id)
            if parent is None:
                logger.warning(f"Cannot resync price range: product {parent_id} not found")
                return
            parent.min_price, parent.max_price = _as_decimal(row[0]), _as_decimal(row[1])

        self._price_ranges[parent_id] = (parent.min_price, parent.max_price)
        logger.debug(f"Resynced price range for product {parent_id}")

    async def get_price_range(self, parent_id: int) -> PriceRange:
        """Cached (min, max) price of a variable product."""
        cached = self._price_ranges.get(parent_id)
        if cached is not None:
            return cached

        async with session_scope(self._session_maker) as session:
            parent = await session.get(Product, parent_id)
            price_range = (
                (parent.min_price, parent.max_price) if parent is not None else (None, None)
            )

        self._price_ranges[parent_id] = price_range
        return price_range

    async def invalidate_price_cache(self) -> None:
        self._price_ranges.clear()
        logger.info("Price range cache cleared")

    async def add_product(
        self,
        kind: EntityKind = EntityKind.SIMPLE,
        regular_price: Decimal | None = None,
        sale_price: Decimal | None = None,
        parent_id: int | None = None,
        name: str = "",
    ) -> int:
        """Insert a product row and return its id. Used for seeding and tests."""
        async with session_scope(self._session_maker) as session:
            product = Product(
                kind=EntityKind(kind).value,
                regular_price=regular_price,
                sale_price=sale_price,
                parent_id=parent_id,
                name=name,
            )
            session.add(product)
            await session.flush()
            return product.id


def _as_decimal(value) -> Decimal | None:
    # Aggregates over Numeric columns come back as float on SQLite
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))
