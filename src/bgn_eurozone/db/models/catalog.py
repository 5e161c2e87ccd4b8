"""
Product catalog table.

Parents and variations share one table: a variation points at its variable
parent through ``parent_id``. Variable parents carry no price of their own;
their ``min_price`` / ``max_price`` are cached from the variations.

Business Rules:
- kind is one of simple, variable, variation
- prices are stored with two decimals; NULL means "no price"
- only rows with parent_id NULL are migrated directly, variations are
  migrated through their parent
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from bgn_eurozone.db.models.base import Base


class Product(Base):
    """Catalog product or product variation."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=True
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="simple")
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="publish")

    regular_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    sale_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    # Cached variation price range (variable products only)
    min_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    max_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_products_parent_id", "parent_id"),)

    def __repr__(self) -> str:
        return (
            f"<Product(id={self.id}, kind='{self.kind}', "
            f"regular_price={self.regular_price}, sale_price={self.sale_price})>"
        )
