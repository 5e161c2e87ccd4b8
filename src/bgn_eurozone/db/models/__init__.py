"""ORM models for the eurozone database."""

from bgn_eurozone.db.models.base import Base
from bgn_eurozone.db.models.catalog import Product
from bgn_eurozone.db.models.options import Option

__all__ = ["Base", "Option", "Product"]
