"""
Key-value options table backing the settings store.

Holds the store currency, display settings and the four migration state
keys. Values are stored as JSON text so booleans and integers read back with
their type.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from bgn_eurozone.db.models.base import Base


class Option(Base):
    """One installation-wide setting."""

    __tablename__ = "options"

    key: Mapped[str] = mapped_column(String(191), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Option(key='{self.key}', value={self.value!r})>"
