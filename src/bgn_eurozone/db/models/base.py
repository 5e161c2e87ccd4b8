"""
Base class for all SQLAlchemy ORM models.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Uses the SQLAlchemy 2.0 declarative pattern; options and products share
    one metadata object and one database file.
    """
    pass
