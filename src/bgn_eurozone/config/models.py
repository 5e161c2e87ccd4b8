"""
Configuration models for the eurozone pricing service.

These models define the structure and validation of the JSON config file.
Display options are not part of it: they belong to the installation and
live in the settings store next to the store currency.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class DatabaseSettings(BaseModel):
    """SQLite database holding options and the product catalog."""

    path: str = Field("data/eurozone.db", description="SQLite file, or ':memory:'")
    echo: bool = Field(False, description="Log every SQL statement")

    @field_validator("path")
    @classmethod
    def validate_non_empty_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Database path cannot be empty")
        return v.strip()


class MigrationSettings(BaseModel):
    """Batch migration behaviour."""

    batch_size: int = Field(50, ge=1, le=500, description="Products per batch call")
    strict_finalize: bool = Field(
        False, description="Refuse to finalize while unprocessed products remain"
    )


class CacheSettings(BaseModel):
    """Price range cache of variable products."""

    price_range_ttl_seconds: float = Field(300, gt=0)
    max_entries: int = Field(1024, gt=0)


class EurozoneConfig(BaseModel):
    """Main configuration model for the eurozone pricing service."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    api_key: str | None = Field(
        None, description="Bearer key for the HTTP API; unset disables authentication"
    )
    log_level: str = Field("INFO", description="Root log level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @classmethod
    def from_file(cls, file_path: str | Path) -> "EurozoneConfig":
        """
        Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the JSON is invalid or doesn't match the schema
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        try:
            with path.open("r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

        return cls(**data)

    def to_file(self, file_path: str | Path) -> None:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w") as f:
            json.dump(self.model_dump(), f, indent=2)
