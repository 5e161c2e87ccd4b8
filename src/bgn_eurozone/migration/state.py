"""
Persisted migration state.

The resume cursor lives in the settings store as four separate keys so that
an interrupted run (closed tab, timed out request, crashed worker) picks up
at the first unprocessed product.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from bgn_eurozone.services.base import BaseSettingsStore

logger = logging.getLogger(__name__)

IN_PROGRESS_KEY = "bge_migration_in_progress"
OFFSET_KEY = "bge_migration_offset"
TOTAL_KEY = "bge_migration_total"
LAST_ERROR_KEY = "bge_migration_last_error"

STATE_KEYS = (IN_PROGRESS_KEY, OFFSET_KEY, TOTAL_KEY, LAST_ERROR_KEY)


class MigrationPhase(str, Enum):
    IDLE = "idle"
    COUNTING = "counting"
    RUNNING = "running"
    ERROR_PAUSED = "error_paused"
    COMPLETE = "complete"


class MigrationError(BaseModel):
    """Most recent failure recorded during a run."""

    entity_id: int | None = Field(None, description="Product id, None for batch-level failures")
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MigrationState(BaseModel):
    """Track the state of a catalog currency migration."""

    in_progress: bool = Field(False, description="Whether a migration has been started")
    offset: int = Field(0, ge=0, description="Number of products processed so far")
    total: int = Field(0, ge=0, description="Products counted when the run started")
    last_error: MigrationError | None = None

    @property
    def remaining(self) -> int:
        return max(self.total - self.offset, 0)

    @property
    def percent_complete(self) -> float:
        if self.total == 0:
            return 100.0 if self.in_progress else 0.0
        return round(min(self.offset, self.total) * 100 / self.total, 1)

    @property
    def phase(self) -> MigrationPhase:
        """
        Phase derived from the persisted fields.

        COUNTING only exists while ``start`` runs and is never persisted.
        No persisted run means IDLE, whatever the store currency.
        """
        if not self.in_progress:
            return MigrationPhase.IDLE
        if self.offset >= self.total:
            return MigrationPhase.COMPLETE
        if self.last_error is not None:
            return MigrationPhase.ERROR_PAUSED
        return MigrationPhase.RUNNING


def _coerce_count(key: str, value: Any) -> int:
    try:
        count = int(value or 0)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable value for {key}: {value!r}")
        return 0
    return max(count, 0)


class MigrationStateManager:
    """Reads and writes MigrationState through the settings store.

    Nothing is cached: every call goes back to the store so that separate
    requests (or processes) always see the latest cursor.
    """

    def __init__(self, settings: BaseSettingsStore):
        self.settings = settings

    async def load_state(self) -> MigrationState:
        in_progress = await self.settings.get_setting(IN_PROGRESS_KEY, False)
        offset = await self.settings.get_setting(OFFSET_KEY, 0)
        total = await self.settings.get_setting(TOTAL_KEY, 0)
        raw_error = await self.settings.get_setting(LAST_ERROR_KEY)

        last_error = None
        if raw_error:
            try:
                last_error = MigrationError.model_validate(raw_error)
            except ValidationError as e:
                logger.warning(f"Ignoring unreadable {LAST_ERROR_KEY}: {e}")

        return MigrationState(
            in_progress=bool(in_progress),
            offset=_coerce_count(OFFSET_KEY, offset),
            total=_coerce_count(TOTAL_KEY, total),
            last_error=last_error,
        )

    async def begin(self, total: int) -> MigrationState:
        """Persist a fresh run: in progress, counted total, cursor at zero."""
        await self.settings.set_setting(IN_PROGRESS_KEY, True)
        await self.settings.set_setting(TOTAL_KEY, total)
        await self.settings.set_setting(OFFSET_KEY, 0)
        await self.settings.delete_setting(LAST_ERROR_KEY)
        return MigrationState(in_progress=True, offset=0, total=total)

    async def save_offset(self, offset: int) -> None:
        await self.settings.set_setting(OFFSET_KEY, offset)

    async def save_total(self, total: int) -> None:
        await self.settings.set_setting(TOTAL_KEY, total)

    async def record_error(self, entity_id: int | None, message: str) -> MigrationError:
        error = MigrationError(entity_id=entity_id, message=message)
        await self.settings.set_setting(LAST_ERROR_KEY, error.model_dump(mode="json"))
        return error

    async def clear_error(self) -> None:
        await self.settings.delete_setting(LAST_ERROR_KEY)

    async def clear(self) -> None:
        """Delete every migration key; the store is back to IDLE."""
        for key in STATE_KEYS:
            await self.settings.delete_setting(key)
