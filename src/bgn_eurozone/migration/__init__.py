"""Resumable catalog currency migration."""

from bgn_eurozone.migration.job import (
    DEFAULT_BATCH_SIZE,
    BatchResult,
    BatchWarning,
    MigrationJob,
    MigrationStatus,
)
from bgn_eurozone.migration.state import (
    MigrationError,
    MigrationPhase,
    MigrationState,
    MigrationStateManager,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchResult",
    "BatchWarning",
    "MigrationError",
    "MigrationJob",
    "MigrationPhase",
    "MigrationState",
    "MigrationStateManager",
    "MigrationStatus",
]
