"""Data models for the migration engine."""

from .plan import (
    ColumnMapping,
    CollectionMapping,
    MigrationPlan,
)
from .migration import (
    ConnectionSettings,
    EngineConfig,
    Migration,
    MigrationProgress,
    MigrationRun,
    RunStatus,
)
from .batch import (
    DocumentBatch,
    END_OF_STREAM,
)

__all__ = [
    "ColumnMapping",
    "CollectionMapping",
    "MigrationPlan",
    "ConnectionSettings",
    "EngineConfig",
    "Migration",
    "MigrationProgress",
    "MigrationRun",
    "RunStatus",
    "DocumentBatch",
    "END_OF_STREAM",
]
