"""Storage for migration, plan, run and progress records."""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.migration import Migration, MigrationProgress, MigrationRun
from ..models.plan import MigrationPlan

logger = logging.getLogger(__name__)


class MetadataStore(ABC):
    """
    Base class for metadata stores.

    Progress rows are written concurrently by every consumer of a table,
    so implementations must apply ``increment_rows_processed`` atomically.
    """

    @abstractmethod
    def get_migration(self, migration_id: str) -> Optional[Migration]:
        pass

    @abstractmethod
    def save_migration(self, migration: Migration) -> Migration:
        pass

    @abstractmethod
    def save_plan(self, plan: MigrationPlan) -> MigrationPlan:
        pass

    @abstractmethod
    def latest_plan(self, migration_id: str) -> Optional[MigrationPlan]:
        """Get the most recently created plan for a migration."""
        pass

    @abstractmethod
    def save_run(self, run: MigrationRun) -> MigrationRun:
        pass

    @abstractmethod
    def get_run(self, run_id: str) -> Optional[MigrationRun]:
        pass

    @abstractmethod
    def save_progress(self, progress: MigrationProgress) -> MigrationProgress:
        pass

    @abstractmethod
    def get_progress(self, progress_id: str) -> Optional[MigrationProgress]:
        pass

    @abstractmethod
    def progress_for_run(self, run_id: str) -> List[MigrationProgress]:
        pass

    @abstractmethod
    def increment_rows_processed(self, progress_id: str, count: int) -> int:
        """
        Atomically add to a progress row's processed counter.

        Args:
            progress_id: Progress row to update
            count: Number of rows to add

        Returns:
            The new rows_processed value
        """
        pass


class InMemoryMetadataStore(MetadataStore):
    """Thread-safe metadata store kept in process memory."""

    def __init__(self):
        self._lock = threading.RLock()
        self._migrations: Dict[str, Migration] = {}
        self._plans: Dict[str, MigrationPlan] = {}
        self._runs: Dict[str, MigrationRun] = {}
        self._progress: Dict[str, MigrationProgress] = {}

    def get_migration(self, migration_id: str) -> Optional[Migration]:
        with self._lock:
            migration = self._migrations.get(migration_id)
            return copy.deepcopy(migration) if migration else None

    def save_migration(self, migration: Migration) -> Migration:
        with self._lock:
            self._migrations[migration.id] = copy.deepcopy(migration)
        return migration

    def save_plan(self, plan: MigrationPlan) -> MigrationPlan:
        with self._lock:
            self._plans[plan.id] = copy.deepcopy(plan)
        return plan

    def latest_plan(self, migration_id: str) -> Optional[MigrationPlan]:
        with self._lock:
            plans = [p for p in self._plans.values() if p.migration_id == migration_id]
            if not plans:
                return None
            return copy.deepcopy(max(plans, key=lambda p: p.created_at))

    def save_run(self, run: MigrationRun) -> MigrationRun:
        with self._lock:
            self._runs[run.id] = copy.deepcopy(run)
        return run

    def get_run(self, run_id: str) -> Optional[MigrationRun]:
        with self._lock:
            run = self._runs.get(run_id)
            return copy.deepcopy(run) if run else None

    def save_progress(self, progress: MigrationProgress) -> MigrationProgress:
        with self._lock:
            self._progress[progress.id] = copy.deepcopy(progress)
        return progress

    def get_progress(self, progress_id: str) -> Optional[MigrationProgress]:
        with self._lock:
            progress = self._progress.get(progress_id)
            return copy.deepcopy(progress) if progress else None

    def progress_for_run(self, run_id: str) -> List[MigrationProgress]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._progress.values() if p.run_id == run_id]

    def increment_rows_processed(self, progress_id: str, count: int) -> int:
        with self._lock:
            progress = self._progress.get(progress_id)
            if progress is None:
                raise KeyError(f"Unknown progress record: {progress_id}")
            progress.rows_processed += count
            return progress.rows_processed
