"""Migration coordinator - runs the producer/consumer pipeline for every collection."""

import dataclasses
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from .errors import ConfigurationError, DDLError, MigrationError, StoreConnectionError
from .models.migration import (
    ConnectionSettings,
    EngineConfig,
    Migration,
    MigrationProgress,
    MigrationRun,
    RunStatus,
)
from .models.plan import CollectionMapping, MigrationPlan
from .services.metadata_store import MetadataStore
from .services.metrics import MigrationMetrics
from .services.sql_builder import build_create_table
from .sources.base import DocumentSource
from .sources.mongo_source import MongoDocumentSource
from .targets.base import TargetStore
from .targets.postgres_target import PostgresTargetStore
from .workers.batch_queue import BatchQueue
from .workers.consumer import DocumentConsumer
from .workers.producer import DocumentProducer

logger = logging.getLogger(__name__)

SourceFactory = Callable[[ConnectionSettings], DocumentSource]
TargetFactory = Callable[[ConnectionSettings, EngineConfig], TargetStore]


def default_source_factory(settings: ConnectionSettings) -> DocumentSource:
    return MongoDocumentSource(settings)


def default_target_factory(settings: ConnectionSettings, config: EngineConfig) -> TargetStore:
    return PostgresTargetStore(settings, pool_size=config.target_pool_size)


class MigrationCoordinator:
    """
    Coordinates the execution of a migration run.

    Handles:
    - Loading the migration and its latest plan
    - Opening one source session and one pooled target per run
    - One pipeline task per collection mapping, all running concurrently
    - Table creation, progress tracking and run finalization

    A failing collection never cancels its siblings; the run is marked
    FAILED once every collection task has finished.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        config: Optional[EngineConfig] = None,
        source_factory: Optional[SourceFactory] = None,
        target_factory: Optional[TargetFactory] = None
    ):
        """
        Initialize the coordinator.

        Args:
            metadata_store: Store for migrations, plans, runs and progress
            config: Pipeline tunables
            source_factory: Opens the document source for a migration
            target_factory: Opens the target store for a migration
        """
        self.store = metadata_store
        self.config = config or EngineConfig()
        self.source_factory = source_factory or default_source_factory
        self.target_factory = target_factory or default_target_factory

        self._lock = threading.Lock()
        # Keyed by run id while the run is live
        self._stop_events: Dict[str, threading.Event] = {}
        self._active_queues: Dict[str, Set[BatchQueue]] = {}
        # Keyed by (source collection, target table), most recent last
        self._metrics: Dict[Tuple[str, str], MigrationMetrics] = {}

    def execute_migration(self, migration_id: str) -> MigrationRun:
        """
        Run a migration to completion.

        Args:
            migration_id: Migration to execute

        Returns:
            The finalized MigrationRun

        Raises:
            ConfigurationError: if credentials or the plan are missing
            StoreConnectionError: if the source or target is unreachable
        """
        migration, plan = self._load(migration_id)
        run = self._create_run(migration, plan)
        return self._execute_run(run, migration, plan)

    def start_migration(self, migration_id: str) -> Tuple[MigrationRun, "Future[MigrationRun]"]:
        """
        Start a migration in the background.

        Configuration errors are raised immediately. The returned run is a
        snapshot in RUNNING state; the future resolves to the finalized run.
        """
        migration, plan = self._load(migration_id)
        run = self._create_run(migration, plan)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="migration-run")
        future = executor.submit(self._execute_run, run, migration, plan)
        executor.shutdown(wait=False)
        return dataclasses.replace(run), future

    def cancel(self, run_id: Optional[str] = None) -> None:
        """
        Ask the workers of live runs to stop between units of work.

        Args:
            run_id: Run to cancel; every live run when omitted
        """
        with self._lock:
            run_ids = [run_id] if run_id is not None else list(self._stop_events)
            for live_id in run_ids:
                stop_event = self._stop_events.get(live_id)
                if stop_event is None:
                    continue
                logger.warning(f"Cancelling run {live_id}")
                stop_event.set()
                for queue in self._active_queues.get(live_id, ()):
                    queue.close()

    def metrics_for(self, table_name: str, source_collection: Optional[str] = None) -> Optional[MigrationMetrics]:
        """
        Metrics of the most recent pipeline writing to a table.

        Args:
            table_name: Target table
            source_collection: Narrow to the pipeline reading this collection,
                for plans that map several collections onto one table
        """
        with self._lock:
            if source_collection is not None:
                return self._metrics.get((source_collection, table_name))
            for (_, table), metrics in reversed(list(self._metrics.items())):
                if table == table_name:
                    return metrics
            return None

    def _load(self, migration_id: str) -> Tuple[Migration, MigrationPlan]:
        logger.info(f"Starting migration execution for migration: {migration_id}")

        migration = self.store.get_migration(migration_id)
        if migration is None:
            raise ConfigurationError(f"Migration not found: {migration_id}")

        if not migration.target.is_complete():
            raise ConfigurationError("Target database credentials are not configured")

        plan = self.store.latest_plan(migration_id)
        if plan is None:
            raise ConfigurationError(f"No migration plan found for migration: {migration_id}")

        return migration, plan

    def _create_run(self, migration: Migration, plan: MigrationPlan) -> MigrationRun:
        run = MigrationRun(migration_id=migration.id, plan_id=plan.id, status=RunStatus.RUNNING)
        self.store.save_run(run)
        # Registered before any worker starts so an early cancel() is not lost
        with self._lock:
            self._stop_events[run.id] = threading.Event()
            self._active_queues[run.id] = set()
        return run

    def _execute_run(self, run: MigrationRun, migration: Migration, plan: MigrationPlan) -> MigrationRun:
        with self._lock:
            stop_event = self._stop_events[run.id]

        try:
            try:
                source, target = self._connect(migration)
            except Exception as e:
                logger.error(f"Migration {migration.id} failed to connect: {e}")
                self._finalize_run(run, RunStatus.FAILED, str(e))
                if isinstance(e, StoreConnectionError):
                    raise
                raise StoreConnectionError(str(e)) from e

            failures: List[str] = []
            try:
                mappings = plan.collection_mappings
                if mappings:
                    with ThreadPoolExecutor(
                        max_workers=len(mappings),
                        thread_name_prefix="collection",
                    ) as executor:
                        futures = {
                            executor.submit(
                                self.process_collection, mapping, source, target, run.id, stop_event
                            ): mapping
                            for mapping in mappings
                        }
                        for future in as_completed(futures):
                            mapping = futures[future]
                            try:
                                future.result()
                            except Exception as e:
                                failures.append(f"{mapping.source_collection}: {e}")
                else:
                    logger.warning(f"Plan {plan.id} has no table mappings")
            finally:
                source.close()
                target.close()
        finally:
            with self._lock:
                self._stop_events.pop(run.id, None)
                self._active_queues.pop(run.id, None)

        if failures:
            logger.error(f"Migration {migration.id} failed for {len(failures)} collection(s)")
            self._finalize_run(run, RunStatus.FAILED, "; ".join(failures))
        else:
            logger.info(f"Migration completed for migration: {migration.id}")
            self._finalize_run(run, RunStatus.COMPLETED)
        return run

    def _connect(self, migration: Migration) -> Tuple[DocumentSource, TargetStore]:
        source = self.source_factory(migration.source)
        try:
            source.ping()
            target = self.target_factory(migration.target, self.config)
        except Exception:
            source.close()
            raise

        try:
            target.ping()
        except Exception:
            source.close()
            target.close()
            raise
        return source, target

    def process_collection(
        self,
        mapping: CollectionMapping,
        source: DocumentSource,
        target: TargetStore,
        run_id: str,
        stop_event: Optional[threading.Event] = None
    ) -> MigrationMetrics:
        """
        Migrate one collection into its target table.

        Args:
            mapping: Collection mapping to migrate
            source: Open document source
            target: Open target store
            run_id: Run the progress row belongs to
            stop_event: Set to stop the collection's workers

        Returns:
            The collection's final metrics

        Raises:
            DDLError: if the target table cannot be created
            ProducerError: if reading the source fails
        """
        logger.info(f"Processing collection: {mapping.source_collection} -> {mapping.target_table}")

        progress = MigrationProgress(run_id=run_id, table_name=mapping.target_table)
        self.store.save_progress(progress)
        stop_event = stop_event or threading.Event()
        metrics = MigrationMetrics(mapping.target_table)
        key = (mapping.source_collection, mapping.target_table)
        with self._lock:
            self._metrics.pop(key, None)
            self._metrics[key] = metrics

        try:
            self.create_target_table(target, mapping)

            progress.rows_total = source.count_documents(mapping.source_collection)
            self.store.save_progress(progress)
            logger.info(f"Collection {mapping.source_collection} has {progress.rows_total} documents")

            self._run_pipeline(mapping, source, target, metrics, progress.id, run_id, stop_event)

            if stop_event.is_set():
                raise MigrationError(f"Processing of {mapping.source_collection} was cancelled")

        except Exception as e:
            logger.error(f"Failed to process collection: {mapping.source_collection} -> {mapping.target_table}: {e}")
            self._finalize_progress(progress, metrics, RunStatus.FAILED, str(e))
            raise

        self._finalize_progress(progress, metrics, RunStatus.COMPLETED)
        logger.info(f"Completed collection: {mapping.source_collection} -> {mapping.target_table} ({metrics})")
        return metrics

    def create_target_table(self, target: TargetStore, mapping: CollectionMapping) -> None:
        """Create the target table if it does not exist yet."""
        try:
            statement = build_create_table(mapping.target_table, mapping.columns)
        except ValueError as e:
            raise DDLError(mapping.target_table, "", str(e)) from e

        logger.info(f"Creating target table with SQL: {statement}")
        try:
            target.execute(statement)
        except Exception as e:
            logger.error(f"Failed to create target table: {mapping.target_table} - SQL: {statement}")
            raise DDLError(mapping.target_table, statement, str(e)) from e

    def _run_pipeline(
        self,
        mapping: CollectionMapping,
        source: DocumentSource,
        target: TargetStore,
        metrics: MigrationMetrics,
        progress_id: str,
        run_id: str,
        stop_event: threading.Event
    ) -> int:
        config = self.config
        queue = BatchQueue(config.queue_capacity)

        producer = DocumentProducer(
            source,
            queue,
            metrics,
            mapping,
            batch_size=config.batch_size,
            fetch_size=config.source_fetch_size,
            stop_event=stop_event,
        )
        consumers = [
            DocumentConsumer(
                i + 1,
                queue,
                target,
                mapping,
                metrics,
                self.store,
                progress_id,
                max_retries=config.max_retries,
                retry_delay_seconds=config.retry_delay_seconds,
                stop_event=stop_event,
            )
            for i in range(config.consumer_threads)
        ]

        with self._lock:
            run_queues = self._active_queues.get(run_id)
            if run_queues is not None:
                run_queues.add(queue)
            if stop_event.is_set():
                queue.close()

        try:
            with ThreadPoolExecutor(
                max_workers=config.consumer_threads + 1,
                thread_name_prefix=f"migrate-{mapping.target_table}",
            ) as pool:
                producer_future = pool.submit(producer.run)
                consumer_futures = [pool.submit(consumer.run) for consumer in consumers]
                logger.info(f"Started 1 producer and {len(consumers)} consumers for table: {mapping.target_table}")

                try:
                    batches = producer_future.result()
                finally:
                    # Consumers drain what is left, then see the end of the stream
                    queue.close()
                    wait(consumer_futures)

                for future in consumer_futures:
                    future.result()
        finally:
            with self._lock:
                run_queues = self._active_queues.get(run_id)
                if run_queues is not None:
                    run_queues.discard(queue)

        return batches

    def _finalize_progress(
        self,
        progress: MigrationProgress,
        metrics: MigrationMetrics,
        status: RunStatus,
        error: Optional[str] = None
    ) -> None:
        progress.status = status
        progress.rows_processed = metrics.consumed
        progress.error = error
        self.store.save_progress(progress)

    def _finalize_run(self, run: MigrationRun, status: RunStatus, error: Optional[str] = None) -> None:
        run.status = status
        run.ended_at = datetime.now(timezone.utc)
        run.error = error
        self.store.save_run(run)
