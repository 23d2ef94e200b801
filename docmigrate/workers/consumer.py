"""Consumer that writes document batches to the target store."""

import logging
import threading
from typing import Optional

from .batch_queue import BatchQueue
from ..errors import BatchProcessingError
from ..models.batch import DocumentBatch
from ..models.plan import CollectionMapping
from ..services.metadata_store import MetadataStore
from ..services.metrics import MigrationMetrics
from ..services.sql_builder import build_insert
from ..services.transcoder import DocumentTranscoder
from ..targets.base import TargetStore

logger = logging.getLogger(__name__)


class DocumentConsumer:
    """
    Pulls batches from the queue, transcodes them and writes them to the target.

    Failed batches are retried with linear backoff. A batch that still fails
    after the last attempt is counted once in the error metric and dropped.
    """

    def __init__(
        self,
        consumer_id: int,
        queue: BatchQueue,
        target: TargetStore,
        mapping: CollectionMapping,
        metrics: MigrationMetrics,
        metadata_store: MetadataStore,
        progress_id: str,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        stop_event: Optional[threading.Event] = None
    ):
        """
        Initialize the consumer.

        Args:
            consumer_id: 1-based worker number, used in log messages
            queue: Queue shared with the producer and sibling consumers
            target: Shared target store
            mapping: Collection mapping being migrated
            metrics: Metrics shared by all workers of the collection
            metadata_store: Store holding the progress row
            progress_id: Progress row to increment
            max_retries: Attempts per batch
            retry_delay_seconds: Base delay, multiplied by the attempt number
            stop_event: Set to stop the consumer between batches
        """
        self.consumer_id = consumer_id
        self.queue = queue
        self.target = target
        self.target_table = mapping.target_table
        self.metrics = metrics
        self.metadata_store = metadata_store
        self.progress_id = progress_id
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self._stop_event = stop_event or threading.Event()

        self.insert_sql = build_insert(mapping.target_table, mapping.columns)
        self.transcoder = DocumentTranscoder(mapping.columns)

        self.batches_processed = 0
        self.batches_failed = 0
        self.end_of_stream_seen = 0

    def run(self) -> int:
        """
        Consume batches until the queue reports the end of the stream.

        Returns:
            Number of batches written successfully
        """
        logger.info(f"Consumer #{self.consumer_id} started for table: {self.target_table}")

        while not self._stop_event.is_set():
            batch = self.queue.get()

            if batch.is_sentinel:
                self.end_of_stream_seen += 1
                logger.info(f"Consumer #{self.consumer_id} reached end of stream, shutting down")
                break

            if not self.process_with_retry(batch):
                continue

            self.batches_processed += 1
            if self.batches_processed % 10 == 0:
                logger.debug(
                    f"Consumer #{self.consumer_id} processed {self.batches_processed} batches "
                    f"(throughput: {self.metrics.throughput:.2f} docs/sec)"
                )
        else:
            logger.warning(f"Consumer #{self.consumer_id} interrupted")

        logger.info(
            f"Consumer #{self.consumer_id} completed for table: {self.target_table} "
            f"(processed {self.batches_processed} batches, {self.batches_failed} failed)"
        )
        return self.batches_processed

    def process_with_retry(self, batch: DocumentBatch) -> bool:
        """
        Process a batch, retrying up to max_retries attempts.

        Returns:
            True if the batch was written, False if it was dropped
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                self.process_batch(batch)
                return True
            except BatchProcessingError as e:
                last_error = e

            if attempt < self.max_retries:
                delay = self.retry_delay_seconds * attempt
                logger.warning(
                    f"Consumer #{self.consumer_id} batch processing failed "
                    f"(attempt {attempt}/{self.max_retries}), retrying in {delay:.2f}s: {last_error}"
                )
                if self._stop_event.wait(delay):
                    logger.warning(f"Consumer #{self.consumer_id} interrupted during retry delay")
                    return False

        logger.error(
            f"Consumer #{self.consumer_id} failed to process batch of {batch.size} documents "
            f"after {self.max_retries} attempts for table: {self.target_table}: {last_error}"
        )
        self.metrics.increment_errors()
        self.batches_failed += 1
        return False

    def process_batch(self, batch: DocumentBatch) -> None:
        """
        Transcode and write one batch, then record it.

        Raises:
            BatchProcessingError: if transcoding or the write fails
        """
        try:
            rows = self.transcoder.transcode_many(batch.documents)
            self.target.execute_batch(self.insert_sql, rows)
        except Exception as e:
            raise BatchProcessingError(
                f"Batch of {batch.size} documents for {self.target_table} failed: {e}"
            ) from e

        self.metrics.increment_consumed(batch.size)
        self._update_progress(batch.size)

    def _update_progress(self, count: int) -> None:
        try:
            self.metadata_store.increment_rows_processed(self.progress_id, count)
        except Exception as e:
            logger.warning(f"Failed to update progress for consumer #{self.consumer_id}: {e}")
