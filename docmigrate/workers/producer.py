"""Producer that streams source documents into the batch queue."""

import logging
import threading
from typing import Any, Dict, List, Optional

from .batch_queue import BatchQueue
from ..errors import ProducerError, QueueClosedError
from ..models.batch import DocumentBatch
from ..models.plan import CollectionMapping
from ..services.metrics import MigrationMetrics
from ..sources.base import DocumentSource

logger = logging.getLogger(__name__)


class DocumentProducer:
    """
    Reads one collection through a single cursor and pushes fixed-size batches.

    There is exactly one producer per collection: a streaming cursor cannot
    be split between threads without range sharding. The producer never
    signals the end of the stream itself; the coordinator closes the queue
    once ``run`` has returned.
    """

    def __init__(
        self,
        source: DocumentSource,
        queue: BatchQueue,
        metrics: MigrationMetrics,
        mapping: CollectionMapping,
        batch_size: int,
        fetch_size: int,
        stop_event: Optional[threading.Event] = None
    ):
        self.source = source
        self.queue = queue
        self.metrics = metrics
        self.collection_name = mapping.source_collection
        self.target_table = mapping.target_table
        self.batch_size = batch_size
        self.fetch_size = fetch_size
        self._stop_event = stop_event or threading.Event()
        self.batches_produced = 0

    def run(self) -> int:
        """
        Drain the source cursor into the queue.

        Returns:
            Number of batches enqueued

        Raises:
            ProducerError: if reading from the source fails
        """
        logger.info(f"Producer started for collection: {self.collection_name} -> {self.target_table}")

        try:
            with self.source.open_cursor(self.collection_name, self.fetch_size) as cursor:
                batch: List[Dict[str, Any]] = []
                for document in cursor:
                    if self._stop_event.is_set():
                        logger.warning(f"Producer interrupted for collection: {self.collection_name}")
                        return self.batches_produced
                    batch.append(document)
                    if len(batch) >= self.batch_size:
                        self._push(batch)
                        batch = []

                if batch:
                    self._push(batch)

        except QueueClosedError:
            logger.warning(f"Queue closed, producer stopping for collection: {self.collection_name}")
            return self.batches_produced
        except Exception as e:
            logger.error(f"Producer failed for collection: {self.collection_name}: {e}")
            self.metrics.increment_errors()
            raise ProducerError(self.collection_name, str(e)) from e

        logger.info(
            f"Producer completed for collection: {self.collection_name} "
            f"(produced {self.batches_produced} batches, {self.metrics.produced} documents)"
        )
        return self.batches_produced

    def _push(self, documents: List[Dict[str, Any]]) -> None:
        batch = DocumentBatch.of(documents, self.collection_name, self.target_table)
        self.queue.put(batch)
        self.metrics.increment_produced(batch.size)
        self.batches_produced += 1

        if self.batches_produced % 10 == 0:
            logger.debug(
                f"Producer pushed batch #{self.batches_produced} for {self.collection_name} "
                f"({batch.size} docs, queue size: {self.queue.qsize()})"
            )
