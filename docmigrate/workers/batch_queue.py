"""Bounded, closable channel of batches between one producer and N consumers."""

import threading
from collections import deque
from typing import Deque, Optional

from ..errors import QueueClosedError
from ..models.batch import DocumentBatch, END_OF_STREAM


class BatchQueue:
    """
    A fixed-capacity FIFO of document batches.

    ``put`` blocks while the queue is full, which is what throttles the
    producer when consumers fall behind. Once ``close`` has been called and
    the remaining batches are drained, every ``get`` returns END_OF_STREAM,
    so each consumer sees the end of the stream exactly once before it exits.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Queue capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._items: Deque[DocumentBatch] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._closed = False

    def put(self, batch: DocumentBatch, timeout: Optional[float] = None) -> bool:
        """
        Enqueue a batch, blocking while the queue is full.

        Args:
            batch: Batch to enqueue
            timeout: Seconds to wait for space, or None to wait indefinitely

        Returns:
            True if enqueued, False if the timeout expired first

        Raises:
            QueueClosedError: if the queue is closed
        """
        if batch.is_sentinel:
            raise ValueError("END_OF_STREAM is issued by close(), not put()")
        with self._not_full:
            if not self._not_full.wait_for(
                lambda: self._closed or len(self._items) < self.capacity,
                timeout=timeout,
            ):
                return False
            if self._closed:
                raise QueueClosedError("Cannot put a batch on a closed queue")
            self._items.append(batch)
            self._not_empty.notify()
            return True

    def get(self) -> DocumentBatch:
        """Dequeue the next batch, blocking while the queue is empty and open."""
        with self._not_empty:
            self._not_empty.wait_for(lambda: self._closed or self._items)
            if self._items:
                batch = self._items.popleft()
                self._not_full.notify()
                return batch
            return END_OF_STREAM

    def close(self) -> None:
        """Stop accepting batches and wake every waiting producer and consumer."""
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def full(self) -> bool:
        with self._lock:
            return len(self._items) >= self.capacity
