"""Tests for the document consumer."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from bson import ObjectId

from conftest import FakeTargetStore, make_documents, simple_mapping
from docmigrate.errors import BatchProcessingError
from docmigrate.models import DocumentBatch, MigrationProgress
from docmigrate.services.metrics import MigrationMetrics
from docmigrate.workers.batch_queue import BatchQueue
from docmigrate.workers.consumer import DocumentConsumer


class FlakyTarget(FakeTargetStore):
    """Fails the first ``failures`` batch writes."""

    def __init__(self, failures):
        super().__init__(fail_batch=self._should_fail)
        self.failures = failures

    def _should_fail(self, statement, rows):
        return self.batch_calls <= self.failures


@pytest.fixture
def progress(metadata_store):
    record = MigrationProgress(run_id="run-1", table_name="users")
    metadata_store.save_progress(record)
    return record


def make_consumer(queue, target, metadata_store, progress, consumer_id=1, metrics=None, **kwargs):
    kwargs.setdefault("retry_delay_seconds", 0)
    return DocumentConsumer(
        consumer_id,
        queue,
        target,
        simple_mapping("users"),
        metrics or MigrationMetrics("users"),
        metadata_store,
        progress.id,
        **kwargs,
    )


def users_batch(count):
    return DocumentBatch.of(make_documents(count), "users", "users")


def test_batch_succeeding_on_last_attempt_counts_once(metadata_store, progress):
    target = FlakyTarget(failures=2)
    consumer = make_consumer(BatchQueue(1), target, metadata_store, progress, max_retries=3)

    assert consumer.process_with_retry(users_batch(100)) is True

    assert consumer.metrics.consumed == 100
    assert consumer.metrics.errors == 0
    assert target.row_count("users") == 100
    assert metadata_store.get_progress(progress.id).rows_processed == 100


def test_batch_failing_every_attempt_is_dropped(metadata_store, progress):
    target = FlakyTarget(failures=3)
    consumer = make_consumer(BatchQueue(1), target, metadata_store, progress, max_retries=3)

    assert consumer.process_with_retry(users_batch(100)) is False

    assert target.batch_calls == 3
    assert consumer.metrics.consumed == 0
    assert consumer.metrics.errors == 1
    assert consumer.batches_failed == 1
    assert metadata_store.get_progress(progress.id).rows_processed == 0


def test_process_batch_wraps_failures(metadata_store, progress):
    target = FlakyTarget(failures=1)
    consumer = make_consumer(BatchQueue(1), target, metadata_store, progress)

    with pytest.raises(BatchProcessingError):
        consumer.process_batch(users_batch(3))


def test_statement_matches_mapping(metadata_store, progress):
    consumer = make_consumer(BatchQueue(1), FakeTargetStore(), metadata_store, progress)

    assert consumer.insert_sql == "INSERT INTO users (id, name, seq) VALUES (%s, %s, %s)"


def test_every_consumer_sees_end_of_stream_once(metadata_store, progress):
    queue = BatchQueue(5)
    target = FakeTargetStore()
    metrics = MigrationMetrics("users")
    consumers = [
        make_consumer(queue, target, metadata_store, progress, consumer_id=i + 1, metrics=metrics)
        for i in range(4)
    ]

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(c.run) for c in consumers]
        for _ in range(10):
            queue.put(users_batch(10))
        queue.close()
        processed = sum(f.result(timeout=5) for f in futures)

    assert processed == 10
    assert [c.end_of_stream_seen for c in consumers] == [1, 1, 1, 1]
    assert metrics.consumed == 100
    assert target.row_count("users") == 100
    assert metadata_store.get_progress(progress.id).rows_processed == 100


def test_stop_event_interrupts_retry_delay(metadata_store, progress):
    stop = threading.Event()
    stop.set()
    target = FlakyTarget(failures=10)
    consumer = make_consumer(
        BatchQueue(1), target, metadata_store, progress,
        max_retries=5, retry_delay_seconds=30, stop_event=stop,
    )

    assert consumer.process_with_retry(users_batch(5)) is False

    assert target.batch_calls == 1
    assert consumer.metrics.errors == 0


class RecordingStopEvent(threading.Event):
    """Stop event that records retry delays instead of sleeping."""

    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return False


def test_retry_delay_grows_linearly(metadata_store, progress):
    stop = RecordingStopEvent()
    target = FlakyTarget(failures=100)
    consumer = make_consumer(
        BatchQueue(1), target, metadata_store, progress,
        max_retries=4, retry_delay_seconds=0.5, stop_event=stop,
    )

    assert consumer.process_with_retry(users_batch(5)) is False

    assert stop.waits == [0.5, 1.0, 1.5]
    assert target.batch_calls == 4
    assert consumer.metrics.errors == 1


def test_progress_logged_once_per_ten_written_batches(metadata_store, progress, caplog):
    caplog.set_level(logging.DEBUG, logger="docmigrate.workers.consumer")
    target = FakeTargetStore(fail_batch=lambda statement, rows: rows[0][1] == "rejected")
    queue = BatchQueue(20)
    for _ in range(10):
        queue.put(users_batch(2))
    queue.put(DocumentBatch.of([{"_id": ObjectId(), "name": "rejected", "seq": 0}], "users", "users"))
    queue.put(DocumentBatch.of([{"_id": ObjectId(), "name": "rejected", "seq": 1}], "users", "users"))
    queue.close()
    consumer = make_consumer(queue, target, metadata_store, progress, max_retries=1)

    assert consumer.run() == 10

    progress_lines = [
        r for r in caplog.records
        if r.levelno == logging.DEBUG and "processed 10 batches" in r.getMessage()
    ]
    assert len(progress_lines) == 1
    assert consumer.batches_failed == 2
