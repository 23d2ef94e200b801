"""Thread-safe migration metrics."""

import threading
import time
from typing import Any, Dict


class AtomicCounter:
    """An integer counter safe to update from any number of threads."""

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def add(self, amount: int = 1) -> int:
        """Add to the counter and return the new value."""
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class MigrationMetrics:
    """
    Tracks production, consumption, errors and throughput for one table.

    Counters may be incremented concurrently by the producer and every
    consumer; derived values are computed from the counters and the
    wall-clock time since the metrics were created.
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        self._produced = AtomicCounter()
        self._consumed = AtomicCounter()
        self._errors = AtomicCounter()
        self._start = time.monotonic()

    def increment_produced(self, count: int) -> None:
        self._produced.add(count)

    def increment_consumed(self, count: int) -> None:
        self._consumed.add(count)

    def increment_errors(self) -> None:
        self._errors.add(1)

    @property
    def produced(self) -> int:
        return self._produced.value

    @property
    def consumed(self) -> int:
        return self._consumed.value

    @property
    def errors(self) -> int:
        return self._errors.value

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._start

    @property
    def throughput(self) -> float:
        """Documents consumed per second."""
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return 0.0
        return self.consumed / elapsed

    @property
    def backlog(self) -> int:
        """Documents produced but not yet consumed."""
        return self.produced - self.consumed

    def percent_complete(self, total_documents: int) -> float:
        if total_documents <= 0:
            return 0.0
        return self.consumed / total_documents * 100

    def eta_seconds(self, total_documents: int) -> float:
        """Estimated seconds remaining, or -1 when no throughput is observed yet."""
        throughput = self.throughput
        if throughput == 0:
            return -1
        remaining = max(total_documents - self.consumed, 0)
        return remaining / throughput

    def snapshot(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "table_name": self.table_name,
            "produced": self.produced,
            "consumed": self.consumed,
            "errors": self.errors,
            "backlog": self.backlog,
            "throughput": round(self.throughput, 2),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }

    def __str__(self) -> str:
        return (
            f"MigrationMetrics[table={self.table_name}, produced={self.produced}, "
            f"consumed={self.consumed}, errors={self.errors}, "
            f"throughput={self.throughput:.2f} docs/sec, elapsed={self.elapsed_seconds:.1f} sec]"
        )
