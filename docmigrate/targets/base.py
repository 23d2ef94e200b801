"""Base interface for relational target stores."""

from abc import ABC, abstractmethod
from typing import Any, Sequence


class TargetStore(ABC):
    """
    Base class for target stores.

    One store is opened per run and shared by every consumer worker, so
    implementations must be safe to call from multiple threads.
    """

    @abstractmethod
    def ping(self) -> None:
        """
        Verify the target is reachable.

        Raises:
            StoreConnectionError: if the target cannot be reached
        """
        pass

    @abstractmethod
    def execute(self, statement: str) -> None:
        """Execute a single statement such as DDL."""
        pass

    @abstractmethod
    def execute_batch(self, statement: str, rows: Sequence[Sequence[Any]]) -> None:
        """
        Execute a parameterized statement once per row as one atomic write.

        Args:
            statement: Statement with one placeholder per value
            rows: Parameter tuples
        """
        pass

    def close(self) -> None:
        """Release the target connection(s)."""
        pass

    def __enter__(self) -> "TargetStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
