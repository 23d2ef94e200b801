"""Base interface for document sources."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator


class DocumentSource(ABC):
    """
    Base class for document sources.

    A source is opened once per run and shared by every collection task;
    each cursor it hands out belongs to a single producer thread.
    """

    @abstractmethod
    def ping(self) -> None:
        """
        Verify the source is reachable.

        Raises:
            StoreConnectionError: if the source cannot be reached
        """
        pass

    @abstractmethod
    def count_documents(self, collection: str) -> int:
        """Count all documents in a collection."""
        pass

    @abstractmethod
    def iter_documents(self, collection: str, fetch_size: int) -> Iterator[Dict[str, Any]]:
        """
        Stream every document of a collection.

        Args:
            collection: Source collection name
            fetch_size: Documents fetched per round trip

        Yields:
            Documents as field -> value mappings
        """
        pass

    @contextmanager
    def open_cursor(self, collection: str, fetch_size: int) -> Iterator[Iterator[Dict[str, Any]]]:
        """Open a cursor over a collection, closing it on exit."""
        documents = self.iter_documents(collection, fetch_size)
        try:
            yield documents
        finally:
            close = getattr(documents, "close", None)
            if close is not None:
                close()

    def close(self) -> None:
        """Release the source connection."""
        pass

    def __enter__(self) -> "DocumentSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
