"""Batch model passed between producers and consumers."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class DocumentBatch:
    """
    A batch of source documents bound for one target table.

    The END_OF_STREAM instance carries no payload and is only ever used to
    tell a consumer that no more batches will arrive.
    """
    documents: List[Dict[str, Any]] = field(default_factory=list)
    source_collection: Optional[str] = None
    target_table: Optional[str] = None
    is_sentinel: bool = False

    @classmethod
    def of(cls, documents: List[Dict[str, Any]], source_collection: str, target_table: str) -> "DocumentBatch":
        """Create a regular batch from a list of documents."""
        return cls(
            documents=list(documents),
            source_collection=source_collection,
            target_table=target_table,
        )

    @property
    def size(self) -> int:
        return 0 if self.is_sentinel else len(self.documents)

    def __len__(self) -> int:
        return self.size


END_OF_STREAM = DocumentBatch(is_sentinel=True)
