"""Producer and consumer workers of the migration pipeline."""

from .batch_queue import BatchQueue
from .producer import DocumentProducer
from .consumer import DocumentConsumer

__all__ = [
    "BatchQueue",
    "DocumentProducer",
    "DocumentConsumer",
]
