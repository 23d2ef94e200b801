"""Document sources the engine reads from."""

from .base import DocumentSource
from .mongo_source import MongoDocumentSource, build_connection_uri

__all__ = [
    "DocumentSource",
    "MongoDocumentSource",
    "build_connection_uri",
]
