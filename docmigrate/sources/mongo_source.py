"""MongoDB document source."""

import logging
from typing import Any, Dict, Iterator, Optional
from urllib.parse import quote_plus

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .base import DocumentSource
from ..errors import StoreConnectionError
from ..models.migration import ConnectionSettings

logger = logging.getLogger(__name__)

ATLAS_HOST_SUFFIX = "mongodb.net"
DEFAULT_PORT = 27017


def build_connection_uri(settings: ConnectionSettings) -> str:
    """
    Build a MongoDB connection URI.

    Atlas hosts use the SRV scheme; other hosts use host:port, with
    credentials only when a username is configured.
    """
    port = settings.port or DEFAULT_PORT
    if settings.username:
        user = quote_plus(settings.username)
        password = quote_plus(settings.password or "")
        database = settings.database or ""
        if ATLAS_HOST_SUFFIX in (settings.host or ""):
            return f"mongodb+srv://{user}:{password}@{settings.host}/{database}"
        return f"mongodb://{user}:{password}@{settings.host}:{port}/{database}"
    return f"mongodb://{settings.host}:{port}"


class MongoDocumentSource(DocumentSource):
    """
    Source backed by a MongoDB database.

    Each call to ``iter_documents`` opens its own server-side cursor, so
    producers for different collections never share one.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        client: Optional[MongoClient] = None,
        server_selection_timeout_ms: int = 10000
    ):
        """
        Initialize the source.

        Args:
            settings: Source connection settings
            client: Pre-built client (mainly for tests)
            server_selection_timeout_ms: How long to wait for a reachable server
        """
        if not settings.database:
            raise StoreConnectionError("Source database name is required")
        self.settings = settings
        self._client = client or MongoClient(
            build_connection_uri(settings),
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        self._db = self._client[settings.database]

    def ping(self) -> None:
        try:
            self._client.admin.command("ping")
        except PyMongoError as e:
            raise StoreConnectionError(f"Cannot reach MongoDB at {self.settings.host}: {e}") from e
        logger.info(f"Connected to MongoDB: {self.settings.host}")

    def count_documents(self, collection: str) -> int:
        return self._db[collection].count_documents({})

    def iter_documents(self, collection: str, fetch_size: int) -> Iterator[Dict[str, Any]]:
        return self._db[collection].find({}, batch_size=fetch_size)

    def close(self) -> None:
        self._client.close()
