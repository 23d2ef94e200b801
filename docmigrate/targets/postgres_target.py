"""PostgreSQL target store."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

import psycopg2
from psycopg2 import extras, pool
from psycopg2.extensions import adapt, register_adapter
from bson.decimal128 import Decimal128

from .base import TargetStore
from ..errors import StoreConnectionError
from ..models.migration import ConnectionSettings

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5432


def _adapt_decimal128(value: Decimal128):
    return adapt(value.to_decimal())


class PostgresTargetStore(TargetStore):
    """
    Target store backed by a psycopg2 threaded connection pool.

    Callers beyond the pool size wait for a free connection instead of
    failing with a pool exhaustion error.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        pool_size: int = 10,
        connect_timeout: int = 10,
        connection_pool: Optional[pool.AbstractConnectionPool] = None
    ):
        """
        Initialize the store and open the pool.

        Args:
            settings: Target connection settings
            pool_size: Maximum number of pooled connections
            connect_timeout: Seconds to wait when opening a connection
            connection_pool: Pre-built pool (mainly for tests)
        """
        self.settings = settings
        self.pool_size = pool_size
        self._slots = threading.BoundedSemaphore(pool_size)

        extras.register_uuid()
        register_adapter(Decimal128, _adapt_decimal128)

        if connection_pool is not None:
            self._pool = connection_pool
            return

        try:
            self._pool = pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=pool_size,
                host=settings.host,
                port=settings.port or DEFAULT_PORT,
                dbname=settings.database,
                user=settings.username,
                password=settings.password,
                connect_timeout=connect_timeout,
            )
        except psycopg2.Error as e:
            raise StoreConnectionError(f"Failed to connect to PostgreSQL at {settings.host}: {e}") from e

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a pooled connection, returning it on exit."""
        with self._slots:
            conn = self._pool.getconn()
            try:
                yield conn
            finally:
                self._pool.putconn(conn)

    def ping(self) -> None:
        try:
            with self.connection() as conn:
                with conn:
                    with conn.cursor() as cur:
                        cur.execute("SELECT 1")
        except psycopg2.Error as e:
            raise StoreConnectionError(f"Cannot reach PostgreSQL at {self.settings.host}: {e}") from e
        logger.info(f"Connected to PostgreSQL: {self.settings.host}")

    def execute(self, statement: str) -> None:
        with self.connection() as conn:
            with conn:
                with conn.cursor() as cur:
                    cur.execute(statement)

    def execute_batch(self, statement: str, rows: Sequence[Sequence[Any]]) -> None:
        if not rows:
            return
        with self.connection() as conn:
            # Commits on success, rolls back the whole batch on error
            with conn:
                with conn.cursor() as cur:
                    extras.execute_batch(cur, statement, rows, page_size=len(rows))

    def close(self) -> None:
        if not self._pool.closed:
            self._pool.closeall()
