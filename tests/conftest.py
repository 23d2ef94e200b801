"""Shared fixtures and in-memory stores for the migration engine tests."""

import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import pytest
from bson import ObjectId

from docmigrate.errors import StoreConnectionError
from docmigrate.models import (
    ColumnMapping,
    CollectionMapping,
    ConnectionSettings,
    EngineConfig,
    Migration,
    MigrationPlan,
)
from docmigrate.services.metadata_store import InMemoryMetadataStore
from docmigrate.sources.base import DocumentSource
from docmigrate.targets.base import TargetStore


class FakeDocumentSource(DocumentSource):
    """Document source reading from a dict of collection name -> documents."""

    def __init__(
        self,
        collections: Dict[str, List[Dict[str, Any]]],
        fail_after: Optional[Dict[str, int]] = None,
        reachable: bool = True
    ):
        self.collections = collections
        self.fail_after = fail_after or {}
        self.reachable = reachable
        self.closed = False

    def ping(self) -> None:
        if not self.reachable:
            raise StoreConnectionError("source unreachable")

    def count_documents(self, collection: str) -> int:
        return len(self.collections.get(collection, []))

    def iter_documents(self, collection: str, fetch_size: int) -> Iterator[Dict[str, Any]]:
        limit = self.fail_after.get(collection)
        for index, document in enumerate(self.collections.get(collection, [])):
            if limit is not None and index >= limit:
                raise RuntimeError(f"cursor for {collection} lost")
            yield document

    def close(self) -> None:
        self.closed = True


class FakeTargetStore(TargetStore):
    """Thread-safe target recording created tables and inserted rows."""

    def __init__(
        self,
        fail_batch: Optional[Callable[[str, Sequence[Sequence[Any]]], bool]] = None,
        fail_ddl: Optional[Callable[[str], bool]] = None,
        reachable: bool = True
    ):
        self.fail_batch = fail_batch
        self.fail_ddl = fail_ddl
        self.reachable = reachable
        self.closed = False
        self.statements: List[str] = []
        self.rows: Dict[str, List[Sequence[Any]]] = {}
        self.batch_calls = 0
        self._lock = threading.Lock()

    def ping(self) -> None:
        if not self.reachable:
            raise StoreConnectionError("target unreachable")

    def execute(self, statement: str) -> None:
        if self.fail_ddl and self.fail_ddl(statement):
            raise RuntimeError("permission denied for schema public")
        with self._lock:
            self.statements.append(statement)

    def execute_batch(self, statement: str, rows: Sequence[Sequence[Any]]) -> None:
        with self._lock:
            self.batch_calls += 1
        if self.fail_batch and self.fail_batch(statement, rows):
            raise RuntimeError("duplicate key value violates unique constraint")
        table = statement.split()[2].strip('"')
        with self._lock:
            self.rows.setdefault(table, []).extend(rows)

    def row_count(self, table: str) -> int:
        with self._lock:
            return len(self.rows.get(table, []))

    def close(self) -> None:
        self.closed = True


def make_documents(count: int, **extra: Any) -> List[Dict[str, Any]]:
    return [{"_id": ObjectId(), "name": f"doc-{i}", "seq": i, **extra} for i in range(count)]


def simple_mapping(collection: str, table: Optional[str] = None) -> CollectionMapping:
    return CollectionMapping(
        source_collection=collection,
        target_table=table or collection,
        columns=[
            ColumnMapping("id", "_id", "UUID", nullable=False, primary_key=True),
            ColumnMapping("name", "name", "VARCHAR(255)"),
            ColumnMapping("seq", "seq", "INTEGER"),
        ],
    )


@pytest.fixture
def metadata_store():
    return InMemoryMetadataStore()


@pytest.fixture
def engine_config():
    """Small, fast engine config with no retry delay."""
    return EngineConfig(
        consumer_threads=4,
        queue_capacity=10,
        batch_size=1000,
        max_retries=3,
        retry_delay_ms=0,
    )


@pytest.fixture
def target_settings():
    return ConnectionSettings(
        host="localhost",
        port=5432,
        database="warehouse",
        username="postgres",
        password="secret",
    )


@pytest.fixture
def make_migration(metadata_store, target_settings):
    """Save a migration with a plan covering the given mappings."""

    def _make(*mappings: CollectionMapping) -> Migration:
        migration = Migration(
            name="test migration",
            source=ConnectionSettings(host="localhost", port=27017, database="app"),
            target=target_settings,
        )
        metadata_store.save_migration(migration)
        metadata_store.save_plan(MigrationPlan(
            migration_id=migration.id,
            collection_mappings=list(mappings),
        ))
        return migration

    return _make
