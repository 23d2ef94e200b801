"""Core services for the migration engine."""

from .metadata_store import MetadataStore, InMemoryMetadataStore
from .metrics import AtomicCounter, MigrationMetrics
from .transcoder import DocumentTranscoder, uuid_from_object_id
from .sql_builder import build_create_table, build_insert, quote_identifier

__all__ = [
    "MetadataStore",
    "InMemoryMetadataStore",
    "AtomicCounter",
    "MigrationMetrics",
    "DocumentTranscoder",
    "uuid_from_object_id",
    "build_create_table",
    "build_insert",
    "quote_identifier",
]
