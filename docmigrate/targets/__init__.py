"""Relational target stores the engine writes to."""

from .base import TargetStore
from .postgres_target import PostgresTargetStore

__all__ = [
    "TargetStore",
    "PostgresTargetStore",
]
