"""Migration execution models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from enum import Enum
from datetime import datetime, timezone
import os
import uuid

from ..errors import ConfigurationError


class RunStatus(str, Enum):
    """Status of a run or of a single collection's progress."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class ConnectionSettings:
    """Connection details for a source or target store."""
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def is_complete(self) -> bool:
        """True when every field needed for an authenticated connection is set."""
        return all(
            value not in (None, "")
            for value in (self.host, self.port, self.database, self.username, self.password)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (password omitted)."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionSettings":
        """Create from dictionary representation."""
        port = data.get("port")
        return cls(
            host=data.get("host"),
            port=int(port) if port is not None else None,
            database=data.get("database"),
            username=data.get("username"),
            password=data.get("password"),
        )


@dataclass
class Migration:
    """A configured migration between one source and one target database."""
    name: str
    source: ConnectionSettings = field(default_factory=ConnectionSettings)
    target: ConnectionSettings = field(default_factory=ConnectionSettings)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "source": self.source.to_dict(),
            "target": self.target.to_dict(),
        }


@dataclass
class MigrationRun:
    """One execution of a migration plan."""
    migration_id: str
    plan_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "migration_id": self.migration_id,
            "plan_id": self.plan_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "error": self.error,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None


@dataclass
class MigrationProgress:
    """Per-table progress of a run."""
    run_id: str
    table_name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    rows_total: int = 0
    rows_processed: int = 0
    status: RunStatus = RunStatus.RUNNING
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "run_id": self.run_id,
            "table_name": self.table_name,
            "rows_total": self.rows_total,
            "rows_processed": self.rows_processed,
            "status": self.status.value,
            "error": self.error,
        }


@dataclass
class EngineConfig:
    """Tunables for the producer/consumer pipeline."""
    consumer_threads: int = 4
    queue_capacity: int = 10000  # Max batches in queue
    batch_size: int = 1000  # Documents per batch
    max_retries: int = 3  # Attempts per batch
    retry_delay_ms: int = 1000  # Multiplied by the attempt number
    source_fetch_size: int = 5000  # Source cursor fetch size
    target_pool_size: int = 10

    ENV_PREFIX = "MIGRATION_"

    def __post_init__(self):
        for name in (
            "consumer_threads",
            "queue_capacity",
            "batch_size",
            "max_retries",
            "source_fetch_size",
            "target_pool_size",
        ):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.retry_delay_ms < 0:
            raise ConfigurationError(f"retry_delay_ms must not be negative, got {self.retry_delay_ms}")

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "consumer_threads": self.consumer_threads,
            "queue_capacity": self.queue_capacity,
            "batch_size": self.batch_size,
            "max_retries": self.max_retries,
            "retry_delay_ms": self.retry_delay_ms,
            "source_fetch_size": self.source_fetch_size,
            "target_pool_size": self.target_pool_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create from dictionary representation."""
        defaults = cls()
        values = {}
        for name, default in defaults.to_dict().items():
            raw = data.get(name, default)
            try:
                values[name] = int(raw)
            except (TypeError, ValueError):
                raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Create from MIGRATION_* environment variables."""
        environ = os.environ if environ is None else environ
        data = {}
        for name in cls().to_dict():
            key = cls.ENV_PREFIX + name.upper()
            if key in environ:
                data[name] = environ[key]
        return cls.from_dict(data)
