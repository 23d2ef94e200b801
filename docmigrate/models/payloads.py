"""Pydantic models for JSON run definitions."""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConfigurationError
from .migration import ConnectionSettings, EngineConfig, Migration
from .plan import ColumnMapping, CollectionMapping, MigrationPlan


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConnectionPayload(_CamelModel):
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def to_settings(self) -> ConnectionSettings:
        return ConnectionSettings(
            host=self.host,
            port=self.port,
            database=self.database,
            username=self.username,
            password=self.password,
        )


class ColumnMappingPayload(_CamelModel):
    target_column: str = Field(alias="targetColumn", min_length=1)
    source_field: str = Field(alias="sourceField", min_length=1)
    data_type: str = Field(default="VARCHAR", alias="dataType")
    nullable: bool = True
    primary_key: bool = Field(default=False, alias="primaryKey")
    requires_transformation: bool = Field(default=False, alias="requiresTransformation")


class CollectionMappingPayload(_CamelModel):
    source_collection: str = Field(alias="sourceCollection", min_length=1)
    target_table: str = Field(alias="targetTable", min_length=1)
    columns: List[ColumnMappingPayload] = Field(min_length=1)


class PlanPayload(_CamelModel):
    table_mappings: List[CollectionMappingPayload] = Field(default_factory=list, alias="tableMappings")


class MigrationPayload(_CamelModel):
    name: str = "migration"
    source: ConnectionPayload = Field(default_factory=ConnectionPayload)
    target: ConnectionPayload = Field(default_factory=ConnectionPayload)


class EnginePayload(_CamelModel):
    consumer_threads: Optional[int] = Field(default=None, alias="consumerThreads")
    queue_capacity: Optional[int] = Field(default=None, alias="queueCapacity")
    batch_size: Optional[int] = Field(default=None, alias="batchSize")
    max_retries: Optional[int] = Field(default=None, alias="maxRetries")
    retry_delay_ms: Optional[int] = Field(default=None, alias="retryDelayMs")
    source_fetch_size: Optional[int] = Field(default=None, alias="sourceFetchSize")
    target_pool_size: Optional[int] = Field(default=None, alias="targetPoolSize")


class RunDefinition(_CamelModel):
    """A complete, self-contained description of one migration run."""
    migration: MigrationPayload
    plan: PlanPayload
    engine: EnginePayload = Field(default_factory=EnginePayload)

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "RunDefinition":
        """Validate a raw dictionary, raising ConfigurationError on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid run definition: {e}") from e

    @classmethod
    def from_json_file(cls, filepath: str) -> "RunDefinition":
        """Load and validate a run definition from a JSON file."""
        try:
            with open(filepath) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read run definition {filepath}: {e}") from e
        return cls.parse(data)

    def to_migration(self) -> Migration:
        return Migration(
            name=self.migration.name,
            source=self.migration.source.to_settings(),
            target=self.migration.target.to_settings(),
        )

    def to_plan(self, migration_id: str) -> MigrationPlan:
        mappings = []
        for table in self.plan.table_mappings:
            mappings.append(CollectionMapping(
                source_collection=table.source_collection,
                target_table=table.target_table,
                columns=[ColumnMapping(**column.model_dump()) for column in table.columns],
            ))
        return MigrationPlan(migration_id=migration_id, collection_mappings=mappings)

    def to_engine_config(self, base: Optional[EngineConfig] = None) -> EngineConfig:
        """Overlay the tunables set in this definition on a base config."""
        values = (base or EngineConfig()).to_dict()
        values.update(self.engine.model_dump(exclude_none=True))
        return EngineConfig.from_dict(values)
