"""Plan models describing how collections map onto relational tables."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import uuid


def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a key in either snake_case or camelCase form."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


@dataclass
class ColumnMapping:
    """Mapping of one source field onto one target column."""
    target_column: str
    source_field: str
    data_type: str = "VARCHAR"
    nullable: bool = True
    primary_key: bool = False
    requires_transformation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "target_column": self.target_column,
            "source_field": self.source_field,
            "data_type": self.data_type,
            "nullable": self.nullable,
            "primary_key": self.primary_key,
            "requires_transformation": self.requires_transformation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnMapping":
        """Create from dictionary representation."""
        nullable = _pick(data, "nullable", "nullable", True)
        return cls(
            target_column=_pick(data, "target_column", "targetColumn", ""),
            source_field=_pick(data, "source_field", "sourceField", ""),
            data_type=_pick(data, "data_type", "dataType") or "VARCHAR",
            nullable=True if nullable is None else bool(nullable),
            primary_key=bool(_pick(data, "primary_key", "primaryKey", False)),
            requires_transformation=bool(
                _pick(data, "requires_transformation", "requiresTransformation", False)
            ),
        )


@dataclass
class CollectionMapping:
    """Mapping of a source collection onto a target table."""
    source_collection: str
    target_table: str
    columns: List[ColumnMapping] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source_collection": self.source_collection,
            "target_table": self.target_table,
            "columns": [c.to_dict() for c in self.columns],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectionMapping":
        """Create from dictionary representation."""
        return cls(
            source_collection=_pick(data, "source_collection", "sourceCollection", ""),
            target_table=_pick(data, "target_table", "targetTable", ""),
            columns=[ColumnMapping.from_dict(c) for c in data.get("columns", [])],
        )

    @property
    def primary_keys(self) -> List[str]:
        """Target columns flagged as primary key."""
        return [c.target_column for c in self.columns if c.primary_key]


@dataclass
class MigrationPlan:
    """An ordered list of collection mappings for one migration."""
    migration_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    collection_mappings: List[CollectionMapping] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "migration_id": self.migration_id,
            "created_at": self.created_at.isoformat(),
            "table_mappings": [m.to_dict() for m in self.collection_mappings],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], migration_id: Optional[str] = None) -> "MigrationPlan":
        """Create from dictionary representation."""
        mappings = _pick(data, "table_mappings", "tableMappings", []) or []
        plan = cls(
            migration_id=migration_id or _pick(data, "migration_id", "migrationId", ""),
            collection_mappings=[CollectionMapping.from_dict(m) for m in mappings],
        )
        if data.get("id"):
            plan.id = str(data["id"])
        return plan

    @classmethod
    def from_json_file(cls, filepath: str, migration_id: Optional[str] = None) -> "MigrationPlan":
        """Load a plan from a JSON file."""
        with open(filepath) as f:
            return cls.from_dict(json.load(f), migration_id=migration_id)

    def get_mapping(self, source_collection: str) -> Optional[CollectionMapping]:
        """Get the mapping for a source collection."""
        for mapping in self.collection_mappings:
            if mapping.source_collection == source_collection:
                return mapping
        return None
