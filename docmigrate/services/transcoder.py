"""Transcoding of source documents into target row values."""

import hashlib
import json
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Sequence, Tuple

from bson import ObjectId
from bson.decimal128 import Decimal128
from bson import json_util

from ..models.plan import ColumnMapping
from .sql_builder import IDENTIFIER_FIELD, is_json_type

logger = logging.getLogger(__name__)

EMPTY_OBJECT = "{}"
EMPTY_ARRAY = "[]"


def uuid_from_object_id(object_id: ObjectId) -> uuid.UUID:
    """Name-based (MD5, version 3) UUID derived from the identifier's raw bytes."""
    digest = hashlib.md5(object_id.binary).digest()
    return uuid.UUID(bytes=digest, version=3)


def stringify_object_ids(value: Any) -> Any:
    """Recursively replace ObjectIds with their 24-hex-character string form."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {str(k): stringify_object_ids(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify_object_ids(item) for item in value]
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal128):
        return str(value.to_decimal())
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(value: Any) -> str:
    return json.dumps(value, default=_json_default)


class DocumentTranscoder:
    """
    Converts source documents into parameter tuples for a batched INSERT.

    Value order follows the column mappings, matching the placeholders
    produced by ``build_insert`` for the same columns.
    """

    def __init__(self, columns: Sequence[ColumnMapping]):
        self.columns = list(columns)

    def transcode(self, document: Dict[str, Any]) -> Tuple[Any, ...]:
        """Transcode one document into a row tuple."""
        return tuple(self.transcode_value(document, column) for column in self.columns)

    def transcode_many(self, documents: Sequence[Dict[str, Any]]) -> List[Tuple[Any, ...]]:
        """Transcode a list of documents into row tuples."""
        return [self.transcode(doc) for doc in documents]

    def transcode_value(self, document: Dict[str, Any], column: ColumnMapping) -> Any:
        source_field = column.source_field
        target_type = (column.data_type or "VARCHAR").upper()
        json_target = is_json_type(target_type)
        is_id_field = source_field == IDENTIFIER_FIELD

        value = document.get(source_field)

        if is_id_field and isinstance(value, ObjectId):
            if target_type == "UUID":
                return uuid_from_object_id(value)
            # Plain hex string even for JSON columns
            return str(value)

        if isinstance(value, ObjectId):
            text = str(value)
            return json.dumps(text) if json_target else text

        if isinstance(value, dict):
            return json_util.dumps(
                stringify_object_ids(value),
                json_options=json_util.RELAXED_JSON_OPTIONS,
            )

        if column.requires_transformation and not is_id_field:
            try:
                return to_json(stringify_object_ids(value))
            except (TypeError, ValueError) as e:
                logger.debug(f"Could not serialize {source_field} for {column.target_column}: {e}")
                return EMPTY_OBJECT

        if value is not None and json_target and not is_id_field and isinstance(value, (list, tuple)):
            try:
                return to_json(stringify_object_ids(value))
            except (TypeError, ValueError) as e:
                logger.debug(f"Could not serialize {source_field} for {column.target_column}: {e}")
                return EMPTY_ARRAY

        # Nulls for NOT NULL columns are left for the target to reject
        return value
