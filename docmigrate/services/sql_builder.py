"""DDL and DML statement builders for plan-driven target tables."""

from typing import List, Sequence

from ..models.plan import ColumnMapping

# PostgreSQL keywords that must be quoted when used as identifiers
RESERVED_KEYWORDS = frozenset({
    "user", "order", "group", "table", "index", "select", "insert", "update",
    "delete", "from", "where", "join", "left", "right", "inner", "outer", "on",
    "as", "and", "or", "not", "null", "true", "false", "default", "primary",
    "foreign", "key", "references", "constraint", "check", "unique",
})

JSON_TYPES = frozenset({"json", "jsonb"})

IDENTIFIER_FIELD = "_id"


def quote_identifier(name: str) -> str:
    """Quote an identifier if it case-insensitively matches a reserved keyword."""
    if name.lower() in RESERVED_KEYWORDS:
        return f'"{name}"'
    return name


def is_json_type(data_type: str) -> bool:
    return (data_type or "").strip().lower() in JSON_TYPES


def is_identifier_field(source_field: str) -> bool:
    """Fields holding document identifiers (``_id`` and ``...Id`` references)."""
    return source_field == IDENTIFIER_FIELD or source_field.endswith("Id")


def column_definition(column: ColumnMapping) -> str:
    parts = [quote_identifier(column.target_column), column.data_type]
    if not column.nullable:
        parts.append("NOT NULL")
    if column.primary_key:
        parts.append("PRIMARY KEY")
    return " ".join(parts)


def build_create_table(table_name: str, columns: Sequence[ColumnMapping]) -> str:
    """
    Build an idempotent CREATE TABLE statement.

    Args:
        table_name: Target table name
        columns: Column mappings in declared order

    Returns:
        CREATE TABLE IF NOT EXISTS statement
    """
    if not columns:
        raise ValueError(f"Table {table_name} has no columns")
    definitions = ", ".join(column_definition(c) for c in columns)
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ({definitions})"


def placeholder(column: ColumnMapping) -> str:
    """DB-API placeholder for a column, cast to jsonb for JSON payloads."""
    wants_json = is_json_type(column.data_type) or column.requires_transformation
    if wants_json and not is_identifier_field(column.source_field):
        return "%s::jsonb"
    return "%s"


def build_insert(table_name: str, columns: Sequence[ColumnMapping]) -> str:
    """
    Build a parameterized INSERT with one placeholder per mapped column.

    Args:
        table_name: Target table name
        columns: Column mappings in declared order

    Returns:
        INSERT statement using %s placeholders
    """
    if not columns:
        raise ValueError(f"Table {table_name} has no columns")
    names: List[str] = [quote_identifier(c.target_column) for c in columns]
    values: List[str] = [placeholder(c) for c in columns]
    return (
        f"INSERT INTO {quote_identifier(table_name)} ({', '.join(names)}) "
        f"VALUES ({', '.join(values)})"
    )
