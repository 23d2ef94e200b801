"""Tests for DDL/DML statement building."""

import pytest

from docmigrate.models import ColumnMapping
from docmigrate.services.sql_builder import (
    build_create_table,
    build_insert,
    is_identifier_field,
    quote_identifier,
)


class TestQuoteIdentifier:

    def test_reserved_words_are_quoted(self):
        assert quote_identifier("order") == '"order"'
        assert quote_identifier("user") == '"user"'

    def test_reserved_match_is_case_insensitive(self):
        assert quote_identifier("Order") == '"Order"'
        assert quote_identifier("GROUP") == '"GROUP"'

    def test_ordinary_names_are_left_alone(self):
        assert quote_identifier("amount") == "amount"
        assert quote_identifier("orders") == "orders"


class TestCreateTable:

    def test_orders_table(self):
        columns = [
            ColumnMapping("id", "_id", "UUID", nullable=False, primary_key=True),
            ColumnMapping("order", "orderNumber", "INTEGER"),
            ColumnMapping("amount", "amount", "NUMERIC(12, 2)", nullable=False),
        ]

        sql = build_create_table("orders", columns)

        assert sql == (
            'CREATE TABLE IF NOT EXISTS orders '
            '(id UUID NOT NULL PRIMARY KEY, "order" INTEGER, amount NUMERIC(12, 2) NOT NULL)'
        )

    def test_reserved_table_name_is_quoted(self):
        sql = build_create_table("user", [ColumnMapping("email", "email", "TEXT")])

        assert sql.startswith('CREATE TABLE IF NOT EXISTS "user" (')

    def test_no_columns_is_rejected(self):
        with pytest.raises(ValueError):
            build_create_table("empty", [])


class TestInsert:

    def test_jsonb_columns_get_cast(self):
        columns = [
            ColumnMapping("id", "_id", "UUID"),
            ColumnMapping("order", "order", "VARCHAR"),
            ColumnMapping("items", "items", "JSONB"),
            ColumnMapping("meta", "meta", "TEXT", requires_transformation=True),
        ]

        sql = build_insert("orders", columns)

        assert sql == (
            'INSERT INTO orders (id, "order", items, meta) '
            "VALUES (%s, %s, %s::jsonb, %s::jsonb)"
        )

    def test_identifier_fields_are_never_cast(self):
        columns = [
            ColumnMapping("mongo_id", "_id", "JSONB"),
            ColumnMapping("customer", "customerId", "JSON", requires_transformation=True),
        ]

        sql = build_insert("payments", columns)

        assert sql.endswith("VALUES (%s, %s)")

    def test_one_placeholder_per_column(self):
        columns = [ColumnMapping(f"c{i}", f"f{i}") for i in range(7)]

        sql = build_insert("wide", columns)

        assert sql.count("%s") == 7


@pytest.mark.parametrize("field,expected", [
    ("_id", True),
    ("customerId", True),
    ("id", False),
    ("identity", False),
])
def test_is_identifier_field(field, expected):
    assert is_identifier_field(field) is expected
