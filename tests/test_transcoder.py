"""Tests for document to row transcoding."""

import hashlib
import json
import uuid
from datetime import datetime

from bson import ObjectId

from docmigrate.models import ColumnMapping
from docmigrate.services.transcoder import DocumentTranscoder, uuid_from_object_id

OID = ObjectId("507f1f77bcf86cd799439011")


def transcode(document, *columns):
    return DocumentTranscoder(columns).transcode(document)


class TestIdentifiers:

    def test_uuid_is_name_based_md5_of_raw_bytes(self):
        expected = uuid.UUID(bytes=hashlib.md5(OID.binary).digest(), version=3)

        value = uuid_from_object_id(OID)

        assert value == expected
        assert value.version == 3

    def test_uuid_is_deterministic(self):
        first = transcode({"_id": OID}, ColumnMapping("id", "_id", "UUID"))
        second = transcode({"_id": ObjectId(str(OID))}, ColumnMapping("id", "_id", "uuid"))

        assert first == second
        assert isinstance(first[0], uuid.UUID)

    def test_id_into_json_column_is_plain_hex(self):
        row = transcode({"_id": OID}, ColumnMapping("mongo_id", "_id", "JSONB"))

        assert row == ("507f1f77bcf86cd799439011",)

    def test_id_into_text_column_is_hex(self):
        row = transcode({"_id": OID}, ColumnMapping("mongo_id", "_id", "VARCHAR(24)"))

        assert row == ("507f1f77bcf86cd799439011",)

    def test_non_object_id_primary_key_passes_through(self):
        row = transcode({"_id": "custom-key"}, ColumnMapping("id", "_id", "VARCHAR"))

        assert row == ("custom-key",)

    def test_reference_into_json_column_is_quoted(self):
        row = transcode({"ownerId": OID}, ColumnMapping("owner", "ownerId", "JSONB"))

        assert row == ('"507f1f77bcf86cd799439011"',)


class TestStructuredValues:

    def test_nested_document_becomes_json(self):
        document = {"address": {"city": "Oslo", "owner": OID, "lines": ["a", "b"]}}

        row = transcode(document, ColumnMapping("address", "address", "JSONB"))

        assert json.loads(row[0]) == {
            "city": "Oslo",
            "owner": "507f1f77bcf86cd799439011",
            "lines": ["a", "b"],
        }

    def test_list_into_json_column(self):
        row = transcode({"tags": ["a", OID]}, ColumnMapping("tags", "tags", "JSONB"))

        assert json.loads(row[0]) == ["a", "507f1f77bcf86cd799439011"]

    def test_list_of_ids_into_json_column(self):
        row = transcode({"tags": [OID]}, ColumnMapping("tags", "tags", "JSONB"))

        assert row == ('["507f1f77bcf86cd799439011"]',)

    def test_unserializable_list_falls_back_to_empty_array(self):
        row = transcode({"tags": [{1, 2}]}, ColumnMapping("tags", "tags", "JSONB"))

        assert row == ("[]",)

    def test_list_into_text_column_passes_through(self):
        row = transcode({"tags": ["a", "b"]}, ColumnMapping("tags", "tags", "TEXT[]"))

        assert row == (["a", "b"],)

    def test_transformation_serializes_scalars(self):
        column = ColumnMapping("score", "score", "JSONB", requires_transformation=True)

        assert transcode({"score": 4.5}, column) == ("4.5",)
        assert transcode({}, column) == ("null",)

    def test_transformation_handles_dates(self):
        column = ColumnMapping("seen", "seen", "JSONB", requires_transformation=True)

        row = transcode({"seen": [datetime(2024, 1, 2, 3, 4, 5)]}, column)

        assert json.loads(row[0]) == ["2024-01-02T03:04:05"]

    def test_unserializable_transformation_falls_back_to_empty_object(self):
        column = ColumnMapping("blob", "blob", "JSONB", requires_transformation=True)

        row = transcode({"blob": {1, 2}}, column)

        assert row == ("{}",)


class TestPassThrough:

    def test_scalars_pass_through(self):
        document = {"name": "Ada", "age": 36, "active": True}

        row = transcode(
            document,
            ColumnMapping("name", "name"),
            ColumnMapping("age", "age", "INTEGER"),
            ColumnMapping("active", "active", "BOOLEAN"),
        )

        assert row == ("Ada", 36, True)

    def test_missing_field_is_null(self):
        row = transcode({}, ColumnMapping("email", "email", "TEXT", nullable=False))

        assert row == (None,)

    def test_values_follow_column_order(self):
        transcoder = DocumentTranscoder([
            ColumnMapping("b", "b"),
            ColumnMapping("a", "a"),
        ])

        rows = transcoder.transcode_many([{"a": 1, "b": 2}, {"a": 3, "b": 4}])

        assert rows == [(2, 1), (4, 3)]
