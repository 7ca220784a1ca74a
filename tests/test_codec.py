"""Tests for record encoding and decoding."""

import pytest

from sheet_tables import RecordCodec, Schema
from sheet_tables.codec import is_tombstone, pad_row, tombstone
from sheet_tables.errors import MissingRequiredField
from sheet_tables.schema import merge_header


@pytest.fixture
def codec(people_schema):
    return RecordCodec(merge_header([], people_schema))


class TestEncode:
    """Tests for RecordCodec.encode."""

    def test_places_values_by_column(self, codec):
        """Test that each value is placed in its bound column."""
        row = codec.encode({"name": "Ann", "age": 30, "member": True}, "id-1")
        assert row == ["id-1", "Ann", "30", "TRUE"]

    def test_follows_persisted_column_order(self, people_schema):
        """Test that cells land in header order, not declaration order."""
        codec = RecordCodec(merge_header(["__ID", "member", "extra", "age"], people_schema))
        row = codec.encode({"name": "Ann", "age": 30, "member": False}, "id-1")
        assert row == ["id-1", "FALSE", "", "30", "Ann"]

    def test_absent_optional_field_is_empty(self, codec):
        """Test that an absent optional field encodes as an empty cell."""
        assert codec.encode({"name": "Ann", "age": 30}, "id-1") == ["id-1", "Ann", "30", ""]

    def test_missing_required_field(self, codec):
        """Test that an absent required field raises."""
        with pytest.raises(MissingRequiredField) as excinfo:
            codec.encode({"name": "Ann"})
        assert excinfo.value.field_name == "age"

    def test_none_counts_as_missing(self, codec):
        """Test that None does not satisfy a required field."""
        with pytest.raises(MissingRequiredField):
            codec.encode({"name": None, "age": 1})

    def test_identity_is_not_taken_from_record(self, codec):
        """Test that the identity cell comes from the argument only."""
        row = codec.encode({"__ID": "forged", "name": "Ann", "age": 1}, "real")
        assert row[0] == "real"


class TestDecode:
    """Tests for RecordCodec.decode."""

    def test_coerces_values(self, codec):
        """Test decoding a full row into typed values."""
        record = codec.decode(["id-1", "Ann", "30", "TRUE"])
        assert record == {"__ID": "id-1", "name": "Ann", "age": 30, "member": True}

    def test_short_row_reads_missing_cells_as_empty(self, codec):
        """Test that cells past the end of a row read as empty."""
        assert codec.decode(["id-1", "Ann"]) == {
            "__ID": "id-1",
            "name": "Ann",
            "age": "",
            "member": "",
        }

    def test_coercion_ignores_declared_type(self, codec):
        """Test that values are coerced from cell text alone."""
        record = codec.decode(["id-1", "42", "unknown", "FALSE"])
        assert record["name"] == 42
        assert record["age"] == "unknown"

    def test_round_trip(self, codec):
        """Test that decoding an encoded record gives back its values."""
        original = {"name": "Ann", "age": 30.5, "member": False}
        decoded = codec.decode(codec.encode(original, "id-1"))
        assert decoded == {**original, "__ID": "id-1"}

    def test_identity_is_kept_as_text(self):
        """Test that a numeric-looking identity is not coerced."""
        codec = RecordCodec(merge_header([], Schema.from_dict({"a": "string"})))
        assert codec.decode(["123", "x"])["__ID"] == "123"


class TestTombstone:
    """Tests for the deleted-row convention."""

    def test_blank_row(self):
        """Test that blank and empty rows are tombstones."""
        assert is_tombstone(tombstone(4))
        assert is_tombstone([])

    def test_identity_alone_is_a_tombstone(self):
        """Test that a row with only an identity reads as deleted."""
        assert is_tombstone(["id-1", "", ""])
        assert is_tombstone(["id-1"])

    def test_live_row(self):
        """Test that any field value makes a row live."""
        assert not is_tombstone(["id-1", "", "x"])
        assert not is_tombstone(["", "FALSE"])

    def test_pad_row(self):
        """Test padding a short row to the header width."""
        assert pad_row(["a"], 3) == ["a", "", ""]
        assert pad_row(["a", "b", "c", "d"], 3) == ["a", "b", "c", "d"]
