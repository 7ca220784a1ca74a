"""Equality queries over rows."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from sheet_tables.codec import cell_at, is_tombstone
from sheet_tables.errors import UnknownFieldError
from sheet_tables.schema import SchemaBinding
from sheet_tables.transport import FIRST_DATA_ROW
from sheet_tables.types import IDENTITY_COLUMN, to_cell

Query = Mapping[str, Any]


def validate_query(query: Query, binding: SchemaBinding) -> None:
    """Reject query keys that are neither the identity nor a schema field."""
    for key in query:
        if key != IDENTITY_COLUMN and key not in binding.columns:
            raise UnknownFieldError(key)


class QueryMatcher:
    """Matches rows against a query of field name to expected value.

    Every key must hold. Expected values are serialized the same way records
    are written, then compared with the cell text exactly. The empty query
    matches every live row; tombstones never match.
    """

    def __init__(self, query: Query, binding: SchemaBinding) -> None:
        validate_query(query, binding)
        self.binding = binding
        self._expected = [
            (binding.column_of(key), to_cell(value)) for key, value in query.items()
        ]

    def matches(self, row: Sequence[str]) -> bool:
        if is_tombstone(row):
            return False
        return all(cell_at(row, column) == text for column, text in self._expected)

    def scan(self, rows: Sequence[Sequence[str]]) -> Iterator[tuple[int, Sequence[str]]]:
        """Yield (sheet row number, row) for each matching data row in order.

        rows is the whole table as fetched; the first entry is the header.
        """
        for offset, row in enumerate(rows[1:]):
            if self.matches(row):
                yield FIRST_DATA_ROW + offset, row

    def first(self, rows: Sequence[Sequence[str]]) -> tuple[int, Sequence[str]] | None:
        """Return the lowest-numbered matching data row, or None."""
        return next(self.scan(rows), None)


def matches(row: Sequence[str], query: Query, binding: SchemaBinding) -> bool:
    """Check a single row against a query."""
    return QueryMatcher(query, binding).matches(row)
