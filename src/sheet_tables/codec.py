"""Conversion between records and positional row cells.

Row format:

    cell 0        identity token
    cells 1..N    field values at their bound column indices

A row whose cells other than the identity cell are all empty is a tombstone:
it denotes a deleted record and is skipped by every read. Deleting writes a
fully blank row (identity included), so rows are never compacted and row
numbers stay stable.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sheet_tables.errors import MissingRequiredField
from sheet_tables.schema import SchemaBinding
from sheet_tables.types import IDENTITY_COLUMN, coerce_cell, to_cell

Record = dict[str, Any]


def cell_at(row: Sequence[str], index: int) -> str:
    """Return the cell at index, treating missing cells as empty."""
    if index < len(row):
        value = row[index]
        return "" if value is None else value
    return ""


def is_tombstone(row: Sequence[str]) -> bool:
    """Check whether a row denotes a deleted record."""
    return all(cell_at(row, i) == "" for i in range(1, len(row)))


def tombstone(width: int) -> list[str]:
    """Return the blank row written over a deleted record."""
    return [""] * width


def pad_row(row: Sequence[str], width: int) -> list[str]:
    """Copy a row, extending it with empty cells up to width."""
    cells = ["" if cell is None else cell for cell in row]
    if len(cells) < width:
        cells.extend([""] * (width - len(cells)))
    return cells


class RecordCodec:
    """Encodes records into rows and decodes rows into records."""

    def __init__(self, binding: SchemaBinding) -> None:
        self.binding = binding

    def encode(self, record: Mapping[str, Any], identity: str = "") -> list[str]:
        """Serialize a record to a row of the bound header's width.

        Raises:
            MissingRequiredField: If a required field is absent or None.
        """
        row = [""] * self.binding.width
        row[0] = identity
        for field in self.binding.schema:
            value = record.get(field.name)
            if value is None and field.required:
                raise MissingRequiredField(field.name)
            row[self.binding.columns[field.name]] = to_cell(value)
        return row

    def decode(self, row: Sequence[str]) -> Record:
        """Deserialize the identity and every schema field of a row.

        Field values are coerced from the cell text alone; declared types are
        not consulted. The identity is kept as text.
        """
        record: Record = {IDENTITY_COLUMN: cell_at(row, 0)}
        for field in self.binding.schema:
            text = cell_at(row, self.binding.columns[field.name])
            record[field.name] = coerce_cell(text).payload
        return record
