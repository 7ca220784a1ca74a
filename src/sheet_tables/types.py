"""Field types and cell values for the sheet_tables library."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Name of the reserved identity column, always at position 0 of the header
IDENTITY_COLUMN = "__ID"

# Literal cell text for boolean values
TRUE_LITERAL = "TRUE"
FALSE_LITERAL = "FALSE"

# Decimal literal in ASCII digits: optional sign, digits with optional fraction,
# optional exponent
_NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_INTEGER_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)


class FieldType(Enum):
    """Value kinds a field can declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"

    def accepts(self, value: Any) -> bool:
        """Return whether a runtime value has this type."""
        return CellValue.kind_of(value) is self


# Mapping from type name strings to FieldType enum values
FIELD_TYPE_NAMES: dict[str, FieldType] = {ft.value: ft for ft in FieldType}


@dataclass(frozen=True)
class FieldDefinition:
    """A declared field: its name, value type and whether it is required."""

    name: str
    type: FieldType
    required: bool = False


@dataclass(frozen=True)
class CellValue:
    """A typed value read from or written to a single cell."""

    kind: FieldType
    payload: str | int | float | bool

    @staticmethod
    def kind_of(value: Any) -> FieldType | None:
        """Classify a Python value, or return None if it has no cell kind.

        bool is checked before number since bool is a subclass of int.
        """
        if isinstance(value, bool):
            return FieldType.BOOLEAN
        if isinstance(value, (int, float)):
            return FieldType.NUMBER
        if isinstance(value, str):
            return FieldType.STRING
        return None

    @classmethod
    def of(cls, value: Any) -> CellValue:
        """Wrap a Python value."""
        kind = cls.kind_of(value)
        if kind is None:
            raise TypeError(f"Unsupported cell value type: {type(value).__name__}")
        return cls(kind=kind, payload=value)

    def to_cell(self) -> str:
        """Serialize to cell text."""
        if self.kind is FieldType.BOOLEAN:
            return TRUE_LITERAL if self.payload else FALSE_LITERAL
        if self.kind is FieldType.NUMBER:
            return _format_number(self.payload)  # type: ignore[arg-type]
        return str(self.payload)


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _parse_number(text: str) -> int | float | None:
    stripped = text.strip()
    if not stripped or not _NUMBER_PATTERN.fullmatch(stripped):
        return None
    if _INTEGER_PATTERN.fullmatch(stripped):
        return int(stripped)
    number = float(stripped)
    if not math.isfinite(number):
        return None
    return number


def coerce_cell(text: str | None) -> CellValue:
    """Interpret cell text as a typed value.

    Fallback order: boolean literal, then number, then the literal string.
    An empty or blank cell is always a string, never zero. The field's
    declared type plays no part.
    """
    if text is None:
        text = ""
    if text == TRUE_LITERAL:
        return CellValue(FieldType.BOOLEAN, True)
    if text == FALSE_LITERAL:
        return CellValue(FieldType.BOOLEAN, False)
    number = _parse_number(text)
    if number is not None:
        return CellValue(FieldType.NUMBER, number)
    return CellValue(FieldType.STRING, text)


def to_cell(value: Any) -> str:
    """Serialize a Python value to cell text. None becomes an empty cell."""
    if value is None:
        return ""
    return CellValue.of(value).to_cell()
