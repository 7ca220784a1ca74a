"""Schema declaration and binding of fields to header columns."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sheet_tables.errors import InitializationError, SchemaError, TransportError
from sheet_tables.transport import RangeSpec, Transport, ValueInputMode
from sheet_tables.types import (
    FIELD_TYPE_NAMES,
    IDENTITY_COLUMN,
    FieldDefinition,
    FieldType,
)

logger = logging.getLogger(__name__)


class Schema:
    """Ordered, immutable set of declared fields."""

    def __init__(self, fields: Iterable[FieldDefinition]) -> None:
        """Initialize a schema.

        Args:
            fields: Field definitions in declaration order.

        Raises:
            SchemaError: If a field name is empty, duplicated or reserved.
        """
        by_name: dict[str, FieldDefinition] = {}
        for f in fields:
            if not isinstance(f.name, str) or not f.name:
                raise SchemaError("Field names must be non-empty strings")
            if f.name == IDENTITY_COLUMN:
                raise SchemaError(f"'{IDENTITY_COLUMN}' is reserved for the identity column")
            if f.name in by_name:
                raise SchemaError(f"Field '{f.name}' is declared more than once")
            by_name[f.name] = f
        self._fields = MappingProxyType(by_name)

    @classmethod
    def from_dict(cls, spec: Mapping[str, Any]) -> Schema:
        """Build a schema from a mapping of field name to {type, required}.

        The type may be given as a FieldType or as its name.

        Example:
            Schema.from_dict({
                "name": {"type": "string", "required": True},
                "age": {"type": "number"},
            })
        """
        fields = []
        for name, entry in spec.items():
            if isinstance(entry, (str, FieldType)):
                entry = {"type": entry}
            if not isinstance(entry, Mapping) or "type" not in entry:
                raise SchemaError(f"Field '{name}' must declare a type")
            fields.append(
                FieldDefinition(
                    name=name,
                    type=_field_type(name, entry["type"]),
                    required=bool(entry.get("required", False)),
                )
            )
        return cls(fields)

    @property
    def fields(self) -> tuple[FieldDefinition, ...]:
        return tuple(self._fields.values())

    @property
    def field_names(self) -> list[str]:
        return list(self._fields)

    def get(self, name: str) -> FieldDefinition | None:
        return self._fields.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self):
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        inner = ", ".join(
            f"{f.name}:{f.type.value}{'!' if f.required else ''}" for f in self
        )
        return f"Schema({inner})"


def _field_type(name: str, value: Any) -> FieldType:
    if isinstance(value, FieldType):
        return value
    field_type = FIELD_TYPE_NAMES.get(str(value).lower())
    if field_type is None:
        raise SchemaError(
            f"Field '{name}' has unknown type '{value}' "
            f"(expected one of: {', '.join(FIELD_TYPE_NAMES)})"
        )
    return field_type


@dataclass(frozen=True)
class SchemaBinding:
    """Result of binding a schema to a persisted header.

    Column indices are fixed for the lifetime of the binding.
    """

    schema: Schema
    header: tuple[str, ...]
    columns: Mapping[str, int] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return len(self.header)

    def column_of(self, name: str) -> int:
        """Column index of a schema field or of the identity column."""
        if name == IDENTITY_COLUMN:
            return 0
        return self.columns[name]


def merge_header(existing: Iterable[str], schema: Schema) -> SchemaBinding:
    """Reconcile a persisted header with a schema.

    The existing header keeps its order; declared fields missing from it are
    appended at the end in declaration order.

    Raises:
        InitializationError: If the header does not start with the identity column.
    """
    header = [str(name) for name in existing] or [IDENTITY_COLUMN]
    if header[0] != IDENTITY_COLUMN:
        raise InitializationError(
            f"Header must start with '{IDENTITY_COLUMN}', found '{header[0]}'"
        )
    present = set(header)
    for name in schema.field_names:
        if name not in present:
            header.append(name)
            present.add(name)

    columns: dict[str, int] = {}
    for index, name in enumerate(header):
        if name in schema and name not in columns:
            columns[name] = index

    return SchemaBinding(
        schema=schema,
        header=tuple(header),
        columns=MappingProxyType(columns),
    )


class SchemaBinder:
    """Binds a schema to the header row of one tab."""

    def __init__(self, transport: Transport, sheet_name: str) -> None:
        self.transport = transport
        self.sheet_name = sheet_name

    async def bind(self, schema: Schema) -> SchemaBinding:
        """Fetch the header, merge in the schema and persist the merged header.

        Raises:
            InitializationError: If the header cannot be fetched or written.
        """
        spec = RangeSpec.header(self.sheet_name)
        try:
            rows = await self.transport.get_range(spec)
        except TransportError as e:
            raise InitializationError(f"Could not read header of '{self.sheet_name}': {e}") from e

        existing = rows[0] if rows else []
        binding = merge_header(existing, schema)
        added = [name for name in binding.header if name not in existing]
        if added:
            logger.info("Extending header of %r with columns %s", self.sheet_name, added)
        logger.debug("Bound %r columns: %s", self.sheet_name, dict(binding.columns))

        try:
            await self.transport.write_range(spec, [list(binding.header)], ValueInputMode.RAW)
        except TransportError as e:
            raise InitializationError(f"Could not write header of '{self.sheet_name}': {e}") from e
        return binding
