"""Record store over one tab of a spreadsheet."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from sheet_tables.auth import authorize
from sheet_tables.codec import Record, RecordCodec, is_tombstone, pad_row, tombstone
from sheet_tables.config import AuthConfig, TableLocator, timeout_from_env
from sheet_tables.errors import (
    NotFoundError,
    SchemaError,
    StoreClosedError,
    TypeMismatchError,
)
from sheet_tables.query import Query, QueryMatcher, validate_query
from sheet_tables.readiness import GateState, ReadinessGate
from sheet_tables.schema import Schema, SchemaBinder, SchemaBinding
from sheet_tables.transport import (
    RangeSpec,
    SheetsTransport,
    Transport,
    ValueInputMode,
)
from sheet_tables.types import IDENTITY_COLUMN, CellValue

logger = logging.getLogger(__name__)

Connector = Callable[[], Awaitable[Transport]]


def new_identity() -> str:
    """Generate a fresh identity token."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class _Bound:
    transport: Transport
    binding: SchemaBinding
    codec: RecordCodec


class RecordStore:
    """Typed records stored as rows of a spreadsheet tab.

    Column 0 of the tab holds each record's identity; the remaining columns
    are bound to schema fields by name when the store starts. Startup (acquire
    a transport, then bind the schema to the header row) runs once, on the
    first operation, and every operation waits for it.

    Mutations are read-modify-write sequences with no locking: concurrent
    updates of the same record can overwrite each other.

    Example:
        store = RecordStore(locator, {"name": {"type": "string", "required": True}},
                            transport=InMemoryTransport())
        ann = await store.create({"name": "Ann"})
        await store.update({"__ID": ann["__ID"]}, {"name": "Anne"})
    """

    def __init__(
        self,
        locator: TableLocator,
        schema: Schema | Mapping[str, Any],
        transport: Transport | None = None,
        connect: Connector | None = None,
    ) -> None:
        """Initialize a store.

        Args:
            locator: Spreadsheet and tab holding the table.
            schema: A Schema or a mapping accepted by Schema.from_dict.
            transport: A ready transport to use as is.
            connect: Coroutine function returning an authorized transport.
                Exactly one of transport and connect must be given.
        """
        if (transport is None) == (connect is None):
            raise ValueError("Pass exactly one of transport or connect")
        self.locator = locator
        self.schema = schema if isinstance(schema, Schema) else Schema.from_dict(schema)
        if not len(self.schema):
            raise SchemaError("Schema declares no fields")
        if connect is None:
            connect = _given(transport)  # type: ignore[arg-type]
        self._connect = connect
        self._transport: Transport | None = None
        self._closed = False
        self._gate: ReadinessGate[_Bound] = ReadinessGate(
            self._start, name=f"table '{locator.sheet_name}'"
        )

    @classmethod
    def from_config(
        cls,
        locator: TableLocator,
        schema: Schema | Mapping[str, Any],
        auth_config: AuthConfig,
        timeout: float | None = None,
    ) -> RecordStore:
        """Create a store that talks to the Sheets API with the given credentials."""

        async def connect() -> Transport:
            client = httpx.AsyncClient(timeout=timeout or timeout_from_env())
            try:
                credentials = await authorize(auth_config, client)
            except BaseException:
                await client.aclose()
                raise
            return SheetsTransport(
                locator.spreadsheet_id, credentials, client=client, close_client=True
            )

        return cls(locator, schema, connect=connect)

    async def _start(self) -> _Bound:
        transport = await self._connect()
        self._transport = transport
        binding = await SchemaBinder(transport, self.locator.sheet_name).bind(self.schema)
        return _Bound(transport, binding, RecordCodec(binding))

    @property
    def state(self) -> GateState:
        return self._gate.state

    @property
    def closed(self) -> bool:
        return self._closed

    async def _ready(self) -> _Bound:
        if self._closed:
            raise StoreClosedError(f"Store for {self.locator.sheet_name!r} is closed")
        return await self._gate.wait()

    async def binding(self) -> SchemaBinding:
        """Wait for startup and return the schema binding."""
        return (await self._ready()).binding

    def _table(self) -> RangeSpec:
        return RangeSpec.table(self.locator.sheet_name)

    async def _rows(self, bound: _Bound) -> list[list[str]]:
        return await bound.transport.get_range(self._table())

    # --- Operations -----------------------------------------------------------------

    async def create(self, record: Mapping[str, Any]) -> Record:
        """Append a new record and return it with its generated identity.

        Raises:
            MissingRequiredField: If a required field is absent; nothing is written.
        """
        bound = await self._ready()
        identity = new_identity()
        row = bound.codec.encode(record, identity)
        if is_tombstone(row):
            logger.warning("Creating a record with no field values; it will read as deleted")
        await bound.transport.append_rows(self._table(), [row], ValueInputMode.RAW)
        logger.info("Created record %s in %r", identity, self.locator.sheet_name)
        return {**record, IDENTITY_COLUMN: identity}

    async def find(self, query: Query | None = None) -> list[Record]:
        """Return every live record matching the query, in row order."""
        bound = await self._ready()
        matcher = QueryMatcher(query or {}, bound.binding)
        rows = await self._rows(bound)
        return [bound.codec.decode(row) for _, row in matcher.scan(rows)]

    async def find_one(self, query: Query | None = None) -> Record | None:
        """Return the first live record in row order matching the query."""
        bound = await self._ready()
        matcher = QueryMatcher(query or {}, bound.binding)
        found = matcher.first(await self._rows(bound))
        if found is None:
            return None
        return bound.codec.decode(found[1])

    async def _locate(self, bound: _Bound, query: Query) -> tuple[int, list[str]]:
        matcher = QueryMatcher(query, bound.binding)
        found = matcher.first(await self._rows(bound))
        if found is None:
            raise NotFoundError(f"No row in {self.locator.sheet_name!r} matches {dict(query)!r}")
        row_number, row = found
        return row_number, pad_row(row, bound.binding.width)

    def _check_patch(self, binding: SchemaBinding, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Return the patch fields to apply, checking their types."""
        applied: dict[str, Any] = {}
        for key, value in patch.items():
            field = binding.schema.get(key)
            if field is None:
                logger.warning("Ignoring patch key %r: not a schema field", key)
                continue
            if value is None:
                continue
            if not field.type.accepts(value):
                kind = CellValue.kind_of(value)
                raise TypeMismatchError(
                    key, field.type.value, kind.value if kind else type(value).__name__
                )
            applied[key] = value
        return applied

    async def update(self, query: Query, patch: Mapping[str, Any]) -> Record:
        """Overwrite fields of the first matching record.

        The identity and any field not in the patch are preserved; the row is
        written back with literal input so unpatched cells keep their exact
        text. The returned record is decoded from the written row, so values
        reflect coercion.

        Raises:
            NotFoundError: If no live row matches.
            TypeMismatchError: If a patch value does not have its declared type.
        """
        bound = await self._ready()
        validate_query(query, bound.binding)
        applied = self._check_patch(bound.binding, patch)
        row_number, row = await self._locate(bound, query)

        # Encode just the patched fields into the existing row
        for key, value in applied.items():
            row[bound.binding.columns[key]] = CellValue.of(value).to_cell()

        spec = RangeSpec.data_row(self.locator.sheet_name, row_number)
        await bound.transport.write_range(spec, [row], ValueInputMode.RAW)
        logger.info("Updated row %d of %r: %s", row_number, self.locator.sheet_name, sorted(applied))
        return bound.codec.decode(row)

    async def delete(self, query: Query) -> Record:
        """Blank the first matching row and return the record it held.

        Raises:
            NotFoundError: If no live row matches.
        """
        bound = await self._ready()
        row_number, row = await self._locate(bound, query)
        deleted = bound.codec.decode(row)
        spec = RangeSpec.data_row(self.locator.sheet_name, row_number)
        await bound.transport.write_range(spec, [tombstone(len(row))], ValueInputMode.RAW)
        logger.info("Deleted row %d of %r", row_number, self.locator.sheet_name)
        return deleted

    # --- Lifecycle ------------------------------------------------------------------

    async def close(self) -> None:
        """Release the transport, if startup acquired one.

        Every operation on the store raises StoreClosedError afterwards.
        """
        self._closed = True
        if self._transport is not None:
            await self._transport.close()
            self._transport = None

    async def __aenter__(self) -> RecordStore:
        try:
            await self._ready()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def _given(transport: Transport) -> Connector:
    async def connect() -> Transport:
        return transport

    return connect
