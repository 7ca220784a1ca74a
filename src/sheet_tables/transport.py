"""Cell transports: the remote grid a record store reads and writes.

A transport exposes three range operations over a grid of string cells:
fetching a range, overwriting a range and appending rows after the last
populated row. Ranges are addressed with RangeSpec, which renders to A1
notation.

Two implementations are provided:

    SheetsTransport   - the Google Sheets v4 values API over httpx
    InMemoryTransport - a dict-of-tabs grid that reads back the way Sheets does
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote

import httpx

from sheet_tables.errors import TransportError

if TYPE_CHECKING:
    from sheet_tables.auth import Credentials

logger = logging.getLogger(__name__)

Grid = list[list[str]]

# First data row in sheet numbering; row 1 is the header
FIRST_DATA_ROW = 2

_PLAIN_TAB_NAME = re.compile(r"[A-Za-z0-9_]+")


class ValueInputMode(Enum):
    """How the remote side treats written values."""

    RAW = "RAW"  # stored literally
    USER_ENTERED = "USER_ENTERED"  # numeric/boolean literals interpreted


class RangeKind(Enum):
    TABLE = "table"
    HEADER = "header"
    ROW = "row"


@dataclass(frozen=True)
class RangeSpec:
    """A range within one tab: the whole table, the header row or one row.

    Row numbers are 1-based sheet row numbers; the header is row 1 and data
    begins at row 2.
    """

    sheet_name: str
    kind: RangeKind = RangeKind.TABLE
    row: int | None = None

    @classmethod
    def table(cls, sheet_name: str) -> RangeSpec:
        return cls(sheet_name, RangeKind.TABLE)

    @classmethod
    def header(cls, sheet_name: str) -> RangeSpec:
        return cls(sheet_name, RangeKind.HEADER, 1)

    @classmethod
    def data_row(cls, sheet_name: str, row: int) -> RangeSpec:
        if row < FIRST_DATA_ROW:
            raise ValueError(f"Data rows start at row {FIRST_DATA_ROW}, got {row}")
        return cls(sheet_name, RangeKind.ROW, row)

    @property
    def quoted_sheet_name(self) -> str:
        if _PLAIN_TAB_NAME.fullmatch(self.sheet_name):
            return self.sheet_name
        return "'" + self.sheet_name.replace("'", "''") + "'"

    def to_a1(self) -> str:
        """Render as A1 notation."""
        name = self.quoted_sheet_name
        if self.kind is RangeKind.HEADER:
            return f"{name}!1:1"
        if self.kind is RangeKind.ROW:
            return f"{name}!A{self.row}:{self.row}"
        return name

    def __str__(self) -> str:
        return self.to_a1()


class Transport(Protocol):
    """Minimum contract a record store needs from the remote grid."""

    async def get_range(self, spec: RangeSpec) -> Grid:
        """Return the rows in the range, or an empty list if there is no data."""
        ...

    async def write_range(
        self, spec: RangeSpec, rows: Grid, mode: ValueInputMode
    ) -> dict[str, Any]:
        """Overwrite the range starting at its top-left cell."""
        ...

    async def append_rows(
        self, spec: RangeSpec, rows: Grid, mode: ValueInputMode = ValueInputMode.RAW
    ) -> dict[str, Any]:
        """Append rows after the last populated row of the table."""
        ...

    async def close(self) -> None:
        ...


def _trim_row(row: list[str]) -> list[str]:
    end = len(row)
    while end and row[end - 1] == "":
        end -= 1
    return row[:end]


class InMemoryTransport:
    """Transport backed by an in-process grid.

    Reads are shaped like the Sheets API: trailing empty cells of each row and
    trailing empty rows are omitted, so a blanked row in the middle of a table
    reads back as an empty list.
    """

    def __init__(self, tabs: dict[str, Grid] | None = None) -> None:
        self.tabs: dict[str, Grid] = {
            name: [list(row) for row in rows] for name, rows in (tabs or {}).items()
        }
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def _tab(self, sheet_name: str) -> Grid:
        return self.tabs.setdefault(sheet_name, [])

    def _rows_for(self, spec: RangeSpec) -> tuple[int, int]:
        """Return the 0-based [start, stop) grid rows covered by a range."""
        grid = self._tab(spec.sheet_name)
        if spec.kind is RangeKind.TABLE:
            return 0, len(grid)
        start = (spec.row or 1) - 1
        return start, start + 1

    async def get_range(self, spec: RangeSpec) -> Grid:
        self.calls.append(("get", spec.to_a1()))
        grid = self._tab(spec.sheet_name)
        start, stop = self._rows_for(spec)
        rows = [_trim_row(list(row)) for row in grid[start:stop]]
        while rows and not rows[-1]:
            rows.pop()
        return rows

    async def write_range(
        self, spec: RangeSpec, rows: Grid, mode: ValueInputMode
    ) -> dict[str, Any]:
        self.calls.append(("write", spec.to_a1()))
        grid = self._tab(spec.sheet_name)
        start, _ = self._rows_for(spec)
        while len(grid) < start + len(rows):
            grid.append([])
        for offset, row in enumerate(rows):
            target = grid[start + offset]
            for col, cell in enumerate(row):
                while len(target) <= col:
                    target.append("")
                target[col] = str(cell)
        return {
            "updatedRange": spec.to_a1(),
            "updatedRows": len(rows),
            "updatedCells": sum(len(row) for row in rows),
        }

    async def append_rows(
        self, spec: RangeSpec, rows: Grid, mode: ValueInputMode = ValueInputMode.RAW
    ) -> dict[str, Any]:
        self.calls.append(("append", spec.to_a1()))
        grid = self._tab(spec.sheet_name)
        while grid and not _trim_row(grid[-1]):
            grid.pop()
        first = len(grid) + 1
        for row in rows:
            grid.append([str(cell) for cell in row])
        return {
            "updates": {
                "updatedRange": f"{spec.quoted_sheet_name}!A{first}:{len(grid)}",
                "updatedRows": len(rows),
            }
        }

    async def close(self) -> None:
        self.closed = True


def _cell_text(value: Any) -> str:
    """Normalize a cell from the API response to its string form."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if value is None:
        return ""
    return str(value)


class SheetsTransport:
    """Transport for the Google Sheets v4 values API.

    Requests are authorized with headers from a Credentials object. Values are
    read as formatted strings, which is what a sheet displays.
    """

    BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        spreadsheet_id: str,
        credentials: Credentials,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        close_client: bool | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.credentials = credentials
        self._owns_client = client is None if close_client is None else close_client
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _values_url(self, spec: RangeSpec, suffix: str = "") -> str:
        a1 = quote(spec.to_a1(), safe="")
        return f"{self.BASE_URL}/{self.spreadsheet_id}/values/{a1}{suffix}"

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if self._client.is_closed:
            raise TransportError(f"Sheets API {method} failed: client is closed")
        headers = await self.credentials.headers(self._client)
        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(
                method, url, params=params, json=body, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(
                f"Sheets API {method} failed with status {status}: {e.response.text}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Sheets API {method} failed: {e}") from e
        if not response.content:
            return {}
        return response.json()

    async def get_range(self, spec: RangeSpec) -> Grid:
        data = await self._request("GET", self._values_url(spec))
        values = data.get("values") or []
        return [[_cell_text(cell) for cell in row] for row in values]

    async def write_range(
        self, spec: RangeSpec, rows: Grid, mode: ValueInputMode
    ) -> dict[str, Any]:
        return await self._request(
            "PUT",
            self._values_url(spec),
            params={"valueInputOption": mode.value},
            body={"range": spec.to_a1(), "majorDimension": "ROWS", "values": rows},
        )

    async def append_rows(
        self, spec: RangeSpec, rows: Grid, mode: ValueInputMode = ValueInputMode.RAW
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            self._values_url(spec, ":append"),
            params={"valueInputOption": mode.value, "insertDataOption": "INSERT_ROWS"},
            body={"majorDimension": "ROWS", "values": rows},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
