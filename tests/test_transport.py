"""Tests for range addressing and the cell transports."""

import json

import httpx
import pytest

from sheet_tables import InMemoryTransport, RangeSpec, SheetsTransport, ValueInputMode
from sheet_tables.errors import TransportError


class TestRangeSpec:
    """Tests for RangeSpec A1 rendering."""

    def test_a1_notation(self):
        """Test the table, header and row forms."""
        assert RangeSpec.table("Sheet1").to_a1() == "Sheet1"
        assert RangeSpec.header("Sheet1").to_a1() == "Sheet1!1:1"
        assert RangeSpec.data_row("Sheet1", 5).to_a1() == "Sheet1!A5:5"

    def test_quotes_tab_names(self):
        """Test that tab names with spaces or quotes are quoted."""
        assert RangeSpec.table("My Sheet").to_a1() == "'My Sheet'"
        assert RangeSpec.header("Bob's").to_a1() == "'Bob''s'!1:1"

    def test_data_rows_start_after_header(self):
        """Test that row 1 cannot be addressed as a data row."""
        with pytest.raises(ValueError):
            RangeSpec.data_row("Sheet1", 1)


class TestInMemoryTransport:
    """Tests for the in-process grid."""

    @pytest.mark.asyncio
    async def test_reads_are_trimmed_like_sheets(self):
        """Test that trailing empty cells and rows are omitted on read."""
        transport = InMemoryTransport(
            {"T": [["__ID", "a", "b"], ["1", "x", ""], ["", "", ""], ["2", "", "y"], ["", ""]]}
        )
        rows = await transport.get_range(RangeSpec.table("T"))
        assert rows == [["__ID", "a", "b"], ["1", "x"], [], ["2", "", "y"]]

    @pytest.mark.asyncio
    async def test_missing_tab_reads_empty(self):
        """Test reading a tab that was never written."""
        transport = InMemoryTransport()
        assert await transport.get_range(RangeSpec.table("T")) == []
        assert await transport.get_range(RangeSpec.header("T")) == []

    @pytest.mark.asyncio
    async def test_write_row(self):
        """Test overwriting a single row."""
        transport = InMemoryTransport({"T": [["__ID", "a"], ["1", "x"]]})
        ack = await transport.write_range(
            RangeSpec.data_row("T", 2), [["1", "y"]], ValueInputMode.USER_ENTERED
        )
        assert transport.tabs["T"][1] == ["1", "y"]
        assert ack["updatedRows"] == 1

    @pytest.mark.asyncio
    async def test_append_after_last_populated_row(self):
        """Test that appends land after the last non-empty row."""
        transport = InMemoryTransport({"T": [["__ID", "a"], ["1", "x"], ["", ""]]})
        ack = await transport.append_rows(RangeSpec.table("T"), [["2", "y"]])
        assert transport.tabs["T"] == [["__ID", "a"], ["1", "x"], ["2", "y"]]
        assert ack["updates"]["updatedRange"] == "T!A3:3"


class StaticCredentials:
    """Credentials that always send the same bearer token."""

    async def headers(self, client):
        return {"Authorization": "Bearer test-token"}


def make_transport(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SheetsTransport("sheet-123", StaticCredentials(), client=client)


class TestSheetsTransport:
    """Tests for the Sheets values API transport."""

    @pytest.mark.asyncio
    async def test_get_range(self):
        """Test reading a range and normalizing cell values to text."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200, json={"range": "People!A1:C2", "values": [["__ID", "age"], ["1", 30, True]]}
            )

        transport = make_transport(handler)
        rows = await transport.get_range(RangeSpec.header("People"))

        assert rows == [["__ID", "age"], ["1", "30", "TRUE"]]
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/v4/spreadsheets/sheet-123/values/People!1:1"
        assert request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_get_range_without_values(self):
        """Test that a response with no values reads as an empty grid."""
        transport = make_transport(lambda request: httpx.Response(200, json={"range": "T"}))
        assert await transport.get_range(RangeSpec.table("T")) == []

    @pytest.mark.asyncio
    async def test_write_range(self):
        """Test that writes PUT the rows with the requested input mode."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"updatedRows": 1})

        transport = make_transport(handler)
        ack = await transport.write_range(
            RangeSpec.data_row("People", 3), [["1", "Ann"]], ValueInputMode.USER_ENTERED
        )

        assert ack == {"updatedRows": 1}
        request = seen[0]
        assert request.method == "PUT"
        assert request.url.params["valueInputOption"] == "USER_ENTERED"
        body = json.loads(request.content)
        assert body["range"] == "People!A3:3"
        assert body["values"] == [["1", "Ann"]]

    @pytest.mark.asyncio
    async def test_append_rows(self):
        """Test that appends POST literal rows as inserted rows."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"updates": {"updatedRows": 1}})

        transport = make_transport(handler)
        await transport.append_rows(RangeSpec.table("People"), [["1", "Ann"]])

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/values/People:append")
        assert request.url.params["valueInputOption"] == "RAW"
        assert request.url.params["insertDataOption"] == "INSERT_ROWS"
        assert json.loads(request.content)["values"] == [["1", "Ann"]]

    @pytest.mark.asyncio
    async def test_http_error_becomes_transport_error(self):
        """Test that an error status is raised as TransportError with the status."""
        transport = make_transport(
            lambda request: httpx.Response(403, json={"error": {"message": "denied"}})
        )
        with pytest.raises(TransportError) as excinfo:
            await transport.get_range(RangeSpec.table("People"))
        assert excinfo.value.status_code == 403

    @pytest.mark.asyncio
    async def test_network_error_becomes_transport_error(self):
        """Test that a connection failure is raised as TransportError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)
        with pytest.raises(TransportError) as excinfo:
            await transport.get_range(RangeSpec.table("People"))
        assert excinfo.value.status_code is None

    @pytest.mark.asyncio
    async def test_close_leaves_borrowed_client_open(self):
        """Test that a client passed in is not closed by default."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        transport = SheetsTransport("sheet-123", StaticCredentials(), client=client)
        await transport.close()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_close_owned_client(self):
        """Test that close_client=True closes the client."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        transport = SheetsTransport(
            "sheet-123", StaticCredentials(), client=client, close_client=True
        )
        await transport.close()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_closed_client_raises_transport_error(self):
        """Test that a request on a closed client fails as TransportError."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        transport = SheetsTransport("sheet-123", StaticCredentials(), client=client)
        await client.aclose()

        with pytest.raises(TransportError, match="closed"):
            await transport.get_range(RangeSpec.table("People"))
