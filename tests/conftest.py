"""Shared fixtures for sheet_tables tests."""

from pathlib import Path

import pytest

from sheet_tables import InMemoryTransport, RecordStore, Schema, TableLocator

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def locator():
    return TableLocator(spreadsheet_id="sheet-123", sheet_name="People")


@pytest.fixture
def people_schema():
    return Schema.from_dict(
        {
            "name": {"type": "string", "required": True},
            "age": {"type": "number", "required": True},
            "member": {"type": "boolean"},
        }
    )


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def store(locator, people_schema, transport):
    """A store over an empty in-memory tab."""
    return RecordStore(locator, people_schema, transport=transport)


@pytest.fixture
def private_key_pem():
    return (DATA_DIR / "service_account_key.pem").read_text()
