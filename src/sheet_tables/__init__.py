"""Sheet Tables - typed records stored in a spreadsheet tab."""

from sheet_tables.codec import RecordCodec
from sheet_tables.config import (
    OAuthConfig,
    ServiceAccountConfig,
    TableLocator,
    auth_config_from_env,
    load_auth_config,
)
from sheet_tables.errors import (
    AuthenticationError,
    ConfigError,
    InitializationError,
    MissingRequiredField,
    NotFoundError,
    SchemaError,
    SheetTablesError,
    StoreClosedError,
    TransportError,
    TypeMismatchError,
    UnknownFieldError,
    ValidationError,
)
from sheet_tables.query import QueryMatcher
from sheet_tables.readiness import GateState, ReadinessGate
from sheet_tables.schema import Schema, SchemaBinder, SchemaBinding
from sheet_tables.store import RecordStore
from sheet_tables.transport import (
    InMemoryTransport,
    RangeSpec,
    SheetsTransport,
    Transport,
    ValueInputMode,
)
from sheet_tables.types import IDENTITY_COLUMN, CellValue, FieldDefinition, FieldType

__all__ = [
    # Main API
    "RecordStore",
    "Schema",
    "TableLocator",
    "IDENTITY_COLUMN",
    # Types
    "FieldType",
    "FieldDefinition",
    "CellValue",
    # Components
    "SchemaBinder",
    "SchemaBinding",
    "RecordCodec",
    "QueryMatcher",
    "ReadinessGate",
    "GateState",
    # Transports
    "Transport",
    "RangeSpec",
    "ValueInputMode",
    "InMemoryTransport",
    "SheetsTransport",
    # Configuration
    "OAuthConfig",
    "ServiceAccountConfig",
    "load_auth_config",
    "auth_config_from_env",
    # Errors
    "SheetTablesError",
    "SchemaError",
    "ConfigError",
    "InitializationError",
    "StoreClosedError",
    "ValidationError",
    "MissingRequiredField",
    "TypeMismatchError",
    "UnknownFieldError",
    "NotFoundError",
    "TransportError",
    "AuthenticationError",
]

__version__ = "0.1.0"
