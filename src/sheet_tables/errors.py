"""Exceptions raised by the sheet_tables library."""

from __future__ import annotations


class SheetTablesError(Exception):
    """Base class for all sheet_tables errors."""


class SchemaError(SheetTablesError):
    """Raised when a declared schema is invalid."""


class InitializationError(SheetTablesError):
    """Raised when authentication or header synchronization failed at startup.

    Once a store's startup has failed, every operation on it raises this error.
    """


class StoreClosedError(SheetTablesError):
    """Raised by any operation on a store after close()."""


class ValidationError(SheetTablesError):
    """Raised when a record, patch or query is rejected before any write."""


class MissingRequiredField(ValidationError):
    """Raised by create when a required field is absent."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Field '{field_name}' is required")
        self.field_name = field_name


class TypeMismatchError(ValidationError):
    """Raised by update when a patch value does not have the declared type."""

    def __init__(self, field_name: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Field '{field_name}' should be of type {expected}, got {actual}"
        )
        self.field_name = field_name
        self.expected = expected
        self.actual = actual


class UnknownFieldError(ValidationError):
    """Raised when a query names a field the schema does not declare."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Unknown field '{field_name}'")
        self.field_name = field_name


class NotFoundError(SheetTablesError):
    """Raised by update and delete when no row satisfies the query."""


class TransportError(SheetTablesError):
    """Raised when a remote call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """Raised when credentials cannot be exchanged for an access token."""


class ConfigError(SheetTablesError, ValueError):
    """Raised when configuration is missing or malformed."""
