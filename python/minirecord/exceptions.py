"""Error types raised by minirecord."""

from __future__ import annotations


class MiniRecordError(Exception):
    """Base class for all minirecord errors."""


class InvalidQueryError(MiniRecordError, ValueError):
    """Raised when a query cannot be executed as built (e.g. OFFSET without LIMIT)."""


class RecordNotFound(MiniRecordError, LookupError):
    """Raised when a row that must exist is missing."""


class MissingIdentifierError(MiniRecordError, ValueError):
    """Raised when a primary key lookup is attempted without an id."""


class UnknownAssociationError(MiniRecordError, LookupError):
    """Raised when an association or join target cannot be resolved to a model."""


class DatabaseError(MiniRecordError):
    """Raised for connectivity and SQL failures reported by the database."""


class ConfigurationError(MiniRecordError, ValueError):
    """Raised for malformed database configuration."""
