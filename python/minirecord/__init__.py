"""minirecord - a small active-record ORM for SQLite."""

from __future__ import annotations

import logging

from minirecord.base import Base
from minirecord.config import DatabaseConfig
from minirecord.cursor import Cursor
from minirecord.database import Database, QueryResult
from minirecord.exceptions import (
    ConfigurationError,
    DatabaseError,
    InvalidQueryError,
    MiniRecordError,
    MissingIdentifierError,
    RecordNotFound,
    UnknownAssociationError,
)
from minirecord.fields import ColumnInfo, Mapped, mapped_column
from minirecord.query import Between, Query, between, create_table, delete, insert, select, update
from minirecord.relationships import AssociationState, belongs_to, has_many, has_one, scope
from minirecord.results import JoinResult

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Core
    "create_engine",
    "Database",
    "DatabaseConfig",
    "QueryResult",
    # Model definition
    "Base",
    "Mapped",
    "mapped_column",
    "ColumnInfo",
    # Associations
    "belongs_to",
    "has_one",
    "has_many",
    "scope",
    "AssociationState",
    # Query building
    "Query",
    "Cursor",
    "JoinResult",
    "Between",
    "between",
    "select",
    "insert",
    "update",
    "delete",
    "create_table",
    # Errors
    "MiniRecordError",
    "InvalidQueryError",
    "RecordNotFound",
    "MissingIdentifierError",
    "UnknownAssociationError",
    "DatabaseError",
    "ConfigurationError",
]


def create_engine(url: str, *, timeout: float | None = None, echo: bool | None = None) -> Database:
    """Open a database.

    Args:
        url: Database URL.
            - File: sqlite:///path/to/db.sqlite
            - Memory: sqlite::memory:
        timeout: Seconds to wait on a locked database.
        echo: Log every statement at INFO level.

    Returns:
        An open Database instance.

    Example:
        >>> db = create_engine("sqlite:///app.db")
        >>> db.bind(User, Post)
    """
    overrides: dict[str, object] = {}
    if timeout is not None:
        overrides["timeout"] = timeout
    if echo is not None:
        overrides["echo"] = echo
    return Database(DatabaseConfig.from_url(url, **overrides)).open()
