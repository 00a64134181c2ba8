"""Column and field definitions for record types."""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


# Type alias for Mapped - indicates a database column
class Mapped(Generic[T]):
    """Type annotation wrapper indicating a database-mapped column.

    Example:
        >>> class User(Base):
        ...     name: Mapped[str]
        ...     email: Mapped[str | None] = mapped_column(unique=True)
        ...     age: Mapped[int | None]
    """

    pass


@dataclass
class ColumnInfo:
    """Stores metadata about a database column."""

    name: str | None = None
    python_type: type | None = None
    primary_key: bool = False
    nullable: bool | None = None
    unique: bool = False
    default: Any = None
    autoincrement: bool | None = None

    def sql_type(self) -> str:
        """Get the SQLite type for this column."""
        python_type = self.python_type
        if python_type is bool or python_type is int:
            return "INTEGER"
        elif python_type is str:
            return "TEXT"
        elif python_type is float:
            return "REAL"
        elif python_type is bytes:
            return "BLOB"
        elif python_type in (datetime, date, time):
            return "TEXT"  # SQLite stores dates as text
        else:
            return "TEXT"

    def ddl(self) -> str:
        """Render the column definition used in CREATE TABLE."""
        if self.primary_key:
            sql = f"{self.name} INTEGER PRIMARY KEY"
            if self.autoincrement is not False:
                sql += " AUTOINCREMENT"
            return sql

        parts = [f"{self.name} {self.sql_type()}"]
        if self.nullable is False:
            parts.append("NOT NULL")
        if self.unique:
            parts.append("UNIQUE")
        return " ".join(parts)

    def default_value(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default


def mapped_column(
    *,
    primary_key: bool = False,
    nullable: bool | None = None,
    unique: bool = False,
    default: Any = None,
    autoincrement: bool | None = None,
) -> Any:
    """Define a database column.

    Args:
        primary_key: Whether this is the primary key column (only ``id`` is supported)
        nullable: Whether NULL values are allowed; inferred from ``Optional``
            annotations when omitted
        unique: Whether values must be unique
        default: Default value (can be callable)
        autoincrement: Whether to auto-increment (for integer PKs)

    Returns:
        A ColumnInfo descriptor

    Example:
        >>> email: Mapped[str | None] = mapped_column(unique=True)
        >>> active: Mapped[int] = mapped_column(default=1)
    """
    # Primary keys are not nullable by default
    if primary_key:
        nullable = False
        if autoincrement is None:
            autoincrement = True

    return ColumnInfo(
        primary_key=primary_key,
        nullable=nullable,
        unique=unique,
        default=default,
        autoincrement=autoincrement,
    )


def primary_key_column() -> ColumnInfo:
    """The ``id`` column every record type carries."""
    return ColumnInfo(name="id", python_type=int, primary_key=True, nullable=False, autoincrement=True)


def is_mapped(hint: Any) -> bool:
    """Check whether a type hint is ``Mapped[...]``."""
    return typing.get_origin(hint) is Mapped


def extract_mapped_type(hint: Any) -> tuple[type | None, bool]:
    """Extract the inner type and nullability from a ``Mapped[T]`` annotation."""
    args = typing.get_args(hint)
    if not args:
        return None, True

    inner = args[0]
    origin = typing.get_origin(inner)
    if origin is Union or origin is types.UnionType:
        members = typing.get_args(inner)
        non_none = [m for m in members if m is not type(None)]
        nullable = len(non_none) != len(members)
        if len(non_none) == 1 and isinstance(non_none[0], type):
            return non_none[0], nullable
        return None, nullable

    return (inner if isinstance(inner, type) else None), False
