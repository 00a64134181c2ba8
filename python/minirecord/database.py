"""SQLite database gateway.

A ``Database`` owns exactly one ``sqlite3`` connection with an explicit
open/close lifecycle. Models are bound to a database instead of sharing a
process-wide connection.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from minirecord.config import DatabaseConfig
from minirecord.exceptions import DatabaseError

if TYPE_CHECKING:
    from minirecord.base import Base

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Rows returned by a single statement."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: int | None = None

    def all(self) -> list[dict[str, Any]]:
        """Get all rows as a list of dictionaries."""
        return [dict(zip(self.columns, row)) for row in self.rows]

    def first(self) -> dict[str, Any] | None:
        """Get the first row, or None if empty."""
        if not self.rows:
            return None
        return dict(zip(self.columns, self.rows[0]))

    def scalar(self) -> Any:
        """Get the first column of the first row, or None if empty."""
        if not self.rows or not self.rows[0]:
            return None
        return self.rows[0][0]

    def is_empty(self) -> bool:
        return not self.rows

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.all())


class Database:
    """A single SQLite connection.

    Example:
        >>> db = Database(DatabaseConfig.from_url("sqlite::memory:")).open()
        >>> db.bind(User, Post)
        >>> db.create_tables(User, Post)
        >>> User.create(name="Alice")
        >>> db.close()

        >>> with Database("sqlite:///app.db") as db:
        ...     db.execute("SELECT 1").scalar()
    """

    def __init__(self, config: DatabaseConfig | str | None = None) -> None:
        if config is None:
            config = DatabaseConfig()
        elif isinstance(config, str):
            config = DatabaseConfig.from_url(config)
        self._config = config
        self._connection: sqlite3.Connection | None = None

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"<Database {self._config.url} {state}>"

    def __enter__(self) -> Database:
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> Database:
        """Open the connection. Opening an already open database is a no-op."""
        if self._connection is not None:
            return self
        try:
            # isolation_level=None: every statement commits on its own.
            self._connection = sqlite3.connect(
                self._config.path,
                timeout=self._config.timeout,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not open {self._config.url}: {e}") from e
        logger.info("Opened database %s", self._config.url)
        return self

    def close(self) -> None:
        """Close the connection. Closing twice is a no-op."""
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.info("Closed database %s", self._config.url)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Execute one parameterized statement and return its rows.

        Raises:
            DatabaseError: If the database is closed or SQLite rejects the statement.
        """
        connection = self._require_connection()
        params = list(params or [])
        logger.log(logging.INFO if self._config.echo else logging.DEBUG, "%s %r", sql, params)

        try:
            cursor = connection.execute(sql, params)
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"{e} [SQL: {sql}]") from e

        columns = [column[0] for column in cursor.description or ()]
        return QueryResult(
            columns=columns,
            rows=rows,
            rowcount=cursor.rowcount,
            lastrowid=cursor.lastrowid,
        )

    def last_insert_id(self) -> int | None:
        """Return the rowid generated by the most recent INSERT on this connection."""
        result = self.execute("SELECT last_insert_rowid()")
        value = result.scalar()
        return value or None

    def bind(self, *models: type[Base]) -> Database:
        """Attach this database to record types so class-level queries can run."""
        for model in models:
            model.bind(self)
        return self

    def create_tables(self, *models: type[Base], if_not_exists: bool = False) -> None:
        """Create the table of each model, in the order given."""
        for model in models:
            model.create_table(self, if_not_exists=if_not_exists)

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise DatabaseError(f"Database {self._config.url} is not open")
        return self._connection
