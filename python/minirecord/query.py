"""Query builder for constructing SQL statements.

``Query`` is immutable: every builder method returns a new ``Query`` and
leaves the receiver untouched, so a partially built query can be shared as a
prefix of several others. Caller values only ever reach SQLite as bind
parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, TypeVar

from minirecord.exceptions import DatabaseError, InvalidQueryError
from minirecord.relationships import resolve_join
from minirecord.results import resolve_result

if TYPE_CHECKING:
    from minirecord.base import Base
    from minirecord.database import Database, QueryResult

T = TypeVar("T", bound="Base")

_DIRECTIONS = ("ASC", "DESC")


@dataclass(frozen=True)
class Between:
    """An inclusive range condition, compiled to ``col BETWEEN ? and ?``."""

    low: Any
    high: Any


def between(low: Any, high: Any) -> Between:
    """Build an inclusive range condition.

    Example:
        >>> User.where(age=between(20, 30))
    """
    return Between(low, high)


def _normalize_value(value: Any) -> Any:
    # range(20, 31) covers 20..30; BETWEEN takes its smallest and largest members.
    if isinstance(value, range):
        if len(value):
            low, high = sorted((value[0], value[-1]))
            return Between(low, high)
        return Between(value.start, value.stop - value.step)
    return value


def _column_name(col: Any) -> str:
    """Extract column name from various inputs."""
    if isinstance(col, str):
        return col
    if hasattr(col, "name") and isinstance(col.name, str):
        return col.name
    return str(col)


@dataclass(frozen=True)
class QueryState:
    """Everything a pending SELECT has accumulated so far."""

    conditions: tuple[tuple[tuple[str, Any], ...], ...] = ()
    bind_values: tuple[Any, ...] = ()
    projection: tuple[str, ...] = ()
    ordering: tuple[tuple[str, str], ...] = ()
    limit: int | None = None
    offset: int | None = None
    join: str | None = None


@dataclass(frozen=True)
class Query[T: "Base"]:
    """Represents a SELECT query against one record type."""

    model: type[T]
    state: QueryState = field(default_factory=QueryState)
    database: Database | None = field(default=None, compare=False)

    def _derive(self, **changes: Any) -> Query[T]:
        return Query(model=self.model, state=replace(self.state, **changes), database=self.database)

    def where(self, conditions: dict[str, Any] | None = None, /, **kwargs: Any) -> Query[T]:
        """Add one group of equality or range conditions, joined with AND.

        Example:
            >>> select(User).where(name="Alice")
            >>> select(User).where({"age": range(20, 31)})
            >>> select(User).where(age=between(20, 30), active=1)
        """
        attrs = {**(conditions or {}), **kwargs}
        if not attrs:
            return self

        group = tuple((_column_name(col), _normalize_value(value)) for col, value in attrs.items())
        binds: list[Any] = []
        for _col, value in group:
            if isinstance(value, Between):
                binds.extend((value.low, value.high))
            else:
                binds.append(value)

        return self._derive(
            conditions=self.state.conditions + (group,),
            bind_values=self.state.bind_values + tuple(binds),
        )

    def select(self, *expressions: Any) -> Query[T]:
        """Add projection expressions; an empty projection selects ``*``.

        Example:
            >>> select(User).select("name", "email")
            >>> select(User).select("AVG(age)")
        """
        return self._derive(
            projection=self.state.projection + tuple(_column_name(e) for e in expressions)
        )

    def reselect(self, *expressions: Any) -> Query[T]:
        """Replace the projection instead of appending to it."""
        return self._derive(projection=tuple(_column_name(e) for e in expressions))

    def order(self, *columns: Any, **directions: str) -> Query[T]:
        """Add ORDER BY terms; bare names sort ascending.

        Example:
            >>> select(User).order("name")
            >>> select(User).order(("age", "desc"), "name")
            >>> select(User).order(age="desc")
        """
        terms: list[tuple[str, str]] = []
        for col in columns:
            if isinstance(col, tuple):
                name, direction = col
                terms.append((_column_name(name), str(direction).upper()))
            else:
                terms.append((_column_name(col), "ASC"))
        for name, direction in directions.items():
            terms.append((name, str(direction).upper()))
        return self._derive(ordering=self.state.ordering + tuple(terms))

    def limit(self, n: int) -> Query[T]:
        """Limit the number of results."""
        return self._derive(limit=n)

    def offset(self, n: int) -> Query[T]:
        """Skip the first n results. Only valid together with limit()."""
        return self._derive(offset=n)

    def join(self, target: str) -> Query[T]:
        """Inner join one associated table, replacing any previous join target.

        Example:
            >>> select(User).join("posts")
        """
        return self._derive(join=target)

    def using(self, database: Database | None) -> Query[T]:
        """Run this query against a specific database."""
        return Query(model=self.model, state=self.state, database=database)

    @property
    def conditions(self) -> tuple[tuple[tuple[str, Any], ...], ...]:
        return self.state.conditions

    @property
    def bind_values(self) -> list[Any]:
        return list(self.state.bind_values)

    def to_sql(self) -> str:
        """Generate the SQL text; values are left as ``?`` placeholders."""
        state = self.state
        table = self.model.__tablename__

        parts = [f"SELECT {', '.join(state.projection) or '*'}", f"FROM {table}"]

        if state.join is not None:
            target, on = resolve_join(self.model, state.join)
            parts.append(f"INNER JOIN {target.__tablename__} ON {on}")

        if state.conditions:
            where_parts = []
            for group in state.conditions:
                for col, value in group:
                    if isinstance(value, Between):
                        where_parts.append(f"{col} BETWEEN ? and ?")
                    else:
                        where_parts.append(f"{col} = ?")
            parts.append("WHERE " + " AND ".join(where_parts))

        if state.ordering:
            parts.append("ORDER BY " + ", ".join(f"{col} {direction}" for col, direction in state.ordering))

        if state.limit is not None:
            parts.append(f"LIMIT {state.limit}")
            if state.offset is not None:
                parts.append(f"OFFSET {state.offset}")

        return " ".join(parts)

    def validate(self) -> None:
        """Check the state can be executed.

        Raises:
            InvalidQueryError: For OFFSET without LIMIT, a non-integer or negative
                LIMIT/OFFSET, or an unknown sort direction.
        """
        state = self.state
        if state.offset is not None and state.limit is None:
            raise InvalidQueryError("OFFSET requires LIMIT")
        for name, value in (("LIMIT", state.limit), ("OFFSET", state.offset)):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidQueryError(f"{name} must be a non-negative integer, got {value!r}")
        for col, direction in state.ordering:
            if direction not in _DIRECTIONS:
                raise InvalidQueryError(f"Unknown sort direction {direction!r} for {col}")

    def run(self, database: Database | None = None) -> QueryResult:
        """Validate, then send the SQL and bind values to the database."""
        self.validate()
        db = self._resolve_database(database)
        return db.execute(self.to_sql(), self.bind_values)

    def execute(self, database: Database | None = None) -> Any:
        """Run the query and convert the rows into records, join pairs or a scalar."""
        db = self._resolve_database(database)
        return resolve_result(self, self.run(db), db)

    def scalar(self, database: Database | None = None) -> Any:
        """Run the query and return the first column of the first row."""
        return self.run(database).scalar()

    def _resolve_database(self, database: Database | None) -> Database:
        db = database or self.database or self.model.__database__
        if db is None:
            raise DatabaseError(
                f"{self.model.__name__} is not bound to a database; call Database.bind() first"
            )
        return db

    def __repr__(self) -> str:
        return f"<Query {self.model.__name__} {self.state!r}>"


@dataclass
class WhereClause:
    """Represents a WHERE condition in a write statement."""

    column: str
    operator: str
    value: Any


@dataclass
class InsertStatement[T: "Base"]:
    """Represents an INSERT of one row."""

    model: type[T]
    _values: dict[str, Any] = field(default_factory=dict)

    def values(self, **kwargs: Any) -> InsertStatement[T]:
        """Specify values to insert.

        Example:
            >>> insert(User).values(name="Alice", email="alice@example.com")
        """
        return InsertStatement(model=self.model, _values={**self._values, **kwargs})

    def to_sql(self) -> tuple[str, list[Any]]:
        """Generate SQL string and parameters."""
        table = self.model.__tablename__
        if not self._values:
            return f"INSERT INTO {table} DEFAULT VALUES", []

        columns = list(self._values)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        return sql, [self._values[col] for col in columns]


@dataclass
class UpdateStatement[T: "Base"]:
    """Represents an UPDATE query."""

    model: type[T]
    _set_values: dict[str, Any] = field(default_factory=dict)
    _where_clauses: list[WhereClause] = field(default_factory=list)

    def values(self, **kwargs: Any) -> UpdateStatement[T]:
        """Specify values to update.

        Example:
            >>> update(User).values(name="Alice").filter_by(id=1)
        """
        return UpdateStatement(
            model=self.model,
            _set_values={**self._set_values, **kwargs},
            _where_clauses=self._where_clauses,
        )

    def where(self, *conditions: WhereClause) -> UpdateStatement[T]:
        """Add WHERE conditions."""
        return UpdateStatement(
            model=self.model,
            _set_values=self._set_values,
            _where_clauses=self._where_clauses + list(conditions),
        )

    def filter_by(self, **kwargs: Any) -> UpdateStatement[T]:
        return self.where(*(WhereClause(col, "=", value) for col, value in kwargs.items()))

    def to_sql(self) -> tuple[str, list[Any]]:
        """Generate SQL string and parameters."""
        if not self._set_values:
            raise InvalidQueryError("No values specified for UPDATE")

        table = self.model.__tablename__
        params: list[Any] = list(self._set_values.values())
        set_parts = [f"{col} = ?" for col in self._set_values]
        sql = f"UPDATE {table} SET {', '.join(set_parts)}"

        where_sql, where_params = _where_sql(self._where_clauses)
        return sql + where_sql, params + where_params


@dataclass
class DeleteStatement[T: "Base"]:
    """Represents a DELETE query."""

    model: type[T]
    _where_clauses: list[WhereClause] = field(default_factory=list)

    def where(self, *conditions: WhereClause) -> DeleteStatement[T]:
        """Add WHERE conditions."""
        return DeleteStatement(
            model=self.model,
            _where_clauses=self._where_clauses + list(conditions),
        )

    def filter_by(self, **kwargs: Any) -> DeleteStatement[T]:
        return self.where(*(WhereClause(col, "=", value) for col, value in kwargs.items()))

    def to_sql(self) -> tuple[str, list[Any]]:
        """Generate SQL string and parameters."""
        where_sql, params = _where_sql(self._where_clauses)
        return f"DELETE FROM {self.model.__tablename__}{where_sql}", params


@dataclass
class CreateTableStatement[T: "Base"]:
    """Represents a CREATE TABLE for a record type."""

    model: type[T]
    if_not_exists: bool = False

    def to_sql(self) -> tuple[str, list[Any]]:
        """Generate SQL string and parameters."""
        columns = ", ".join(col.ddl() for col in self.model.__columns__.values())
        guard = "IF NOT EXISTS " if self.if_not_exists else ""
        return f"CREATE TABLE {guard}{self.model.__tablename__} ({columns})", []


def _where_sql(clauses: list[WhereClause]) -> tuple[str, list[Any]]:
    if not clauses:
        return "", []
    where_parts = [f"{clause.column} {clause.operator} ?" for clause in clauses]
    return " WHERE " + " AND ".join(where_parts), [clause.value for clause in clauses]


def select[T: "Base"](model: type[T], database: Database | None = None) -> Query[T]:
    """Create a SELECT query for a model.

    Example:
        >>> query = select(User).where(name="Alice")
        >>> users = query.execute(db)
    """
    return Query(model=model, database=database)


def insert[T: "Base"](model: type[T]) -> InsertStatement[T]:
    """Create an INSERT statement for a model.

    Example:
        >>> sql, params = insert(User).values(name="Alice").to_sql()
    """
    return InsertStatement(model=model)


def update[T: "Base"](model: type[T]) -> UpdateStatement[T]:
    """Create an UPDATE statement for a model.

    Example:
        >>> sql, params = update(User).values(name="Bob").filter_by(id=1).to_sql()
    """
    return UpdateStatement(model=model)


def delete[T: "Base"](model: type[T]) -> DeleteStatement[T]:
    """Create a DELETE statement for a model.

    Example:
        >>> sql, params = delete(User).filter_by(id=1).to_sql()
    """
    return DeleteStatement(model=model)


def create_table[T: "Base"](model: type[T], if_not_exists: bool = False) -> CreateTableStatement[T]:
    """Create a CREATE TABLE statement for a model."""
    return CreateTableStatement(model=model, if_not_exists=if_not_exists)
