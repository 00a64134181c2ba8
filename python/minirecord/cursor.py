"""Lazy, memoizing wrapper around a Query."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Callable

from minirecord.query import Query, QueryState

if TYPE_CHECKING:
    from minirecord.base import Base

logger = logging.getLogger(__name__)


class Cursor[T: "Base"]:
    """A pending query whose rows are fetched at most once.

    Builder methods return a new, unloaded cursor. Iterating (or calling
    ``to_list``, ``len``, indexing) runs the query the first time and reuses
    the rows afterwards. ``first``, ``last`` and ``count`` always run their
    own query and never touch the cache.

    Example:
        >>> adults = User.where(age=between(18, 120))
        >>> adults.count()
        >>> for user in adults.order("name"):
        ...     print(user.name)
    """

    __slots__ = ("_query", "_records", "_loaded")

    def __init__(self, query: Query[T]) -> None:
        self._query = query
        self._records: list[Any] = []
        self._loaded = False

    @property
    def query(self) -> Query[T]:
        return self._query

    @property
    def model(self) -> type[T]:
        return self._query.model

    @property
    def state(self) -> QueryState:
        return self._query.state

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def bind_values(self) -> list[Any]:
        return self._query.bind_values

    def to_sql(self) -> str:
        return self._query.to_sql()

    # ========== Builder methods ==========

    def where(self, conditions: dict[str, Any] | None = None, /, **kwargs: Any) -> Cursor[T]:
        return Cursor(self._query.where(conditions, **kwargs))

    def select(self, *expressions: Any) -> Cursor[T]:
        return Cursor(self._query.select(*expressions))

    def order(self, *columns: Any, **directions: str) -> Cursor[T]:
        return Cursor(self._query.order(*columns, **directions))

    def limit(self, n: int) -> Cursor[T]:
        return Cursor(self._query.limit(n))

    def offset(self, n: int) -> Cursor[T]:
        return Cursor(self._query.offset(n))

    def join(self, target: str) -> Cursor[T]:
        return Cursor(self._query.join(target))

    def scope(self, name: str) -> Cursor[T]:
        """Apply a scope registered on the model.

        Raises:
            AttributeError: If the model has no such scope.
        """
        scopes = self.model.__scopes__
        if name not in scopes:
            raise AttributeError(f"{self.model.__name__} has no scope '{name}'")
        return scopes[name].apply(self)

    def __getattr__(self, name: str) -> Callable[[], Cursor[T]]:
        # Only registered scope names are exposed; nothing else is forwarded.
        if name.startswith("_"):
            raise AttributeError(name)
        scopes = self._query.model.__scopes__
        if name in scopes:
            return lambda: self.scope(name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    # ========== Terminal operations ==========

    def first(self) -> Any:
        """Run a LIMIT 1 query now and return its result, or None."""
        return _first(self._query.limit(1).execute())

    def last(self) -> Any:
        """Return the row with the highest id, or None.

        This orders by ``id DESC`` rather than reversing the current order.
        """
        id_column = "id" if self.state.join is None else f"{self.model.__tablename__}.id"
        result = self._query.order((id_column, "DESC")).limit(1).execute()
        if isinstance(result, list):
            return result[-1] if result else None
        return result

    def count(self) -> int:
        """Return the number of matching rows."""
        return self._query.reselect("COUNT(*)").scalar() or 0

    def load(self) -> Cursor[T]:
        """Run the query unless it has already been run."""
        if not self._loaded:
            result = self._query.execute()
            self._records = result if isinstance(result, list) else [result]
            self._loaded = True
            logger.debug("Loaded %d row(s) for %s", len(self._records), self.model.__name__)
        return self

    def reload(self) -> Cursor[T]:
        """Return an unloaded cursor over the same query."""
        return Cursor(self._query)

    def to_list(self) -> list[Any]:
        return list(self.load()._records)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.load()._records)

    def __len__(self) -> int:
        return len(self.load()._records)

    def __getitem__(self, index: int | slice) -> Any:
        return self.load()._records[index]

    def __bool__(self) -> bool:
        return bool(self.load()._records)

    def __repr__(self) -> str:
        state = "loaded" if self._loaded else "pending"
        return f"<Cursor {self.model.__name__} {state}>"


def _first(result: Any) -> Any:
    if isinstance(result, list):
        return result[0] if result else None
    return result
