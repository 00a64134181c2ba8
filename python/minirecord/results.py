"""Conversion of raw rows into the shape a query asked for.

The shape is chosen from the query state, in this order:

1. join result: the query has a join target; each row becomes a
   ``JoinResult(owner, target)`` pair split positionally by column count.
2. aggregation result: the projection is a single function call such as
   ``COUNT(*)`` or ``MAX(name)``; one returned row gives its value as-is,
   any other number of rows gives the list of values.
3. normal result: each row is hydrated into a record.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, NamedTuple

from minirecord.exceptions import InvalidQueryError
from minirecord.relationships import resolve_join

if TYPE_CHECKING:
    from minirecord.base import Base
    from minirecord.database import Database, QueryResult
    from minirecord.query import Query

_AGGREGATE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\(.*\)$")


class JoinResult(NamedTuple):
    """One joined row: the owner record and the joined target record."""

    owner: Any
    target: Any


def is_aggregate(projection: tuple[str, ...]) -> bool:
    """Check whether a projection is a single aggregate expression."""
    return len(projection) == 1 and bool(_AGGREGATE.match(projection[0].strip()))


def resolve_result(query: Query[Any], result: QueryResult, database: Database | None = None) -> Any:
    state = query.state

    if state.join is not None:
        return _join_rows(query, result, database)

    if is_aggregate(state.projection) and all(len(row) == 1 for row in result.rows):
        # A function call is never a column, so its values are not hydrated.
        if len(result.rows) == 1:
            return result.rows[0][0]
        return [row[0] for row in result.rows]

    columns = result.columns if state.projection else query.model.column_names()
    return [query.model._from_row(columns, row, database) for row in result.rows]


def _join_rows(query: Query[Any], result: QueryResult, database: Database | None) -> list[JoinResult]:
    owner: type[Base] = query.model
    target, _on = resolve_join(owner, query.state.join or "")
    owner_columns = owner.column_names()
    target_columns = target.column_names()
    width = len(owner_columns)
    expected = width + len(target_columns)

    pairs = []
    for row in result.rows:
        if len(row) != expected:
            raise InvalidQueryError(
                f"Joined rows of {owner.__name__} and {target.__name__} need {expected} columns, "
                f"got {len(row)}; join queries cannot use a custom projection"
            )
        pairs.append(JoinResult(
            owner._from_row(owner_columns, row[:width], database),
            target._from_row(target_columns, row[width:], database),
        ))
    return pairs
