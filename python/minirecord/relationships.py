"""Association declarations and resolution.

Declaring ``belongs_to``/``has_one``/``has_many`` in a class body records an
entry in the model's association registry (``__relationships__``). Reading
the attribute on a record goes through ``resolve_association``, which
dispatches on the declaration's kind and caches the result per instance.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from minirecord.exceptions import RecordNotFound, UnknownAssociationError

if TYPE_CHECKING:
    from minirecord.base import Base
    from minirecord.cursor import Cursor

logger = logging.getLogger(__name__)


# Global model registry - maps table names and class names to model classes
_model_registry: dict[str, type[Base]] = {}


def register_model(model_cls: type[Base]) -> None:
    """Register a model class for association resolution."""
    _model_registry[model_cls.__tablename__] = model_cls
    _model_registry[model_cls.__name__] = model_cls


def get_model(name: str) -> type[Base] | None:
    """Get a model class by table name or class name."""
    return _model_registry.get(name)


class AssociationState(enum.Enum):
    """Per-record state of one association."""

    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    OVERRIDDEN = "overridden"


@dataclass(frozen=True)
class Association:
    """A resolved association declaration on an owning model."""

    kind: ClassVar[str] = ""

    name: str
    target: str
    foreign_key: str

    def target_model(self) -> type[Base]:
        model = get_model(self.target)
        if model is None:
            raise UnknownAssociationError(
                f"Association '{self.name}' targets unknown model '{self.target}'"
            )
        return model


@dataclass(frozen=True)
class BelongsTo(Association):
    """Foreign key lives on the owner and points at the target's id."""

    kind: ClassVar[str] = "belongs_to"


@dataclass(frozen=True)
class HasOne(Association):
    """Foreign key lives on the target and points at the owner's id."""

    kind: ClassVar[str] = "has_one"


@dataclass(frozen=True)
class HasMany(Association):
    """Like HasOne, but every matching target row belongs to the owner."""

    kind: ClassVar[str] = "has_many"


_VARIANTS: dict[str, type[Association]] = {
    BelongsTo.kind: BelongsTo,
    HasOne.kind: HasOne,
    HasMany.kind: HasMany,
}


@dataclass
class AssociationInfo:
    """An association as written in a class body, before the owner is known."""

    kind: str
    target: str | None = None
    foreign_key: str | None = None

    def bind(self, owner_name: str, attr_name: str) -> Association:
        """Fill in naming defaults and produce the registry entry."""
        if self.kind == BelongsTo.kind:
            target = self.target or attr_name.capitalize()
            foreign_key = self.foreign_key or f"{attr_name}_id"
        else:
            if self.target:
                target = self.target
            elif self.kind == HasMany.kind:
                target = attr_name.removesuffix("s").capitalize()
            else:
                target = attr_name.capitalize()
            foreign_key = self.foreign_key or f"{owner_name.lower()}_id"
        return _VARIANTS[self.kind](name=attr_name, target=target, foreign_key=foreign_key)


def belongs_to(target: str | None = None, *, foreign_key: str | None = None) -> Any:
    """Declare that the owner references one target record through its own column.

    Args:
        target: Target model name; defaults to the capitalised attribute name
        foreign_key: Column on the owner; defaults to ``<attribute>_id``

    Example:
        >>> class Post(Base):
        ...     user_id: Mapped[int | None]
        ...     user = belongs_to()
    """
    return AssociationInfo(BelongsTo.kind, target, foreign_key)


def has_one(target: str | None = None, *, foreign_key: str | None = None) -> Any:
    """Declare that one target record references the owner.

    Args:
        target: Target model name; defaults to the capitalised attribute name
        foreign_key: Column on the target; defaults to ``<owner>_id``

    Example:
        >>> class User(Base):
        ...     profile = has_one()
    """
    return AssociationInfo(HasOne.kind, target, foreign_key)


def has_many(target: str | None = None, *, foreign_key: str | None = None) -> Any:
    """Declare that many target records reference the owner.

    The target defaults to the attribute name without its trailing ``s``.

    Example:
        >>> class User(Base):
        ...     posts = has_many()
    """
    return AssociationInfo(HasMany.kind, target, foreign_key)


class ScopeInfo:
    """A named, reusable query fragment attached to a model.

    Accessing the scope on the model returns a zero-argument callable that
    builds a fresh cursor with the fragment applied.
    """

    def __init__(self, fn: Callable[[Cursor[Any]], Cursor[Any]]) -> None:
        self.fn = fn
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type[Base]) -> Callable[[], Cursor[Any]]:
        def build() -> Cursor[Any]:
            return owner.query().scope(self.name or "")

        build.__name__ = self.name or "scope"
        return build

    def apply(self, cursor: Cursor[Any]) -> Cursor[Any]:
        return self.fn(cursor)

    def __repr__(self) -> str:
        return f"<Scope {self.name}>"


def scope(fn: Callable[[Cursor[Any]], Cursor[Any]]) -> Any:
    """Declare a named scope.

    Example:
        >>> class User(Base):
        ...     active: Mapped[int]
        ...     enabled = scope(lambda q: q.where(active=1))
        >>> User.enabled().count()
    """
    return ScopeInfo(fn)


# ========== Per-record resolution ==========


def resolve_association(record: Base, name: str) -> Any:
    """Return the value of association ``name`` on ``record``, loading it if needed."""
    association = type(record).__relationships__[name]
    loaded = record._loaded_relationships
    if name in loaded:
        return loaded[name]

    database = record._database
    kind = association.kind

    if kind == BelongsTo.kind:
        foreign_key_value = getattr(record, association.foreign_key)
        if foreign_key_value is None:
            return None
        target = association.target_model()
        value = target.find(foreign_key_value, database=database)
        if value is None:
            raise RecordNotFound(
                f"{name} is not found: no {target.__name__} with id={foreign_key_value!r}"
            )

    elif kind == HasOne.kind:
        if record.id is None:
            return None
        target = association.target_model()
        value = target.query(database).where({association.foreign_key: record.id}).first()

    elif kind == HasMany.kind:
        if record.id is None:
            return []
        target = association.target_model()
        value = target.query(database).where({association.foreign_key: record.id})

    else:
        raise UnknownAssociationError(f"Unsupported association kind: {kind}")

    logger.debug("Resolved %s.%s for %r", type(record).__name__, name, record)
    loaded[name] = value
    return value


def set_association(record: Base, name: str, value: Any) -> None:
    """Override an association value without touching the database."""
    record._loaded_relationships[name] = value
    record._overridden.add(name)


def forget_association(record: Base, name: str) -> None:
    """Drop a cached or overridden value so the next read resolves again."""
    record._loaded_relationships.pop(name, None)
    record._overridden.discard(name)


def association_state(record: Base, name: str) -> AssociationState:
    if name not in type(record).__relationships__:
        raise UnknownAssociationError(f"{type(record).__name__} has no association '{name}'")
    if name in record._overridden:
        return AssociationState.OVERRIDDEN
    if name in record._loaded_relationships:
        return AssociationState.RESOLVED
    return AssociationState.UNRESOLVED


# ========== Joins ==========


def resolve_join(owner: type[Base], target_name: str) -> tuple[type[Base], str]:
    """Resolve a join target to its model and the ON condition.

    ``target_name`` may be an association name, a class name or a table name.
    Without a matching has_one/has_many declaration the foreign key is
    inferred as ``<owner>_id`` on the target table.
    """
    owner_table = owner.__tablename__
    association = owner.__relationships__.get(target_name)

    if association is not None:
        target = association.target_model()
        target_table = target.__tablename__
        if association.kind == BelongsTo.kind:
            on = f"{owner_table}.{association.foreign_key} = {target_table}.id"
        else:
            on = f"{owner_table}.id = {target_table}.{association.foreign_key}"
        return target, on

    target = get_model(target_name)
    if target is None:
        raise UnknownAssociationError(f"Cannot join {owner.__name__} to unknown target '{target_name}'")
    target_table = target.__tablename__
    return target, f"{owner_table}.id = {target_table}.{owner.__name__.lower()}_id"
