"""Declarative base for record types."""

from __future__ import annotations

import inspect
import logging
import sys
import typing
from dataclasses import replace
from typing import Any, ClassVar

from minirecord.exceptions import DatabaseError, MissingIdentifierError

if typing.TYPE_CHECKING:
    from minirecord.cursor import Cursor
    from minirecord.database import Database
    from minirecord.fields import ColumnInfo
    from minirecord.relationships import Association, AssociationState, ScopeInfo

logger = logging.getLogger(__name__)


class ModelMeta(type):
    """Metaclass that collects columns, associations and scopes of a record type."""

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> ModelMeta:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Import here to avoid circular imports
        from minirecord.fields import ColumnInfo, extract_mapped_type, primary_key_column
        from minirecord.relationships import AssociationInfo, ScopeInfo, register_model

        # Skip processing for the Base class itself
        if name == "Base" and not bases:
            cls.__columns__ = {}  # type: ignore[attr-defined]
            cls.__relationships__ = {}  # type: ignore[attr-defined]
            cls.__scopes__ = {}  # type: ignore[attr-defined]
            cls.__foreign_keys__ = {}  # type: ignore[attr-defined]
            return cls

        tablename = namespace.get("__tablename__")
        if tablename is None:
            # Generate table name from class name
            tablename = name.lower() + "s"
        cls.__tablename__ = tablename  # type: ignore[attr-defined]

        hints = _own_mapped_hints(cls, namespace)

        # Columns: inherited first, then this class, in annotation order
        columns: dict[str, ColumnInfo] = {}
        for base in reversed(cls.__mro__[1:]):
            for col_name, col_info in getattr(base, "__columns__", {}).items():
                # Clone the ColumnInfo to avoid sharing between classes
                columns[col_name] = replace(col_info)

        for attr_name, hint in hints.items():
            python_type, nullable = extract_mapped_type(hint)
            declared = namespace.get(attr_name)
            if isinstance(declared, (AssociationInfo, ScopeInfo)):
                continue
            if isinstance(declared, ColumnInfo):
                col = replace(declared, name=attr_name, python_type=python_type)
                if col.nullable is None:
                    col.nullable = nullable
            elif attr_name in columns:
                continue
            else:
                col = ColumnInfo(name=attr_name, python_type=python_type, nullable=nullable)
            columns[attr_name] = col

        for attr_name, attr_value in namespace.items():
            if isinstance(attr_value, ColumnInfo) and attr_name not in columns:
                columns[attr_name] = replace(attr_value, name=attr_name)

        pk = columns.pop("id", None) or primary_key_column()
        if not pk.primary_key:
            raise TypeError(f"{name}.id must be declared with mapped_column(primary_key=True)")
        for col_name, col_info in columns.items():
            if col_info.primary_key:
                raise TypeError(f"{name}.{col_name}: only 'id' can be the primary key")
        columns = {"id": pk, **columns}

        # Class-level ColumnInfo attributes point at the named copies
        for attr_name, attr_value in namespace.items():
            if isinstance(attr_value, ColumnInfo):
                setattr(cls, attr_name, columns[attr_name])

        # Associations: inherited, then declared here
        relationships: dict[str, Association] = dict(getattr(cls, "__relationships__", {}))
        scopes: dict[str, ScopeInfo] = dict(getattr(cls, "__scopes__", {}))
        for attr_name, attr_value in namespace.items():
            if isinstance(attr_value, AssociationInfo):
                relationships[attr_name] = attr_value.bind(name, attr_name)
                # Remove from namespace so __getattr__ can handle it
                delattr(cls, attr_name)
            elif isinstance(attr_value, ScopeInfo):
                scopes[attr_name] = attr_value

        foreign_keys: dict[str, tuple[str, ...]] = {}
        for rel_name, association in relationships.items():
            if association.kind != "belongs_to":
                continue
            if association.foreign_key not in columns:
                raise TypeError(
                    f"{name}.{rel_name}: belongs_to needs a '{association.foreign_key}' column"
                )
            foreign_keys[association.foreign_key] = foreign_keys.get(association.foreign_key, ()) + (rel_name,)

        cls.__columns__ = columns  # type: ignore[attr-defined]
        cls.__relationships__ = relationships  # type: ignore[attr-defined]
        cls.__scopes__ = scopes  # type: ignore[attr-defined]
        cls.__foreign_keys__ = foreign_keys  # type: ignore[attr-defined]

        # Register model for association resolution
        register_model(cls)  # type: ignore[arg-type]

        return cls


def _own_mapped_hints(cls: type, namespace: dict[str, Any]) -> dict[str, Any]:
    """Evaluate the ``Mapped[...]`` annotations declared directly on ``cls``.

    Inherited columns come from the bases' ``__columns__``, so only the
    class's own annotations are read. String annotations (from
    ``from __future__ import annotations``) are evaluated against the
    defining module.
    """
    from minirecord.fields import Mapped, is_mapped

    module = sys.modules.get(cls.__module__, None)
    globalns = dict(getattr(module, "__dict__", {})) if module else {}
    globalns.setdefault("Mapped", Mapped)
    localns = dict(namespace)

    annotations = inspect.get_annotations(cls, globals=globalns, locals=localns, eval_str=True)
    return {
        attr_name: hint
        for attr_name, hint in annotations.items()
        if not attr_name.startswith("_") and is_mapped(hint)
    }


class Base(metaclass=ModelMeta):
    """Base class for all record types.

    Example:
        >>> class User(Base):
        ...     name: Mapped[str | None]
        ...     email: Mapped[str | None]
        ...     posts = has_many()
        ...
        >>> class Post(Base):
        ...     title: Mapped[str | None]
        ...     user_id: Mapped[int | None]
        ...     user = belongs_to()
    """

    __tablename__: ClassVar[str]
    __columns__: ClassVar[dict[str, ColumnInfo]]
    __relationships__: ClassVar[dict[str, Association]]
    __scopes__: ClassVar[dict[str, ScopeInfo]]
    __foreign_keys__: ClassVar[dict[str, tuple[str, ...]]]
    __database__: ClassVar[Database | None] = None

    id: int | None

    # Instance attributes for association state
    _loaded_relationships: dict[str, Any]
    _overridden: set[str]
    _database: Database | None

    def __init__(self, **kwargs: Any) -> None:
        """Initialize a record with the given column or association values.

        Raises:
            TypeError: If a keyword is neither a column nor an association.
        """
        self._init_state(None)
        for col_name, col_info in self.__columns__.items():
            object.__setattr__(self, col_name, col_info.default_value())

        for key, value in kwargs.items():
            if key in self.__columns__ or key in self.__relationships__:
                setattr(self, key, value)
            else:
                raise TypeError(f"Unknown column or association for {type(self).__name__}: {key}")

    def _init_state(self, database: Database | None) -> None:
        object.__setattr__(self, "_loaded_relationships", {})
        object.__setattr__(self, "_overridden", set())
        object.__setattr__(self, "_database", database)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id!r}>"

    def __getattr__(self, name: str) -> Any:
        """Handle access to association attributes."""
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        if name in type(self).__relationships__:
            from minirecord.relationships import resolve_association
            return resolve_association(self, name)

        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        cls = type(self)
        if name in cls.__relationships__:
            from minirecord.relationships import set_association
            set_association(self, name, value)
            return

        # Reassigning a belongs_to foreign key invalidates the cached record
        if name in cls.__foreign_keys__:
            from minirecord.relationships import forget_association
            for rel_name in cls.__foreign_keys__[name]:
                forget_association(self, rel_name)

        object.__setattr__(self, name, value)

    @property
    def is_new(self) -> bool:
        return self.id is None

    def association_state(self, name: str) -> AssociationState:
        """Report whether an association is unresolved, resolved or overridden."""
        from minirecord.relationships import association_state
        return association_state(self, name)

    def reset_association(self, name: str) -> None:
        """Forget a cached or overridden association value."""
        from minirecord.relationships import forget_association
        forget_association(self, name)

    def to_dict(self, include_relationships: bool = False) -> dict[str, Any]:
        """Convert record to a dictionary."""
        result = {col_name: getattr(self, col_name) for col_name in self.__columns__}

        if include_relationships:
            for rel_name in self.__relationships__:
                if rel_name not in self._loaded_relationships:
                    continue
                rel_value = self._loaded_relationships[rel_name]
                if rel_value is None:
                    result[rel_name] = None
                elif isinstance(rel_value, Base):
                    result[rel_name] = rel_value.to_dict()
                else:
                    result[rel_name] = [item.to_dict() for item in rel_value]

        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Base:
        """Create a record from a dictionary, dropping keys that are not columns."""
        return cls(**{k: v for k, v in data.items() if k in cls.__columns__})

    @classmethod
    def _from_row(
        cls,
        columns: list[str],
        values: typing.Sequence[Any],
        database: Database | None = None,
    ) -> Base:
        """Hydrate a record from a database row.

        Raises:
            TypeError: If a column name is not declared on the record type.
        """
        instance = object.__new__(cls)
        instance._init_state(database)

        cols = cls.__columns__
        for col_name in cols:
            object.__setattr__(instance, col_name, None)
        for col_name, value in zip(columns, values):
            if col_name not in cols:
                raise TypeError(f"Unknown column for {cls.__name__}: {col_name}")
            object.__setattr__(instance, col_name, value)

        return instance

    # ========== Schema ==========

    @classmethod
    def table_name(cls) -> str:
        return cls.__tablename__

    @classmethod
    def column_names(cls) -> list[str]:
        """Column names in table order, ``id`` first."""
        return list(cls.__columns__)

    @classmethod
    def columns_definition(cls) -> dict[str, str]:
        """Declared columns (without ``id``) mapped to their SQLite types."""
        return {
            col_name: col_info.sql_type()
            for col_name, col_info in cls.__columns__.items()
            if not col_info.primary_key
        }

    @classmethod
    def create_table(cls, database: Database | None = None, *, if_not_exists: bool = False) -> None:
        from minirecord.query import create_table

        sql, params = create_table(cls, if_not_exists=if_not_exists).to_sql()
        cls._require_database(database).execute(sql, params)
        logger.info("Created table %s", cls.__tablename__)

    @classmethod
    def bind(cls, database: Database | None) -> None:
        """Attach a database to this record type (and subclasses that have none)."""
        cls.__database__ = database

    @classmethod
    def _require_database(cls, database: Database | None = None) -> Database:
        db = database or cls.__database__
        if db is None:
            raise DatabaseError(f"{cls.__name__} is not bound to a database; call Database.bind() first")
        return db

    # ========== Queries ==========

    @classmethod
    def query(cls, database: Database | None = None) -> Cursor[Any]:
        """Start a new cursor over all rows."""
        from minirecord.cursor import Cursor
        from minirecord.query import Query

        return Cursor(Query(model=cls, database=database))

    @classmethod
    def all(cls) -> Cursor[Any]:
        return cls.query()

    @classmethod
    def where(cls, conditions: dict[str, Any] | None = None, /, **kwargs: Any) -> Cursor[Any]:
        return cls.query().where(conditions, **kwargs)

    @classmethod
    def select(cls, *expressions: Any) -> Cursor[Any]:
        return cls.query().select(*expressions)

    @classmethod
    def order(cls, *columns: Any, **directions: str) -> Cursor[Any]:
        return cls.query().order(*columns, **directions)

    @classmethod
    def limit(cls, n: int) -> Cursor[Any]:
        return cls.query().limit(n)

    @classmethod
    def offset(cls, n: int) -> Cursor[Any]:
        return cls.query().offset(n)

    @classmethod
    def join(cls, target: str) -> Cursor[Any]:
        return cls.query().join(target)

    @classmethod
    def first(cls) -> Any:
        return cls.query().first()

    @classmethod
    def last(cls) -> Any:
        return cls.query().last()

    @classmethod
    def count(cls) -> int:
        return cls.query().count()

    @classmethod
    def find(cls, id: Any, *, database: Database | None = None) -> Any:
        """Look up a record by primary key; returns None when there is no such row.

        Raises:
            MissingIdentifierError: If id is None.
        """
        if id is None:
            raise MissingIdentifierError(f"{cls.__name__}.find() requires an id")
        return cls.query(database).where(id=id).first()

    @classmethod
    def create(cls, **attributes: Any) -> Any:
        """Build and save a record; returns None if saving failed."""
        instance = cls(**attributes)
        if instance.save():
            return instance
        return None

    # ========== Persistence ==========

    def save(self) -> bool:
        """INSERT a new record or UPDATE an existing one.

        Any failure is logged and reported as False.
        """
        try:
            if self.id is None:
                self._insert_record()
            else:
                self._update_record()
        except Exception:
            logger.warning("Failed to save %r", self, exc_info=True)
            return False
        return True

    def update(self, **attributes: Any) -> bool:
        """Assign attributes, then save().

        Raises:
            TypeError: If a keyword is not a column, before anything is assigned.
        """
        unknown = [key for key in attributes if key not in self.__columns__]
        if unknown:
            raise TypeError(f"Unknown column for {type(self).__name__}: {', '.join(unknown)}")
        for key, value in attributes.items():
            setattr(self, key, value)
        return self.save()

    def destroy(self) -> bool:
        """DELETE the row and clear the id; returns False for unsaved records."""
        from minirecord.query import delete

        if self.id is None:
            return False
        sql, params = delete(type(self)).filter_by(id=self.id).to_sql()
        self._database_for_write().execute(sql, params)
        self.id = None
        return True

    def _insert_record(self) -> None:
        from minirecord.query import insert

        database = self._database_for_write()
        sql, params = insert(type(self)).values(**self._column_values()).to_sql()
        result = database.execute(sql, params)
        self.id = result.lastrowid or database.last_insert_id()
        object.__setattr__(self, "_database", database)

    def _update_record(self) -> None:
        from minirecord.query import update

        sql, params = update(type(self)).values(**self._column_values()).filter_by(id=self.id).to_sql()
        self._database_for_write().execute(sql, params)

    def _column_values(self) -> dict[str, Any]:
        return {col_name: getattr(self, col_name) for col_name in self.columns_definition()}

    def _database_for_write(self) -> Database:
        return type(self)._require_database(self._database)
