"""
Core functionality of ScopeDAL: the Manager binds models to tables on one connection.
"""

from __future__ import annotations

import logging
import typing as t

from .constants import DEFAULT_FOUND_ROWS_KEY
from .exceptions import UnassociatedModel
from .helpers import to_snake
from .query import Query
from .static_model import StaticModel
from .table import Table
from .types import Connection, KeyValues, ModelRef, T_Model

if t.TYPE_CHECKING:
    from .define import ModelDescriptor
    from .models import Model

logger = logging.getLogger(__name__)


class Manager:
    """
    Registry of associated models, entry point for queries and record operations.

    Example:
        manager = Manager(ScopeDAL("sqlite://app.db"))

        @manager.define(table="posts")
        class Post(Model):
            id: int
            title: str

        manager.select("Post").where("@title LIKE ?", ["%news%"]).all()
        manager.Post.by_id(1).first()
    """

    connection: Connection
    found_rows_key: str

    def __init__(self, connection: t.Optional[Connection] = None, **config: t.Any) -> None:
        """
        Without a connection, a ScopeDAL is created from the config (pyproject.toml, .env and keyword arguments).
        """
        if connection is None:
            from .connection import ScopeDAL

            connection = ScopeDAL(**config)

        self.connection = connection
        connection_config = getattr(connection, "_config", None)
        self.found_rows_key = getattr(connection_config, "found_rows_key", None) or DEFAULT_FOUND_ROWS_KEY

        self._descriptors: dict[str | type, "ModelDescriptor"] = {}
        self._tables: dict[str, Table] = {}

    def __repr__(self) -> str:
        """
        Show the associated model names.
        """
        return f"<Manager {sorted(self.model_names())}>"

    def model_names(self) -> list[str]:
        """
        Names under which models were associated.
        """
        return [key for key in self._descriptors if isinstance(key, str)]

    # -- registry --

    def associate(
        self,
        model: t.Type[T_Model],
        table: t.Optional[str] = None,
        name: t.Optional[str] = None,
    ) -> t.Type[T_Model]:
        """
        Register a model under its name (and class); the descriptor is built and validated right away.

        The table identifier defaults to the `table=` class keyword, or the snake_case class name.
        """
        descriptor = model.describe()
        name = name or descriptor.name
        identifier = table or model.__settings__.get("table") or to_snake(descriptor.name)

        table_ = Table(self, descriptor, identifier)
        for key in {name, descriptor.name}:
            self._descriptors[key] = descriptor
            self._tables[key] = table_
        self._descriptors[model] = descriptor

        logger.debug("associated %s with table %s", name, identifier)
        return model

    @t.overload
    def define(
        self,
        maybe_cls: None = None,
        table: t.Optional[str] = None,
        name: t.Optional[str] = None,
    ) -> t.Callable[[t.Type[T_Model]], t.Type[T_Model]]:
        """
        Typing Overload for define without a class.

        @manager.define(table="posts")
        class Post(Model): ...
        """

    @t.overload
    def define(
        self,
        maybe_cls: t.Type[T_Model],
        table: t.Optional[str] = None,
        name: t.Optional[str] = None,
    ) -> t.Type[T_Model]:
        """
        Typing Overload for define with a class.

        @manager.define
        class Post(Model): ...
        """

    def define(
        self,
        maybe_cls: t.Optional[t.Type[T_Model]] = None,
        table: t.Optional[str] = None,
        name: t.Optional[str] = None,
    ) -> t.Type[T_Model] | t.Callable[[t.Type[T_Model]], t.Type[T_Model]]:
        """
        Decorator version of associate, usable with or without arguments.
        """

        def wrapper(cls: t.Type[T_Model]) -> t.Type[T_Model]:
            return self.associate(cls, table, name)

        if maybe_cls:
            return wrapper(maybe_cls)

        return wrapper

    def descriptor(self, model: ModelRef) -> "ModelDescriptor":
        """
        Descriptor of an associated model, by name or class.
        """
        try:
            return self._descriptors[model]
        except KeyError as e:
            raise UnassociatedModel(getattr(model, "__name__", model)) from e

    def table(self, model: ModelRef) -> Table:
        """
        Table of an associated model, by name or class.
        """
        return self._tables[self.descriptor(model).name]

    def is_associated(self, model: ModelRef) -> bool:
        """
        Was this name or class associated?
        """
        return model in self._descriptors

    # -- queries --

    def select(self, model: ModelRef) -> Query:
        """
        Start a query that hydrates records.
        """
        return Query(self).select(model)

    def select_assoc(self, model: ModelRef) -> Query:
        """
        Start a query that returns nested dicts.
        """
        return Query(self, assoc=True).select(model)

    def static_model(self, model: ModelRef) -> StaticModel:
        """
        A chainable StaticModel for scopes and fetchers.
        """
        return StaticModel(self.descriptor(model), self)

    def __getattr__(self, name: str) -> StaticModel:
        """
        manager.Post is the same as manager.static_model('Post').
        """
        if name.startswith("_") or not self.__dict__.get("_descriptors", {}).get(name):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        return self.static_model(name)

    # -- records --

    def create(self, model: ModelRef) -> "Model":
        """
        A new record bound to this manager.
        """
        return self.descriptor(model).model().set_manager(self)

    def get(self, model: ModelRef, key_values: KeyValues, lazy: bool = False) -> t.Optional["Model"]:
        """
        Load one record by its keys, see Table.get.
        """
        return self.table(model).get(key_values, lazy)

    def insert(self, record: "Model") -> bool:
        """
        Insert a record directly (no events, use save() for those).
        """
        return self.table(type(record)).insert(record)

    def update(self, record: "Model") -> bool:
        """
        Update a record directly (no events).
        """
        return self.table(type(record)).update(record)

    def delete(self, record: "Model") -> bool:
        """
        Delete a record directly (no events).
        """
        return self.table(type(record)).delete(record)

    def save(self, record: "Model") -> bool:
        """
        Bind the record to this manager and save it, with events.
        """
        record.set_manager(self)
        return record.save()

    def multi_insert(self, records: t.Sequence["Model"]) -> bool:
        """
        Insert records of one model with a single statement; auto increment values are not read back.
        """
        if not records:
            return True
        return self.table(type(records[0])).multi_insert(records)
