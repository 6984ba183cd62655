"""
Contains the Model base class for records, with plugin dispatch and lifecycle events.
"""

from __future__ import annotations

import copy
import hashlib
import typing as t

from .define import DescriptorBuilder, ModelDescriptor, fetcher, scope
from .exceptions import NoManager
from .helpers import all_dict, find_in_mro
from .serializers import as_json
from .types import AnyDict, KeyValues, ScopeFn

if t.TYPE_CHECKING:
    from .manager import Manager
    from .plugins import ModelPlugin
    from .query import Query
    from .static_model import StaticModel

UNIQUE_SEPARATOR = "$%&#^&@^$&@!!@^"

# class keyword arguments handled by Model itself, everything else must be a plugin setting:
MODEL_SETTINGS = ("primary_key", "auto_increment", "table")


class ModelMeta(type):
    """
    Resolves static plugin functions (scopes, fetchers and plain statics) on the model class.
    """

    def __getattr__(cls, name: str) -> t.Any:
        """
        Only called when the model itself does not have the attribute; the first plugin providing it wins.
        """
        if name.startswith("__"):
            raise AttributeError(name)

        for plugin in find_in_mro(cls, "__settings__", {}).get("plugins", ()):
            if name in all_dict(plugin):
                return getattr(plugin, name)

        raise AttributeError(f"type object '{cls.__name__}' has no attribute '{name}'")


class Model(metaclass=ModelMeta):
    """
    Base for all models, fields are declared as annotations.

    Example:
        class Post(Model, plugins=[Timestamps]):
            id: int
            user_id: int
            title: str

            author = relationship("User", on={"user_id": "id"})

            def before_insert(self):
                self.title = self.title.strip()
    """

    __settings__: t.ClassVar[AnyDict] = {"plugins": ()}

    _manager: t.Optional["Manager"]
    _pk_capture: AnyDict
    _sk_capture: AnyDict
    _old_values: AnyDict
    _is_new: bool

    def __init_subclass__(cls, **kwargs: t.Any) -> None:
        """
        Read primary_key=, auto_increment=, table=, plugins= and the plugin settings from the class keywords.

        Settings are inherited, plugins are added to the ones of the parent class.
        """
        settings = dict(find_in_mro(cls, "__settings__", {}))
        plugins: list[t.Type["ModelPlugin"]] = list(settings.get("plugins", ()))
        for plugin in kwargs.pop("plugins", ()):
            if plugin not in plugins:
                plugins.append(plugin)
        settings["plugins"] = tuple(plugins)

        known = set(MODEL_SETTINGS)
        for plugin in plugins:
            known.update(plugin.settings)

        for key in list(kwargs):
            if key in known:
                settings[key] = kwargs.pop(key)

        super().__init_subclass__(**kwargs)

        cls.__settings__ = settings
        cls.__descriptor__: t.Optional[ModelDescriptor] = None

    def __init__(self, **values: t.Any) -> None:
        """
        A new record: every field gets its class default (or None), then after_construct fires.
        """
        self._manager = None
        self._pk_capture = {}
        self._sk_capture = {}
        self._old_values = {}
        self._is_new = True

        for field in self.describe().fields:
            self.__dict__[field] = copy.copy(find_in_mro(type(self), field))

        self.trigger_event("after_construct")
        self.from_dict(values)

    # -- descriptor --

    @classmethod
    def describe(cls) -> ModelDescriptor:
        """
        The (cached) descriptor of this model class.
        """
        descriptor = cls.__dict__.get("__descriptor__")
        if descriptor is None:
            descriptor = DescriptorBuilder(cls).build()
            cls.__descriptor__ = descriptor
        return t.cast(ModelDescriptor, descriptor)

    @classmethod
    def get_name(cls) -> str:
        """
        The short name a model is associated with by default.
        """
        return cls.__name__

    @classmethod
    def lazy(cls, key_values: KeyValues) -> t.Optional[t.Self]:
        """
        A loaded record with only key fields populated, without touching the database.

        A scalar means the first primary key field; None when a primary key field is missing.
        """
        descriptor = cls.describe()
        if not isinstance(key_values, t.Mapping):
            key_values = {descriptor.primary_key[0]: key_values}

        if any(field not in key_values for field in descriptor.primary_key):
            return None

        instance = cls()
        for field in descriptor.fields:
            instance.__dict__.pop(field, None)

        for field, value in key_values.items():
            if field in descriptor.primary_key:
                instance._pk_capture[field] = value
            else:
                instance._sk_capture[field] = value
            instance.__dict__[field] = value

        instance._is_new = False
        return instance

    # -- record contract --

    def from_dict(self, values: t.Mapping[str, t.Any]) -> t.Self:
        """
        Set every known field present in values, anything else is ignored.
        """
        fields = self.describe().fields
        for key, value in values.items():
            if key in fields:
                self.__dict__[key] = value
        return self

    def as_dict(self, with_relations: bool = False) -> AnyDict:
        """
        The field values (and optionally the hydrated relations) of this record.
        """
        descriptor = self.describe()
        data = {field: self.__dict__[field] for field in descriptor.fields if field in self.__dict__}
        if with_relations:
            data |= {name: self.__dict__[name] for name in descriptor.relations if name in self.__dict__}
        return data

    def as_json(self, indent: t.Optional[int] = None, **kwargs: t.Any) -> str:
        """
        Dump the record with its hydrated relations as JSON.
        """
        return as_json.encode(self.as_dict(with_relations=True), indent=indent, **kwargs)

    def __json__(self) -> AnyDict:
        """
        Used by the JSON encoder when a record is nested in other data.
        """
        return self.as_dict(with_relations=True)

    def mark_as_saved(self) -> t.Self:
        """
        Store the current key values and field values as 'loaded from the database'.
        """
        self._is_new = False
        self._pk_capture = {field: self.__dict__.get(field) for field in self.describe().primary_key}
        self._sk_capture = {field: self.__dict__.get(field) for field in self._sk_capture}
        self._old_values = self.as_dict()
        return self

    def is_new(self) -> bool:
        """
        True until the record is inserted or marked as saved.
        """
        return self._is_new

    def field_changed(self, field: str) -> bool:
        """
        Did the field change since the last load/save?
        """
        return bool(self.__dict__.get(field) != self._old_values.get(field))

    def get_old_values(self) -> AnyDict:
        """
        Field values as they were at the last load/save.
        """
        return dict(self._old_values)

    def get_old_value(self, field: str) -> t.Any:
        """
        One field value as it was at the last load/save.
        """
        return self._old_values.get(field)

    def get_primary_key_values(self) -> AnyDict:
        """
        Primary key values as captured at load time.
        """
        return dict(self._pk_capture)

    def get_secondary_key_values(self) -> AnyDict:
        """
        Extra key values captured at load time, these also restrict update and delete.
        """
        return dict(self._sk_capture)

    def get_unique_identifier(self) -> str:
        """
        Stable hash of the model class and the primary key values.
        """
        cls = type(self)
        values = [str(self.__dict__.get(field)) for field in self.describe().primary_key]
        raw = UNIQUE_SEPARATOR.join([f"{cls.__module__}.{cls.__qualname__}", *values])
        return hashlib.sha1(raw.encode()).hexdigest()

    # -- manager --

    def set_manager(self, manager: t.Optional["Manager"]) -> t.Self:
        """
        Bind (or with None: detach) this record to a manager.
        """
        self._manager = manager
        return self

    def get_manager(self) -> t.Optional["Manager"]:
        """
        The manager this record is bound to.
        """
        return self._manager

    def _require_manager(self, action: str) -> "Manager":
        if self._manager is None:
            raise NoManager(action)
        return self._manager

    def save(self) -> bool:
        """
        Insert a new record or update a loaded one, with the before/after events.
        """
        manager = self._require_manager("save")
        if self._is_new:
            self.trigger_event("before_insert")
            if result := manager.insert(self):
                self.trigger_event("after_insert")
        else:
            self.trigger_event("before_update")
            if result := manager.update(self):
                self.trigger_event("after_update")
        return result

    def delete(self) -> bool:
        """
        Delete this record, with the before/after events.
        """
        manager = self._require_manager("delete")
        self.trigger_event("before_delete")
        if result := manager.delete(self):
            self.trigger_event("after_delete")
        return result

    def refresh(self) -> bool:
        """
        Reload every field from the database; False when the row no longer exists.
        """
        fresh = self._require_manager("refresh").get(type(self), self.get_primary_key_values())
        if fresh is None:
            return False

        self.from_dict(fresh.as_dict())
        self.mark_as_saved()
        return True

    def static_model(self) -> "StaticModel":
        """
        A StaticModel for the model of this record, bound to its manager.
        """
        return self._require_manager("query").static_model(type(self))

    def select(self) -> "Query":
        """
        A new query on the model of this record.
        """
        return self._require_manager("query").select(type(self))

    # -- events and plugins --

    def trigger_event(self, event: str) -> None:
        """
        Fire a lifecycle hook on every plugin (in order), then on the model itself.
        """
        for plugin in self.describe().events.get(event, ()):
            getattr(plugin(self), event)()

        if hook := find_in_mro(type(self), event):
            hook(self)

    def __getattr__(self, name: str) -> t.Any:
        """
        Only called for missing attributes: dispatch to the first plugin with this instance method.
        """
        if name.startswith("_"):
            raise AttributeError(name)

        if plugin := self.describe().methods.get(name):
            return getattr(plugin(self), name)

        raise AttributeError(f"No function '{name}' exists in the model '{type(self).__name__}' or its plugins.")

    # -- map-style access --

    def keys(self) -> list[str]:
        """
        Field names that currently have a value (lazy records only have their keys).
        """
        return [field for field in self.describe().fields if field in self.__dict__]

    def __getitem__(self, key: str) -> t.Any:
        """
        record['title'] is the same as record.title.
        """
        try:
            return getattr(self, key)
        except AttributeError as e:
            raise KeyError(key) from e

    def __setitem__(self, key: str, value: t.Any) -> None:
        """
        record['title'] = ... is the same as record.title = ...
        """
        setattr(self, key, value)

    def __contains__(self, key: str) -> bool:
        """
        Is the field (or hydrated relation) set on this record?
        """
        return key in self.__dict__ and not key.startswith("_")

    def __repr__(self) -> str:
        """
        Show the model name and field values.
        """
        return f"<{type(self).__name__} {self.as_dict()}>"

    # -- built-in scopes, fetchers and statics --

    @scope
    def by_id(id: t.Any) -> ScopeFn:
        """
        Restrict a query to one id.
        """
        return lambda q: q.where("@id = ?", [id])

    @scope
    def order_by_id(direction: str = "ASC") -> ScopeFn:
        """
        Order a query by id.
        """
        return lambda q: q.order("@id", direction)

    @fetcher
    def first(static_model: "StaticModel", assoc: bool = False) -> t.Any:
        """
        First record matching the pending scopes.
        """
        return static_model.query().first(assoc=assoc)

    @fetcher
    def all(static_model: "StaticModel", assoc: bool = False) -> t.Any:
        """
        Every record matching the pending scopes.
        """
        return static_model.query().all(assoc=assoc)

    @fetcher
    def get_by_id(static_model: "StaticModel", id: t.Any, assoc: bool = False) -> t.Any:
        """
        The record with this id (matching the pending scopes), or None.
        """
        return static_model.query().where("@id = ?", [id]).first(assoc=assoc)

    @classmethod
    def get(cls, manager: "Manager", key_values: KeyValues, lazy: bool = False) -> t.Optional[t.Self]:
        """
        Load one record by its keys (see Table.get).
        """
        return t.cast(t.Optional[t.Self], manager.get(cls, key_values, lazy))

    @classmethod
    def create(cls, manager: "Manager") -> t.Self:
        """
        A new record bound to the manager.
        """
        return t.cast(t.Self, manager.create(cls))

    @classmethod
    def multi_insert(cls, manager: "Manager", records: t.Sequence["Model"]) -> bool:
        """
        Insert many records in one statement, after firing before_insert on each.
        """
        for record in records:
            record.trigger_event("before_insert")
        return manager.multi_insert(records)
