"""
Seperates the model description code from the Model class.

Since otherwise the descriptor logic would clutter up the Model base class.
"""

from __future__ import annotations

import typing as t

from .constants import EVENTS
from .exceptions import InvalidStructure, NoFields, NoPrimaryKey
from .helpers import all_annotations, all_dict, filter_out, is_classvar
from .relationships import Relationship
from .types import AnyCallable, RelationTuple

if t.TYPE_CHECKING:
    from .models import Model
    from .plugins import ModelPlugin

SCOPE = "scope"
FETCHER = "fetcher"

F = t.TypeVar("F", bound=AnyCallable)


def _mark(fn: AnyCallable, kind: str) -> t.Any:
    fn = getattr(fn, "__func__", fn)
    fn.__scopedal_kind__ = kind  # type: ignore
    return staticmethod(fn)


def scope(fn: F) -> F:
    """
    Mark a static function as scope: calling it returns a callable that mutates a Query.

    Example:
        @scope
        def published():
            return lambda q: q.where("@published = ?", [True])
    """
    return t.cast(F, _mark(fn, SCOPE))


def fetcher(fn: F) -> F:
    """
    Mark a static function as fetcher: it receives the StaticModel (with its pending scopes) first.

    Example:
        @fetcher
        def newest(static_model):
            return static_model.query().order("@id", "DESC").first()
    """
    return t.cast(F, _mark(fn, FETCHER))


def kind_of(value: t.Any) -> t.Optional[str]:
    """
    'scope', 'fetcher' or None for a (static) class attribute.
    """
    return getattr(getattr(value, "__func__", value), "__scopedal_kind__", None)


def _marked(namespace: t.Mapping[str, t.Any], kind: str) -> dict[str, AnyCallable]:
    return {
        name: getattr(value, "__func__", value)
        for name, value in namespace.items()
        if not name.startswith("_") and kind_of(value) == kind
    }


class ModelDescriptor:
    """
    Static metadata of one model class, built once by DescriptorBuilder.
    """

    def __init__(
        self,
        name: str,
        model: t.Type["Model"],
        fields: tuple[str, ...],
        primary_key: tuple[str, ...],
        auto_increment: t.Optional[str],
        relations: dict[str, RelationTuple],
        scopes: dict[str, AnyCallable],
        fetchers: dict[str, AnyCallable],
        plugins: tuple[t.Type["ModelPlugin"], ...],
    ) -> None:
        """
        Use DescriptorBuilder.build (or Model.describe) instead of calling this directly.
        """
        self.name = name
        self.model = model
        self.fields = fields
        self.primary_key = primary_key
        self.auto_increment = auto_increment
        self.relations = relations
        self.scopes = scopes
        self.fetchers = fetchers
        self.plugins = plugins

        # first plugin exposing an instance method or property wins, events go to every plugin:
        self.methods: dict[str, t.Type["ModelPlugin"]] = {}
        self.events: dict[str, tuple[t.Type["ModelPlugin"], ...]] = {}
        for plugin in plugins:
            for method in _plugin_methods(plugin):
                self.methods.setdefault(method, plugin)

        for event in EVENTS:
            self.events[event] = tuple(plugin for plugin in plugins if callable(getattr(plugin, event, None)))

    def __repr__(self) -> str:
        """
        Show the name and fields.
        """
        return f"<ModelDescriptor {self.name} {list(self.fields)}>"

    def relation(self, name: str) -> t.Optional[RelationTuple]:
        """
        Look up a relation by name.
        """
        return self.relations.get(name)

    def validate_relation(self, name: str, target: "ModelDescriptor") -> RelationTuple:
        """
        Check the foreign side of a relation, which can only be done once the target is known.
        """
        relation = self.relations[name]
        for _, foreign in relation[1]:
            if foreign not in target.fields:
                raise InvalidStructure(
                    f"Relation '{name}' of '{self.name}' joins on '{foreign}', "
                    f"which is not a field of '{target.name}'."
                )
        return relation


def _plugin_methods(plugin: type) -> list[str]:
    from .plugins import ModelPlugin

    base = all_dict(ModelPlugin)
    return [
        name
        for name, value in all_dict(plugin).items()
        if not name.startswith("_")
        and name not in base
        and name not in EVENTS
        and (isinstance(value, property) or callable(value))
        and not isinstance(value, (staticmethod, classmethod))
    ]


class DescriptorBuilder:
    """Handles the conversion of Model classes to ModelDescriptors."""

    def __init__(self, model: t.Type["Model"]) -> None:
        """
        The builder reads class annotations, relationships, settings and plugins of one model.
        """
        self.model = model
        self.settings = getattr(model, "__settings__", {})
        self.plugins: tuple[t.Type["ModelPlugin"], ...] = tuple(self.settings.get("plugins", ()))

    def build(self) -> ModelDescriptor:
        """Collect everything and validate the result."""
        cls = self.model
        name = cls.get_name()

        relationships: dict[str, Relationship[t.Any]] = filter_out(all_dict(cls), Relationship)
        fields = self._fields(relationships)
        if not fields:
            raise NoFields(name)

        primary_key = self._primary_key(name, fields)
        auto_increment = self._auto_increment(name, fields, primary_key)

        relations = {}
        for rel_name, relation in relationships.items():
            for local, _ in relation.on:
                if local not in fields:
                    raise InvalidStructure(
                        f"Relation '{rel_name}' of '{name}' joins on '{local}', which is not one of its fields."
                    )
            relations[rel_name] = relation.as_tuple()

        namespace = all_dict(cls)
        scopes = _marked(namespace, SCOPE)
        fetchers = _marked(namespace, FETCHER)
        for plugin in self.plugins:
            plugin_namespace = all_dict(plugin)
            scopes = _marked(plugin_namespace, SCOPE) | scopes
            fetchers = _marked(plugin_namespace, FETCHER) | fetchers

        return ModelDescriptor(
            name=name,
            model=cls,
            fields=fields,
            primary_key=primary_key,
            auto_increment=auto_increment,
            relations=relations,
            scopes=scopes,
            fetchers=fetchers,
            plugins=self.plugins,
        )

    def _fields(self, relationships: t.Mapping[str, t.Any]) -> tuple[str, ...]:
        annotations = all_annotations(self.model)
        fields = [
            key
            for key, annotation in annotations.items()
            if not key.startswith("_") and key not in relationships and not is_classvar(annotation)
        ]
        for plugin in self.plugins:
            fields.extend(field for field in plugin.fields if field not in fields)
        return tuple(fields)

    def _primary_key(self, name: str, fields: tuple[str, ...]) -> tuple[str, ...]:
        primary_key = self.settings.get("primary_key")
        if primary_key is None:
            primary_key = ("id",) if "id" in fields else ()
        elif isinstance(primary_key, str):
            primary_key = (primary_key,)

        primary_key = tuple(primary_key)
        if not primary_key:
            raise NoPrimaryKey(name)

        if missing := [key for key in primary_key if key not in fields]:
            raise InvalidStructure(f"Primary key field(s) {missing} of '{name}' are not declared as fields.")
        return primary_key

    def _auto_increment(self, name: str, fields: tuple[str, ...], primary_key: tuple[str, ...]) -> t.Optional[str]:
        if "auto_increment" in self.settings:
            auto_increment: t.Optional[str] = self.settings["auto_increment"]
        else:
            auto_increment = "id" if primary_key == ("id",) else None

        if auto_increment and auto_increment not in fields:
            raise InvalidStructure(f"Auto increment field '{auto_increment}' of '{name}' is not declared as field.")
        return auto_increment or None
