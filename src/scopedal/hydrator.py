"""
Turns flat joined result rows into a graph of records (or nested dicts).
"""

from __future__ import annotations

import typing as t

from .constants import ONE_TO_MANY
from .helpers import split_relation_path
from .types import AnyDict

if t.TYPE_CHECKING:
    from .define import ModelDescriptor
    from .manager import Manager


class Hydrator:
    """
    Deduplicates entities per relation path by primary key and wires them to their parents.

    Column names are either a field of the root ('title') or a composite 'path.field' ('comments.body').
    """

    def __init__(self, manager: "Manager", structures: t.Mapping[str, "ModelDescriptor"], assoc: bool = False):
        """
        Structures maps every selected relation path ('' for the root) to its descriptor.
        """
        self.manager = manager
        self.structures = structures
        self.assoc = assoc

    @staticmethod
    def split(row: t.Mapping[str, t.Any]) -> dict[str, AnyDict]:
        """
        Partition a row into per-path buckets at the last dot of every column name.
        """
        buckets: dict[str, AnyDict] = {}
        for column, value in row.items():
            path, _, field = column.rpartition(".")
            buckets.setdefault(path, {})[field] = value
        return buckets

    @staticmethod
    def group_hash(path: str, descriptor: "ModelDescriptor", values: t.Mapping[str, t.Any]) -> t.Optional[str]:
        """
        Identity of an entity within one relation path; None when a primary key value is missing.
        """
        key = [path]
        for field in descriptor.primary_key:
            value = values.get(field)
            if value is None:
                return None
            key.append(str(value))
        return "@".join(key)

    def entity(self, descriptor: "ModelDescriptor", values: AnyDict) -> t.Any:
        """
        A dict (assoc mode) or a loaded record bound to the manager.
        """
        if self.assoc:
            return dict(values)

        record = descriptor.model()
        record.from_dict(values)
        record.mark_as_saved()
        record.set_manager(self.manager)
        return record

    def _relation_value(self, parent: t.Any) -> t.MutableMapping[str, t.Any]:
        return t.cast(t.MutableMapping[str, t.Any], parent if self.assoc else parent.__dict__)

    def wire(self, parent: t.Any, relation: str, cardinality: str, element: t.Any) -> None:
        """
        Attach an element (None for an absent outer join) to its parent.
        """
        data = self._relation_value(parent)
        if cardinality != ONE_TO_MANY:
            data[relation] = element
            return

        children = data.setdefault(relation, [])
        if element is not None and not any(child is element for child in children):
            children.append(element)

    def hydrate(self, rows: t.Iterable[t.Mapping[str, t.Any]]) -> list[t.Any]:
        """
        One element per distinct root primary key, in order of first appearance.
        """
        pool: dict[str, t.Any] = {}
        roots: list[t.Any] = []

        for row in rows:
            elements: dict[str, t.Any] = {}
            for path, values in self.split(row).items():
                descriptor = self.structures.get(path)
                if not values or descriptor is None:
                    continue

                key = self.group_hash(path, descriptor, values)
                if key is None:
                    elements[path] = None
                    continue

                if key not in pool:
                    pool[key] = self.entity(descriptor, values)
                    if not path:
                        roots.append(pool[key])
                elements[path] = pool[key]

            for path, element in elements.items():
                if not path:
                    continue

                local, relation = split_relation_path(path)
                parent = elements.get(local)
                if parent is None:
                    continue

                _, _, cardinality = self.structures[local].relations[relation]
                self.wire(parent, relation, cardinality, element)

        return roots
