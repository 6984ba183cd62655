"""
Plugins add reusable fields, scopes, fetchers and lifecycle hooks to a model.

Example:
    class Chapter(Model, plugins=[Sequence], sequence_group_fields=["book_id"]):
        id: int
        book_id: int
        title: str
"""

import typing as t

if t.TYPE_CHECKING:
    from ..models import Model
    from ..query import Query
    from ..types import ScopeFn


class ModelPlugin:
    """
    A plugin should be derived from this class.

    The plugin class itself is never mixed into the model: instance methods are looked up on the plugin
    when the model lacks them, and a fresh plugin instance (bound to the record) handles every call.
    Static scopes and fetchers (see the @scope and @fetcher decorators) are reachable through the model class.
    """

    # fields appended to the model's own fields:
    fields: t.ClassVar[tuple[str, ...]] = ()
    # class keyword arguments this plugin reads from Model.__settings__:
    settings: t.ClassVar[tuple[str, ...]] = ()

    def __init__(self, model: "Model") -> None:
        """
        Bind the plugin to one record.
        """
        self.model = model

    def setting(self, key: str, default: t.Any = None) -> t.Any:
        """
        Read a class keyword setting of the bound model.
        """
        return type(self.model).__settings__.get(key, default)

    def group_scope(self, group_fields: t.Iterable[str], old_values: bool = False) -> "ScopeFn":
        """
        Restrict a query to rows sharing the group field values of the bound record.

        With old_values=True the values as loaded from the database are used (before a change).
        """
        values = self.model.get_old_values() if old_values else self.model.as_dict()
        conditions = [(field, values.get(field)) for field in group_fields]

        def apply(q: "Query") -> None:
            for field, value in conditions:
                q.where(f"@{field} = ?", [value])

        return apply


from .nested_set import NestedSet, NestedSetNode  # noqa: E402
from .sequence import Sequence  # noqa: E402
from .timestamps import Timestamps  # noqa: E402

__all__ = [
    "ModelPlugin",
    "NestedSet",
    "NestedSetNode",
    "Sequence",
    "Timestamps",
]
