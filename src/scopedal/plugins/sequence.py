"""
Sequence plugin: keeps an 'index' field as a gapless 0..N-1 order, optionally per group.
"""

import typing as t

from ..define import fetcher, scope
from ..exceptions import UnmovableModel
from ..types import ScopeFn
from . import ModelPlugin

if t.TYPE_CHECKING:
    from ..static_model import StaticModel


class Sequence(ModelPlugin):
    """
    Adds the field 'index'; records get appended at the end of their group on insert.

    Example:
        class Chapter(Model, plugins=[Sequence], sequence_group_fields=["book_id"]):
            id: int
            book_id: int

        chapter.move(-2)  # two places up
    """

    fields = ("index",)
    settings = ("sequence_group_fields",)

    @property
    def group_fields(self) -> list[str]:
        """
        Fields that partition the sequence.
        """
        return list(self.setting("sequence_group_fields") or ())

    def local_scope(self, old_values: bool = False) -> ScopeFn:
        """
        Restrict a query to the group of this record (as it is now, or as it was loaded).
        """
        return self.group_scope(self.group_fields, old_values)

    # -- scopes and fetchers --

    @scope
    def at_index(index: int) -> ScopeFn:
        """
        Only the record at this position.
        """
        return lambda q: q.where("@index = ?", [index])

    @scope
    def order_by_index(direction: str = "ASC") -> ScopeFn:
        """
        Order by position.
        """
        return lambda q: q.order("@index", direction)

    @fetcher
    def get_max_index(static_model: "StaticModel") -> int:
        """
        Highest index within the pending scopes, -1 for an empty group.
        """
        row = static_model.query().alias("MAX(@index)", "@max_index").first(assoc=True)
        if not row or row.get("max_index") is None:
            return -1
        return int(row["max_index"])

    @fetcher
    def get_first(static_model: "StaticModel", assoc: bool = False) -> t.Any:
        """
        Record at index 0.
        """
        return static_model.query().where("@index = ?", [0]).first(assoc=assoc)

    @fetcher
    def get_last(static_model: "StaticModel", assoc: bool = False) -> t.Any:
        """
        Record with the highest index.
        """
        return static_model.query().order("@index", "DESC").first(assoc=assoc)

    # -- moving --

    def _max_index(self, old_values: bool = False) -> int:
        return t.cast(int, self.model.static_model().scope(self.local_scope(old_values)).get_max_index())

    def move(self, steps: int) -> None:
        """
        Move down (positive) or up (negative) within the group.
        """
        if self.model.is_new():
            raise UnmovableModel()

        if steps > 0:
            self.move_down(steps)
        elif steps < 0:
            self.move_up(-steps)

    def move_up(self, steps: int = 1) -> None:
        """
        Move towards index 0; the records passed shift one place down.
        """
        if self.model.is_new():
            raise UnmovableModel()

        index = self.model.index
        if index <= 0 or steps <= 0:
            return

        new_index = max(0, index - steps)
        (
            self.model.select()
            .scope(self.local_scope())
            .where("@index >= ?", [new_index])
            .where("@index < ?", [index])
            .set("@index = @index + 1")
            .update()
        )

        self.model.index = new_index
        self.model.save()

    def move_down(self, steps: int = 1) -> None:
        """
        Move towards the end; the records passed shift one place up.
        """
        if self.model.is_new():
            raise UnmovableModel()

        index = self.model.index
        max_index = self._max_index()
        if index >= max_index or steps <= 0:
            return

        new_index = min(max_index, index + steps)
        (
            self.model.select()
            .scope(self.local_scope())
            .where("@index > ?", [index])
            .where("@index <= ?", [new_index])
            .set("@index = @index - 1")
            .update()
        )

        self.model.index = new_index
        self.model.save()

    # -- events --

    def before_insert(self) -> None:
        """
        Append to the end of the group.
        """
        self.model.index = self._max_index() + 1

    def before_update(self) -> None:
        """
        When a group field changed: close the gap in the old group and append to the new one.
        """
        if not any(self.model.field_changed(field) for field in self.group_fields):
            return

        (
            self.model.select()
            .scope(self.local_scope(old_values=True))
            .where("@index > ?", [self.model.get_old_value("index")])
            .set("@index = @index - 1")
            .update()
        )
        self.model.index = self._max_index() + 1

    def after_delete(self) -> None:
        """
        Close the gap left by the deleted record.
        """
        (
            self.model.select()
            .scope(self.local_scope())
            .where("@index > ?", [self.model.index])
            .set("@index = @index - 1")
            .update()
        )
