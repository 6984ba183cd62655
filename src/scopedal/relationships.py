"""
Contains base functionality related to Relationships.
"""

import typing as t
import warnings

from .constants import MANY_TO_ONE, ONE_TO_MANY, ONE_TO_ONE, Cardinality
from .helpers import unwrap_type
from .types import RelationTuple

if t.TYPE_CHECKING:
    from .models import Model

To_Type = t.TypeVar("To_Type")

JoinPairs: t.TypeAlias = t.Mapping[str, str] | t.Iterable[tuple[str, str]]

CARDINALITIES: tuple[Cardinality, ...] = (ONE_TO_ONE, MANY_TO_ONE, ONE_TO_MANY)


class Relationship(t.Generic[To_Type]):
    """
    Define a relationship to another model, by (local field -> foreign field) join pairs.
    """

    _type: t.Any
    target: t.Type["Model"] | str  # use target_name to get the descriptor name
    on: tuple[tuple[str, str], ...]
    multiple: bool
    cardinality: Cardinality
    name: str | None = None  # set by __set_name__

    def __init__(
        self,
        _type: t.Any,
        on: JoinPairs,
        cardinality: t.Optional[Cardinality] = None,
    ):
        """
        Should not be called directly, use relationship() instead!
        """
        self._type = _type

        if t.get_args(_type) or t.get_origin(_type) is list:
            self.target = unwrap_type(_type)
            self.multiple = True
        else:
            self.target = _type
            self.multiple = False

        if isinstance(self.target, t.ForwardRef):
            self.target = self.target.__forward_arg__

        self.on = tuple((on.items() if isinstance(on, t.Mapping) else on))
        if not self.on:
            raise ValueError("A relationship needs at least one (local field, foreign field) pair.")

        if cardinality is None:
            cardinality = ONE_TO_MANY if self.multiple else MANY_TO_ONE
        elif cardinality not in CARDINALITIES:
            raise ValueError(f"Unknown cardinality {cardinality!r}, choose one of {CARDINALITIES}.")
        elif (cardinality == ONE_TO_MANY) != self.multiple:
            warnings.warn(
                f"Relationship to {self.target_name} is declared {cardinality}, "
                f"but its type says {'list' if self.multiple else 'single'}. The cardinality wins.",
                category=RuntimeWarning,
            )
            self.multiple = cardinality == ONE_TO_MANY

        self.cardinality = cardinality

    @property
    def target_name(self) -> str:
        """
        Short name of the related model (the name it is associated with).
        """
        if isinstance(self.target, str):
            return self.target
        return t.cast(str, getattr(self.target, "__name__", str(self.target)))

    def as_tuple(self) -> RelationTuple:
        """
        The (target name, join pairs, cardinality) triple stored in a ModelDescriptor.
        """
        return self.target_name, self.on, self.cardinality

    def __repr__(self) -> str:
        """
        Representation of the relationship.
        """
        pairs = " AND ".join(f"{local} = {foreign}" for local, foreign in self.on)
        return f"<Relationship:{self.cardinality} to {self.target_name} on {pairs}>"

    def __set_name__(self, owner: t.Type["Model"], name: str) -> None:
        """Called automatically when assigned to a class attribute."""
        self.name = name

    def __get__(self, instance: t.Any, owner: t.Any) -> t.Any:
        """
        Relationship is a descriptor class, which can be returned from a class but not an instance.

        For an instance, hydration stores the related data in the instance itself (which wins from this descriptor).
        When the relation was not fetched, an empty list (to-many) or None (to-one) is returned.
        """
        if instance is None:
            return self

        return [] if self.multiple else None


@t.overload
def relationship(
    _type: type[list[To_Type]],
    on: JoinPairs,
    cardinality: t.Optional[Cardinality] = None,
) -> list[To_Type]:
    """
    Define a relationship that returns a list of related instances (e.g. list["Comment"]).
    """


@t.overload
def relationship(
    _type: t.Type[To_Type] | str,
    on: JoinPairs,
    cardinality: t.Optional[Cardinality] = None,
) -> To_Type | None:
    """
    Define a relationship that returns a single optional related instance.
    """


def relationship(
    _type: t.Any,
    on: JoinPairs,
    cardinality: t.Optional[Cardinality] = None,
) -> t.Any:
    """
    Define a relationship to another model.

    A list type means one-to-many, a single type means many-to-one (unless cardinality says one-to-one).

    Example:
        class Post(Model):
            id: int
            user_id: int

            author = relationship("User", on={"user_id": "id"})
            comments = relationship(list["Comment"], on={"id": "post_id"})
            meta = relationship("PostMeta", on={"id": "post_id"}, cardinality=ONE_TO_ONE)

    """
    # the descriptor's __get__ makes the relation behave like the To_Type on instances
    return Relationship(_type, on, cardinality)
