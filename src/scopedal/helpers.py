"""
Helpers that work independently of core.
"""

from __future__ import annotations

import inspect
import typing as t
from collections import ChainMap

from .constants import REL_START
from .types import AnyDict, T

try:
    import annotationlib
except ImportError:  # pragma: no cover
    annotationlib = None


def reversed_mro(cls: type) -> t.Iterable[type]:
    """
    Get the Method Resolution Order (mro) for a class, in reverse order to be used with ChainMap.
    """
    return reversed(getattr(cls, "__mro__", []))


def _cls_annotations(c: type) -> dict[str, t.Any]:  # pragma: no cover
    """
    Functions to get the annotations of a class (excl inherited, use all_annotations for that).

    Uses `annotationlib` if available (since 3.14), forward references are kept as-is since only the names matter.
    """
    if annotationlib:
        return dict(annotationlib.get_annotations(c, format=annotationlib.Format.FORWARDREF))
    else:
        return dict(inspect.get_annotations(c))


def all_dict(cls: type) -> AnyDict:
    """
    Get the internal data of a class and all it's parents.
    """
    return dict(ChainMap(*(c.__dict__ for c in reversed_mro(cls))))  # type: ignore


def all_annotations(cls: type, _except: t.Optional[t.Iterable[str]] = None) -> dict[str, t.Any]:
    """
    Annotations of cls and its parents, without the keys in _except.

    Returned as a regular dict in definition order (parents first).
    """
    if _except is None:
        _except = set()

    ordered: dict[str, t.Any] = {}
    for c in reversed_mro(cls):
        for k, v in _cls_annotations(c).items():
            if k not in _except and k not in ordered:
                ordered[k] = v
    return ordered


def find_in_mro(cls: type, name: str, default: t.Any = None) -> t.Any:
    """
    Look up a class attribute without triggering a metaclass __getattr__.

    Example:
        find_in_mro(Post, 'before_insert') -> function or None
    """
    for c in getattr(cls, "__mro__", (cls,)):
        if name in c.__dict__:
            return c.__dict__[name]
    return default


def is_classvar(annotation: t.Any) -> bool:
    """
    Check if an annotation (possibly still a string or forward reference) is a ClassVar.
    """
    return t.get_origin(annotation) is t.ClassVar or "ClassVar" in str(annotation)


K = t.TypeVar("K")
V = t.TypeVar("V")


def filter_out(mut_dict: dict[K, V], _type: type[T]) -> dict[K, T]:
    """
    Split a dictionary into things matching _type and the rest.

    Modifies mut_dict and returns everything of type _type.
    """
    return {k: t.cast(T, mut_dict.pop(k)) for k, v in list(mut_dict.items()) if isinstance(v, _type)}


def unwrap_type(_type: t.Any) -> t.Any:
    """
    Get the inner type of a generic.

    Example:
        list[list[str]] -> str
    """
    while args := t.get_args(_type):
        _type = args[0]
    return _type


def to_snake(camel: str) -> str:
    """
    Convert CamelCase to snake_case.

    See Also:
        https://stackoverflow.com/a/44969381
    """
    return "".join([f"_{c.lower()}" if c.isupper() else c for c in camel]).lstrip("_")


def strip_rel(path: str) -> str:
    """
    Remove the relation marker from a path.

    Example:
        strip_rel('@comments.id') -> 'comments.id'
    """
    return path.lstrip(REL_START)


def split_relation_path(path: str) -> tuple[str, str]:
    """
    Split a relation path at its last dot, into (local path, last segment).

    Examples:
        split_relation_path('comments.author') -> ('comments', 'author')
        split_relation_path('title') -> ('', 'title')
    """
    local, _, tail = path.rpartition(".")
    return local, tail


def throw(exc: BaseException) -> t.Never:
    """
    Raise an exception from an expression.

    This function provides a functional way to raise exceptions, allowing
    them to be used where statements are not allowed (e.g. in `x or throw(...)`).
    """
    raise exc
