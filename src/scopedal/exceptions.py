"""
Exception hierarchy of ScopeDAL.

Every error carries an integer ``code`` (unique within its family) so callers can branch
on it programmatically, and offers ``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

import typing as t
from difflib import get_close_matches


class ScopeDALError(Exception):
    """Base exception for all ScopeDAL errors."""

    code: t.ClassVar[int] = 0

    def to_dict(self) -> dict[str, t.Any]:
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": str(self),
        }


def _suggest(message: str, wrong: str, options: t.Iterable[str]) -> str:
    if suggestions := get_close_matches(wrong, list(options), n=3, cutoff=0.6):
        message += f" Did you mean: {', '.join(suggestions)}?"
    return message


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class ManagerError(ScopeDALError):
    """Something went wrong in the model registry."""


class UnassociatedModel(ManagerError):
    """The model name or class was never associated with the manager."""

    code = 1

    def __init__(self, model: t.Any) -> None:
        self.model = model
        super().__init__(f"Model '{model}' is not associated.")


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class ModelError(ScopeDALError):
    """A model is declared or used incorrectly."""


class InvalidStructure(ModelError):
    """The descriptor references fields it does not declare."""

    code = 1


class DataUnavailable(ModelError):
    """No row exists for the requested keys."""

    code = 2

    def __init__(self, model: str) -> None:
        super().__init__(f"Data for the model '{model}' not available in database.")


class NoManager(ModelError):
    """A record was saved or deleted before being bound to a manager."""

    code = 3

    def __init__(self, action: str = "save") -> None:
        super().__init__(f"Could not {action} model. There is no manager associated with this model.")


class NoFields(ModelError):
    """The model has no fields."""

    code = 4

    def __init__(self, model: str) -> None:
        super().__init__(f"The model '{model}' has no fields defined.")


class NoPrimaryKey(ModelError):
    """The model has no (valid) primary key."""

    code = 5

    def __init__(self, model: str) -> None:
        super().__init__(f"The model '{model}' has no primary key defined.")


class UnmovableModel(ModelError):
    """A record that was never saved can not be moved within a sequence."""

    code = 6

    def __init__(self) -> None:
        super().__init__("Impossible to move a new model.")


class GroupMismatch(ModelError):
    """Nested set nodes can only be moved within their own group."""

    code = 7

    def __init__(self) -> None:
        super().__init__("Impossible to move a node from one group to another.")


class InvalidMove(ModelError):
    """A nested set node can not be moved into its own subtree."""

    code = 8

    def __init__(self) -> None:
        super().__init__("Impossible to move node within itself.")


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class QueryError(ScopeDALError):
    """The query builder was used incorrectly."""


class RelationUnresolvable(QueryError):
    """The local part of a relation path was not introduced by select() or with_()."""

    code = 1

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Could not resolve relation path: '{path}'.")


class RelationInvalid(QueryError):
    """The relation is not declared on the parent descriptor."""

    code = 2

    def __init__(self, relation: str, path: str, options: t.Iterable[str] = ()) -> None:
        self.relation = relation
        self.path = path
        super().__init__(_suggest(f"Relation '{relation}' is invalid in '{path}'.", relation, options))


class FieldInvalid(QueryError):
    """The field is neither declared on the path's descriptor nor a registered alias."""

    code = 3

    def __init__(self, field: str, path: str, options: t.Iterable[str] = ()) -> None:
        self.field = field
        self.path = path
        super().__init__(_suggest(f"Field '{field}' is invalid in '{path}'.", field, options))


class SelectUnavailable(QueryError):
    """select() was already called on this query."""

    code = 5

    def __init__(self) -> None:
        super().__init__("Model already set.")


class StatementError(QueryError):
    """The backend rejected a read statement."""

    code = 7

    def __init__(self, sql: str, error_code: str, detail: t.Any = None) -> None:
        self.sql = sql
        self.error_code = error_code
        self.detail = detail
        super().__init__(f"Statement failed with {error_code}: {detail}\n{sql}")

    def to_dict(self) -> dict[str, t.Any]:
        return super().to_dict() | {"error_code": self.error_code, "sql": self.sql}
