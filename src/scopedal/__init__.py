"""
ScopeDAL: a relation-aware query builder, result hydrator and plugin system on top of pydal connections.
"""

from .connection import ScopeDAL, Statement
from .constants import MANY_TO_ONE, ONE_TO_MANY, ONE_TO_ONE
from .define import ModelDescriptor, fetcher, scope
from .exceptions import (
    DataUnavailable,
    FieldInvalid,
    GroupMismatch,
    InvalidMove,
    InvalidStructure,
    ManagerError,
    ModelError,
    NoFields,
    NoManager,
    NoPrimaryKey,
    QueryError,
    RelationInvalid,
    RelationUnresolvable,
    ScopeDALError,
    SelectUnavailable,
    StatementError,
    UnassociatedModel,
    UnmovableModel,
)
from .manager import Manager
from .models import Model
from .plugins import ModelPlugin, NestedSet, NestedSetNode, Sequence, Timestamps
from .query import Query
from .relationships import Relationship, relationship
from .rows import Collection, PaginatedCollection
from .static_model import StaticModel
from .table import Table

__all__ = [
    "MANY_TO_ONE",
    "ONE_TO_MANY",
    "ONE_TO_ONE",
    "Collection",
    "DataUnavailable",
    "FieldInvalid",
    "GroupMismatch",
    "InvalidMove",
    "InvalidStructure",
    "Manager",
    "ManagerError",
    "Model",
    "ModelDescriptor",
    "ModelError",
    "ModelPlugin",
    "NestedSet",
    "NestedSetNode",
    "NoFields",
    "NoManager",
    "NoPrimaryKey",
    "PaginatedCollection",
    "Query",
    "QueryError",
    "Relationship",
    "RelationInvalid",
    "RelationUnresolvable",
    "ScopeDAL",
    "ScopeDALError",
    "SelectUnavailable",
    "Sequence",
    "Statement",
    "StatementError",
    "StaticModel",
    "Table",
    "Timestamps",
    "UnassociatedModel",
    "UnmovableModel",
    "fetcher",
    "relationship",
    "scope",
]
