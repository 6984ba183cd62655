"""
Contains the fluent Query builder: relation paths, SQL rendering and the executors.

Expressions are written with relation path tokens: '@title' is a field of the selected model,
'@comments.body' a field of a relation introduced with with_(), '@comments.author.name' one level deeper.
User expressions are emitted as-is apart from these tokens, so values must always be passed as binds.
"""

from __future__ import annotations

import logging
import re
import typing as t

from .connection import merge_params
from .constants import (
    MASTER_ALIAS,
    MAX_ROWCOUNT,
    MODE_COUNT,
    MODE_DELETE,
    MODE_SELECT,
    MODE_UPDATE,
    Mode,
)
from .exceptions import (
    DataUnavailable,
    FieldInvalid,
    RelationInvalid,
    RelationUnresolvable,
    SelectUnavailable,
    StatementError,
)
from .helpers import split_relation_path, strip_rel, throw
from .hydrator import Hydrator
from .rows import Collection, PaginatedCollection
from .types import AnyDict, ModelRef, Params, ScopeFn, Statement

if t.TYPE_CHECKING:
    from .define import ModelDescriptor
    from .manager import Manager

logger = logging.getLogger(__name__)

RE_ALIAS_TOKEN = re.compile(r"@([\w.]+)")
RE_PATH_FIELD_TOKEN = re.compile(r"@([\w.]+)\.(\w+)")
RE_FIELD_TOKEN = re.compile(r"@(\w+)")

ParamBucket = t.Literal["with", "set", "where", "having"]
PARAM_ORDER: tuple[ParamBucket, ...] = ("with", "set", "where", "having")


class Query:
    """
    Mutable, single-use query builder; every mutator returns the query itself.

    Example:
        posts = (
            manager.select("Post")
            .with_("@comments")
            .where("@published = ?", [True])
            .order("@id", "DESC")
            .all()
        )
    """

    descriptor: t.Optional["ModelDescriptor"]

    def __init__(self, manager: "Manager", assoc: bool = False) -> None:
        """
        Use Manager.select() / Manager.select_assoc() instead of building a Query directly.
        """
        self.manager = manager
        self.assoc = assoc
        self.descriptor = None

        self.aliases: dict[str, str] = {}
        self.withs: dict[str, "ModelDescriptor"] = {}
        self.with_where_on: dict[str, str] = {}
        self.with_fetch: dict[str, bool] = {}
        self.wheres = ""
        self.havings = ""
        self.group_bys: list[str] = []
        self.orders: list[tuple[str, str]] = []
        self.sets: list[str] = []
        self.limits: t.Optional[tuple[int, int | str]] = None
        self.found_rows_key: str | bool | None = None
        self.params: dict[ParamBucket, Params] = {bucket: [] for bucket in PARAM_ORDER}

    def __repr__(self) -> str:
        """
        Show the selected model and joins.
        """
        name = self.descriptor.name if self.descriptor else None
        return f"<Query {name} with {list(self.withs)}>"

    def __str__(self) -> str:
        """
        The SELECT statement this query would run.
        """
        return self.to_sql()

    # -- structure --

    def _structure(self, path: str) -> "ModelDescriptor":
        """
        Descriptor of the root ('') or of a path introduced by with_().
        """
        if not path and self.descriptor:
            return self.descriptor
        if path in self.withs:
            return self.withs[path]
        raise RelationUnresolvable(path)

    def _table(self, descriptor: "ModelDescriptor") -> str:
        return self.manager.table(descriptor.name).identifier

    def _add_params(self, bucket: ParamBucket, params: t.Optional[Params]) -> None:
        if params:
            self.params[bucket] = merge_params(self.params[bucket], params)

    def _check_field(self, path: str) -> str:
        """
        The field must be declared on the path's descriptor or be a registered alias.
        """
        path = strip_rel(path)
        local, field = split_relation_path(path)
        structure = self._structure(local)
        if field not in structure.fields and path not in self.aliases:
            raise FieldInvalid(field, local, [*structure.fields, *self.aliases])
        return path

    # -- mutators --

    def select(self, model: ModelRef) -> t.Self:
        """
        Set the primary model; only allowed once.
        """
        if self.descriptor is not None:
            raise SelectUnavailable()

        self.descriptor = self.manager.descriptor(model)
        return self

    def alias(self, expression: str, alias_path: str) -> t.Self:
        """
        Select an SQL expression under an alias; its local part must be the root or a with_() path.

        Example:
            query.alias("COUNT(@comments.id)", "@comment_count")
        """
        alias_path = strip_rel(alias_path)
        local, _ = split_relation_path(alias_path)
        self._structure(local)
        self.aliases[alias_path] = expression
        return self

    def with_(
        self,
        path: str,
        where_on: str = "",
        fetch: bool = True,
        params: t.Optional[Params] = None,
    ) -> t.Self:
        """
        LEFT JOIN a relation; where_on is added to the ON clause, fetch=False joins for filtering only.
        """
        path = strip_rel(path)
        local, relation = split_relation_path(path)
        parent = self._structure(local)

        if relation not in parent.relations:
            raise RelationInvalid(relation, local, parent.relations)

        target = self.manager.descriptor(parent.relations[relation][0])
        parent.validate_relation(relation, target)

        self.withs[path] = target
        self.with_where_on[path] = where_on
        self.with_fetch[path] = fetch
        self._add_params("with", params)
        return self

    def where(self, expression: str, params: t.Optional[Params] = None) -> t.Self:
        """
        Add an AND condition.
        """
        self.wheres += f"\n AND ({expression})" if self.wheres else f"({expression})"
        self._add_params("where", params)
        return self

    def having(self, expression: str, params: t.Optional[Params] = None) -> t.Self:
        """
        Add an AND condition on the grouped result; aliases can be used as '@alias'.
        """
        self.havings += f"\n AND ({expression})" if self.havings else f"({expression})"
        self._add_params("having", params)
        return self

    def group_by(self, path: str) -> t.Self:
        """
        Group by a field path or alias.
        """
        self.group_bys.append(self._check_field(path))
        return self

    def order(self, path: str, direction: str = "ASC") -> t.Self:
        """
        Order by a field path or alias, direction is ASC unless it is 'desc' (any case).
        """
        direction = "DESC" if str(direction).lower() == "desc" else "ASC"
        self.orders.append((self._check_field(path), direction))
        return self

    def set(self, expression: str, params: t.Optional[Params] = None) -> t.Self:
        """
        Add an assignment for update().

        Example:
            query.set("@index = @index + 1")
        """
        self.sets.append(expression)
        self._add_params("set", params)
        return self

    def limit(self, offset: int = 0, count: int = -1) -> t.Self:
        """
        LIMIT offset, count; count -1 means all remaining rows and limit(0, -1) removes the limit.
        Both values go through int(), so a non-numeric string raises ValueError.
        """
        offset, count = int(offset), int(count)
        if offset == 0 and count == -1:
            self.limits = None
        else:
            self.limits = (offset, MAX_ROWCOUNT if count == -1 else count)
        return self

    def calc_found_rows(self, key: str | bool | None = None) -> t.Self:
        """
        Ask the database for the total without LIMIT, attached under key to the result of all()/first().

        key=True calculates without attaching (read it with select_found_rows()), key=False disables it again.
        """
        if key is None:
            key = self.manager.found_rows_key
        elif isinstance(key, str):
            key = strip_rel(key)

        self.found_rows_key = key or None
        return self

    def scope(self, fn: ScopeFn) -> t.Self:
        """
        Apply a group of mutators.
        """
        fn(self)
        return self

    # -- rendering --

    def _fields(self) -> list[str]:
        fields = [f"`{MASTER_ALIAS}`.*"]
        for path, target in self.withs.items():
            if self.with_fetch[path]:
                fields.extend(f"`{path}`.`{field}` AS `{path}.{field}`" for field in target.fields)

        fields.extend(f"{expression} AS `{alias}`" for alias, expression in self.aliases.items())
        return fields

    def _join(self, path: str, delete: bool) -> str:
        local, relation = split_relation_path(path)
        _, pairs, _ = self._structure(local).relations[relation]
        prefix = f"{local}." if local else ""

        conditions = [f"@{prefix}{local_field} = @{path}.{foreign_field}" for local_field, foreign_field in pairs]
        if where_on := self.with_where_on[path]:
            conditions.append(where_on)

        alias = "" if delete else f" AS `{path}`"
        return f"LEFT JOIN {self._table(self.withs[path])}{alias} ON {' AND '.join(conditions)}"

    def _delete_token(self, match: re.Match[str]) -> str:
        local, field = split_relation_path(match.group(1))
        return f"{self._table(self._structure(local))}.`{field}`"

    def _check_paths(self) -> None:
        """
        Every relation path used in an expression must be the root or introduced by with_().
        """
        fragments = [self.wheres, self.havings, *self.sets, *self.with_where_on.values(), *self.aliases.values()]
        for fragment in fragments:
            for token in RE_ALIAS_TOKEN.findall(fragment):
                self._structure(split_relation_path(token)[0])

    @staticmethod
    def _alias_tokens(sql: str) -> str:
        return RE_ALIAS_TOKEN.sub(r"`\1`", sql)

    def to_sql(self, mode: Mode = MODE_SELECT) -> str:
        """
        Render the statement for one of the modes 'select', 'count', 'update' or 'delete'.
        """
        root = self._structure("")
        self._check_paths()
        table = self._table(root)
        delete = mode == MODE_DELETE
        source = table if delete else f"{table} AS `{MASTER_ALIAS}`"

        if mode == MODE_SELECT:
            calc = "SQL_CALC_FOUND_ROWS " if self.found_rows_key else ""
            sql = f"SELECT {calc}{', '.join(self._fields())}\nFROM {source}"
        elif mode == MODE_COUNT:
            sql = f"SELECT COUNT(*)\nFROM {source}"
        elif mode == MODE_UPDATE:
            sql = f"UPDATE {source}"
        else:
            targets = [table] + [self._table(target) for path, target in self.withs.items() if self.with_fetch[path]]
            sql = f"DELETE {', '.join(targets)} FROM {source}"

        for path in self.withs:
            sql += f"\n{self._join(path, delete)}"

        if mode == MODE_UPDATE:
            sql += f"\nSET {', '.join(self.sets)}"

        if self.wheres:
            sql += f"\nWHERE {self.wheres}"

        if self.group_bys:
            sql += self._alias_tokens("\nGROUP BY " + ", ".join(f"@{path}" for path in self.group_bys))

        if self.havings:
            sql += self._alias_tokens(f"\nHAVING {self.havings}")

        if mode != MODE_COUNT:
            if self.orders:
                orders = ", ".join(f"@{path} {direction}" for path, direction in self.orders)
                sql += self._alias_tokens(f"\nORDER BY {orders}")

            if self.limits:
                sql += f"\nLIMIT {self.limits[0]}, {self.limits[1]}"

        if delete:
            return RE_ALIAS_TOKEN.sub(self._delete_token, sql)

        sql = RE_PATH_FIELD_TOKEN.sub(r"`\1`.`\2`", sql)
        return RE_FIELD_TOKEN.sub(rf"`{MASTER_ALIAS}`.`\1`", sql)

    def _all(self) -> str:
        return self.to_sql(MODE_SELECT)

    def _first(self) -> str:
        if not self.withs:
            self.limit(0, 1)
        return self.to_sql(MODE_SELECT)

    def _count(self) -> str:
        return self.to_sql(MODE_COUNT)

    def _update(self) -> str:
        return self.to_sql(MODE_UPDATE)

    def _delete(self) -> str:
        return self.to_sql(MODE_DELETE)

    # -- execution --

    def get_params(self, mode: Mode = MODE_SELECT, params: t.Optional[Params] = None) -> Params:
        """
        Binds in placeholder order: with, set (update only), where, having, then the extra params.
        """
        buckets = [self.params[bucket] for bucket in PARAM_ORDER if bucket != "set" or mode == MODE_UPDATE]
        return merge_params(*buckets, params)

    def _execute(self, mode: Mode, params: t.Optional[Params]) -> tuple[bool, Statement]:
        sql = self.to_sql(mode)
        statement = self.manager.connection.prepare(sql)
        return statement.execute(self.get_params(mode, params)), statement

    def _read(self, mode: Mode, params: t.Optional[Params]) -> Statement:
        success, statement = self._execute(mode, params)
        if not success:
            connection = self.manager.connection
            error_info = getattr(connection, "error_info", None)
            raise StatementError(
                self.to_sql(mode),
                connection.error_code(),
                error_info()[1] if error_info else None,
            )
        return statement

    def select_found_rows(self) -> int:
        """
        Total of the last SQL_CALC_FOUND_ROWS statement on the connection.

        Example:
            query = manager.select("User").calc_found_rows(True).limit(0, 10)
            users = query.all()
            total = query.select_found_rows()
        """
        statement = self.manager.connection.query("SELECT FOUND_ROWS()")
        row = statement.fetch(False)
        statement.close_cursor()
        return int(row[0]) if row else 0

    def structures(self) -> dict[str, "ModelDescriptor"]:
        """
        Descriptor per selected relation path, '' being the root.
        """
        structures = {"": self._structure("")}
        structures |= {path: target for path, target in self.withs.items() if self.with_fetch[path]}
        return structures

    def hydrate(self, rows: t.Iterable[t.Mapping[str, t.Any]], assoc: t.Optional[bool] = None) -> list[t.Any]:
        """
        Build records (or dicts) from flat result rows of this query.
        """
        assoc = self.assoc if assoc is None else assoc
        return Hydrator(self.manager, self.structures(), assoc).hydrate(rows)

    def all(self, params: t.Optional[Params] = None, assoc: t.Optional[bool] = None) -> list[t.Any]:
        """
        Every matching record, with the joined relations wired in.

        With calc_found_rows(key) the result is a Collection holding the total under key,
        with calc_found_rows(True) the total is left for select_found_rows().
        """
        statement = self._read(MODE_SELECT, params)
        rows = statement.fetch_all(True)
        statement.close_cursor()

        result = self.hydrate(rows, assoc)
        logger.debug("hydrated %d row(s) into %d element(s)", len(rows), len(result))

        key = self.found_rows_key
        if isinstance(key, str):
            return Collection(result, **{key: self.select_found_rows()})
        return result

    def first(self, params: t.Optional[Params] = None, assoc: t.Optional[bool] = None) -> t.Any:
        """
        The first matching record or None.

        Without joins only one row is requested, with joins all rows are needed to complete the relations.
        """
        if not self.withs:
            self.limit(0, 1)

        result = self.all(params, assoc)
        if not result:
            return None

        record = result[0]
        if isinstance(result, Collection):
            key = t.cast(str, self.found_rows_key)
            record[key] = result[key]
        return record

    def first_or_fail(
        self,
        exception: t.Optional[BaseException] = None,
        params: t.Optional[Params] = None,
        assoc: t.Optional[bool] = None,
    ) -> t.Any:
        """
        The first matching record or raise (DataUnavailable by default).
        """
        record = self.first(params, assoc)
        if record is None:
            throw(exception or DataUnavailable(self._structure("").name))
        return record

    def count(self, params: t.Optional[Params] = None) -> int:
        """
        Number of matching rows (joins included, without ORDER and LIMIT).
        """
        statement = self._read(MODE_COUNT, params)
        row = statement.fetch(False)
        statement.close_cursor()
        return int(row[0]) if row else 0

    def exists(self, params: t.Optional[Params] = None) -> bool:
        """
        Is there at least one matching row?
        """
        return self.count(params) > 0

    def paginate(
        self,
        limit: int,
        page: int = 1,
        params: t.Optional[Params] = None,
        assoc: t.Optional[bool] = None,
    ) -> PaginatedCollection[t.Any]:
        """
        Transform the more readable `page` and `limit` to LIMIT offset, count plus the total count.

        Note: joined relations add rows, so one-to-many joins can give fewer records than limit.
        """
        if not isinstance(self.found_rows_key, str):
            self.calc_found_rows()

        key = t.cast(str, self.found_rows_key)
        limit, page = int(limit), max(int(page), 1)
        self.limit((page - 1) * limit, limit)

        rows = self.all(params, assoc)
        collection = rows if isinstance(rows, Collection) else Collection(rows, **{key: len(rows)})
        return PaginatedCollection.from_collection(collection, collection[key], limit, page)

    def update(self, params: t.Optional[Params] = None) -> bool:
        """
        Run the SET assignments on every matching row.
        """
        success, _ = self._execute(MODE_UPDATE, params)
        return success

    def delete(self, params: t.Optional[Params] = None) -> bool:
        """
        Delete matching rows from the root table and from every fetched join.
        """
        success, _ = self._execute(MODE_DELETE, params)
        return success

    def as_dict(self) -> AnyDict:
        """
        Builder state, mostly for debugging.
        """
        return {
            "model": self.descriptor.name if self.descriptor else None,
            "aliases": dict(self.aliases),
            "with": list(self.withs),
            "where": self.wheres,
            "having": self.havings,
            "group_by": list(self.group_bys),
            "order": list(self.orders),
            "set": list(self.sets),
            "limit": self.limits,
            "params": dict(self.params),
        }
