"""
pydal-backed implementation of the Connection contract.
"""

from __future__ import annotations

import logging
import typing as t
import warnings
from pathlib import Path
from typing import Optional

import pydal

from .config import ScopeDALConfig, load_config
from .constants import GENERAL_ERROR_CODE, SUCCESS_CODE
from .types import AnyDict, Params

logger = logging.getLogger(__name__)


def merge_params(*buckets: t.Optional[Params]) -> Params:
    """
    Concatenate positional binds (or merge named binds) in the given order.

    Example:
        merge_params([1], None, [2, 3]) -> [1, 2, 3]
        merge_params({'a': 1}, {'b': 2}) -> {'a': 1, 'b': 2}
    """
    buckets = tuple(b for b in buckets if b)
    if not buckets:
        return []

    if all(isinstance(b, t.Mapping) for b in buckets):
        named: AnyDict = {}
        for bucket in buckets:
            named |= dict(t.cast(t.Mapping[str, t.Any], bucket))
        return named

    if any(isinstance(b, t.Mapping) for b in buckets):
        raise ValueError("Please provide either positional or named parameters, not both.")

    return [value for bucket in buckets for value in bucket]


def _error_code(exc: BaseException) -> str:
    return str(getattr(exc, "sqlstate", None) or getattr(exc, "pgcode", None) or GENERAL_ERROR_CODE)


class Statement:
    """
    A statement prepared on a ScopeDAL connection.

    Executing is separate from fetching so the same object works for reads and writes.
    """

    def __init__(self, db: "ScopeDAL", sql: str) -> None:
        """
        Nothing is sent to the database until execute() is called.
        """
        self.db = db
        self.sql = sql
        self._columns: list[str] = []
        self._rows: list[tuple[t.Any, ...]] = []
        self._position = 0
        self._row_count = 0

    def __repr__(self) -> str:
        """
        Show the SQL of this statement.
        """
        return f"<Statement {self.sql!r}>"

    def execute(self, params: t.Optional[Params] = None) -> bool:
        """
        Run the statement with bind parameters.

        Driver errors are recorded on the connection (see ScopeDAL.error_code) and turned into False.
        """
        cursor = self.db._run(self.sql, params)
        if cursor is None:
            return False

        self._row_count = cursor.rowcount if cursor.rowcount is not None else 0
        if cursor.description:
            self._columns = [str(col[0]) for col in cursor.description]
            self._rows = list(cursor.fetchall())
        else:
            self._columns = []
            self._rows = []
        self._position = 0
        return True

    def _shape(self, row: tuple[t.Any, ...], assoc: bool) -> AnyDict | tuple[t.Any, ...]:
        return dict(zip(self._columns, row)) if assoc else tuple(row)

    def fetch_all(self, assoc: bool = True) -> list[t.Any]:
        """
        All (remaining) rows, as dicts keyed by column name or as tuples.
        """
        rows = [self._shape(row, assoc) for row in self._rows[self._position :]]
        self._position = len(self._rows)
        return rows

    def fetch(self, assoc: bool = True) -> t.Any:
        """
        The next row, or None when exhausted.
        """
        if self._position >= len(self._rows):
            return None

        row = self._rows[self._position]
        self._position += 1
        return self._shape(row, assoc)

    def row_count(self) -> int:
        """
        Rows returned or affected by the last execute.
        """
        return len(self._rows) if self._columns else self._row_count

    def close_cursor(self) -> None:
        """
        Forget the buffered result set.
        """
        self._rows = []
        self._position = 0


class ScopeDAL(pydal.DAL):  # type: ignore
    """
    pydal database that speaks the statement-level Connection contract used by the Manager.
    """

    _config: ScopeDALConfig
    _last_error: Optional[BaseException]
    _last_insert_id: t.Any

    def __init__(
        self,
        uri: Optional[str] = None,  # default from config or 'sqlite:memory'
        pool_size: int = None,  # default 1 if sqlite else 3
        folder: Optional[str | Path] = None,  # default 'databases' in config
        db_codec: str = "UTF-8",
        driver_args: Optional[AnyDict] = None,
        adapter_args: Optional[AnyDict] = None,
        attempts: int = 5,
        debug: Optional[bool] = None,
        after_connection: t.Callable[..., t.Any] = None,
        entity_quoting: bool = True,
        use_pyproject: bool | str = True,
        use_env: bool | str = True,
        connection: Optional[str] = None,
        config: Optional[ScopeDALConfig] = None,
    ) -> None:
        """
        Load the config and connect through pydal.

        Tables are never defined on this DAL: all SQL is generated by the query builder and Table.
        """
        config = config or load_config(connection, _use_pyproject=use_pyproject, _use_env=use_env)
        config.update(
            database=uri,
            dialect=uri.split(":")[0] if uri and ":" in uri else None,
            folder=str(folder) if folder is not None else None,
            pool_size=pool_size,
            debug=debug,
        )

        self._config = config
        self._last_error = None
        self._last_insert_id = None

        if config.folder:
            Path(config.folder).mkdir(exist_ok=True)

        super().__init__(
            config.database,
            config.pool_size,
            config.folder,
            db_codec,
            migrate=False,
            fake_migrate=False,
            driver_args=driver_args,
            adapter_args=adapter_args,
            attempts=attempts,
            debug=config.debug,
            after_connection=after_connection,
            entity_quoting=entity_quoting,
        )

    @property
    def _placeholder_style(self) -> str:
        return str(getattr(self._adapter.driver, "paramstyle", "qmark"))

    @property
    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (getattr(self._adapter.driver, "Error", Exception),)

    def _translate(self, sql: str, params: t.Optional[Params]) -> str:
        """
        Convert '?' placeholders for drivers that expect '%s'.
        """
        if not params or self._placeholder_style not in ("format", "pyformat"):
            return sql

        if isinstance(params, t.Mapping):
            return sql.replace("%", "%%")

        return sql.replace("%", "%%").replace("?", "%s")

    def _run(self, sql: str, params: t.Optional[Params] = None) -> t.Any:
        """
        Execute through the pydal adapter; returns the cursor or None on a driver error.
        """
        logger.debug("%s %r", sql, params or [])
        command = self._translate(sql, params)
        args = (command, params) if params else (command,)

        try:
            self._adapter.execute(*args)
        except self._driver_errors as e:
            self._last_error = e
            warnings.warn(f"Statement failed ({_error_code(e)}): {e}", source=e, category=RuntimeWarning)
            return None

        cursor = self._adapter.cursor
        self._last_error = None
        self._last_insert_id = getattr(cursor, "lastrowid", None)
        return cursor

    def prepare(self, sql: str) -> Statement:
        """
        Prepare a statement; binds are passed to Statement.execute.
        """
        return Statement(self, sql)

    def query(self, sql: str) -> Statement:
        """
        Prepare and directly execute a statement without binds.
        """
        statement = Statement(self, sql)
        statement.execute()
        return statement

    def exec(self, sql: str) -> int:
        """
        Execute a statement without binds and return the number of affected rows (0 on failure).
        """
        statement = Statement(self, sql)
        if not statement.execute():
            return 0
        return statement.row_count()

    def quote(self, value: t.Any) -> str:
        """
        Render a value as SQL literal, None becomes NULL.
        """
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        return t.cast(str, self._adapter.smart_adapt(value))

    def last_insert_id(self) -> t.Any:
        """
        Auto increment value of the last successful INSERT.
        """
        return self._last_insert_id

    def error_code(self) -> str:
        """
        SQLSTATE-like code of the last statement, '00000' on success.
        """
        if self._last_error is None:
            return SUCCESS_CODE
        return _error_code(self._last_error)

    def error_info(self) -> tuple[str, t.Any]:
        """
        Error code and driver message of the last statement.
        """
        return self.error_code(), (str(self._last_error) if self._last_error else None)
