import typing as t

import pytest

from scopedal import Manager


class FakeStatement:
    """
    Records what is executed and serves the next queued result for SELECT statements.
    """

    def __init__(self, connection: "FakeConnection", sql: str):
        self.connection = connection
        self.sql = sql
        self.rows: list[dict[str, t.Any]] = []
        self.affected = 0

    def execute(self, params=None):
        self.connection.statements.append((self.sql, params if params is not None else []))
        if self.connection.fail:
            return False

        if self.sql.startswith("SELECT"):
            self.rows = list(self.connection.results.pop(0)) if self.connection.results else []
            self.affected = len(self.rows)
        else:
            self.affected = self.connection.affected
        return True

    def fetch_all(self, assoc=True):
        rows, self.rows = self.rows, []
        return [dict(row) if assoc else tuple(row.values()) for row in rows]

    def fetch(self, assoc=True):
        if not self.rows:
            return None
        row = self.rows.pop(0)
        return dict(row) if assoc else tuple(row.values())

    def row_count(self):
        return self.affected

    def close_cursor(self):
        self.rows = []


class FakeConnection:
    """
    Connection that never talks to a database; tests inspect `statements` and queue `results`.
    """

    def __init__(self):
        self.statements: list[tuple[str, t.Any]] = []
        self.results: list[list[dict[str, t.Any]]] = []
        self.affected = 1
        self.fail = False
        self.insert_id = 1

    def respond(self, *rows: dict[str, t.Any]) -> None:
        self.results.append(list(rows))

    @property
    def sql(self) -> list[str]:
        return [sql for sql, _ in self.statements]

    @property
    def params(self) -> list[t.Any]:
        return [params for _, params in self.statements]

    def prepare(self, sql):
        return FakeStatement(self, sql)

    def query(self, sql):
        statement = FakeStatement(self, sql)
        statement.execute()
        return statement

    def exec(self, sql):
        statement = FakeStatement(self, sql)
        if not statement.execute():
            return 0
        return statement.row_count()

    def quote(self, value):
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        return "'" + str(value).replace("'", "''") + "'"

    def last_insert_id(self):
        return self.insert_id

    def error_code(self):
        return "HY000" if self.fail else "00000"


@pytest.fixture
def fake():
    return FakeConnection()


@pytest.fixture
def manager(fake):
    return Manager(fake)
