"""
Single-table SQL for one model: load, insert, update, delete without joins.
"""

from __future__ import annotations

import typing as t

from .constants import SUCCESS_CODE
from .exceptions import DataUnavailable, StatementError
from .types import Connection, KeyValues

if t.TYPE_CHECKING:
    from .define import ModelDescriptor
    from .manager import Manager
    from .models import Model


class Table:
    """
    Direct row access for one associated model; values are rendered with Connection.quote.
    """

    def __init__(self, manager: "Manager", descriptor: "ModelDescriptor", identifier: str) -> None:
        """
        The identifier is the table name used in SQL.
        """
        self.manager = manager
        self.descriptor = descriptor
        self.identifier = identifier

    def __repr__(self) -> str:
        """
        Show the model and table name.
        """
        return f"<Table {self.descriptor.name} as {self.identifier}>"

    @property
    def connection(self) -> Connection:
        """
        Shortcut to the manager's connection.
        """
        return self.manager.connection

    def _field_value(self, field: str, value: t.Any, where: bool) -> str:
        if value is None:
            return f"`{field}` IS NULL" if where else f"`{field}` = NULL"
        return f"`{field}` = {self.connection.quote(value)}"

    def _where(self, key_values: t.Mapping[str, t.Any]) -> str:
        return " AND ".join(self._field_value(field, value, where=True) for field, value in key_values.items())

    def _record_keys(self, record: "Model") -> dict[str, t.Any]:
        return record.get_primary_key_values() | record.get_secondary_key_values()

    def _succeeded(self) -> bool:
        return self.connection.error_code() == SUCCESS_CODE

    def get(self, key_values: KeyValues, lazy: bool = False) -> t.Optional["Model"]:
        """
        Load one record by its keys; None when it does not exist or a primary key field is missing.

        With lazy=True the database is not queried and only the key fields are set.
        """
        record = self.descriptor.model.lazy(key_values)
        if record is None:
            return None

        record.set_manager(self.manager)
        if lazy:
            return record

        try:
            return self.load(record)
        except DataUnavailable:
            return None

    def load(self, record: "Model") -> "Model":
        """
        Fill a (lazy) record from the database, using its captured keys.

        Raises DataUnavailable when no row matches.
        """
        sql = f"SELECT *\nFROM {self.identifier}\nWHERE {self._where(self._record_keys(record))}\nLIMIT 1"
        statement = self.connection.prepare(sql)
        if not statement.execute():
            raise StatementError(sql, self.connection.error_code())

        row = statement.fetch(True)
        statement.close_cursor()
        if not row:
            raise DataUnavailable(self.descriptor.name)

        record.from_dict(row)
        record.set_manager(self.manager)
        record.mark_as_saved()
        return record

    def insert(self, record: "Model") -> bool:
        """
        Insert a record, then set its auto increment field and mark it as saved.
        """
        values = record.as_dict()
        columns = ", ".join(f"`{field}`" for field in values)
        literals = ", ".join(self.connection.quote(value) for value in values.values())

        self.connection.exec(f"INSERT INTO {self.identifier}\n({columns})\nVALUES ({literals})")
        if not self._succeeded():
            return False

        if auto_increment := self.descriptor.auto_increment:
            record.__dict__[auto_increment] = self.connection.last_insert_id()

        record.set_manager(self.manager)
        record.mark_as_saved()
        return True

    def multi_insert(self, records: t.Sequence["Model"]) -> bool:
        """
        Insert many records with one statement, in the column order of the first record.

        Auto increment values are not read back.
        """
        if not records:
            return True

        fields = list(records[0].as_dict())
        columns = ", ".join(f"`{field}`" for field in fields)
        rows = ",\n".join(
            "(" + ", ".join(self.connection.quote(record.__dict__.get(field)) for field in fields) + ")"
            for record in records
        )

        self.connection.exec(f"INSERT INTO {self.identifier}\n({columns})\nVALUES {rows}")
        return self._succeeded()

    def update(self, record: "Model") -> bool:
        """
        Write every field of a loaded record, matched on its captured keys.

        Succeeds when the connection reports no error, even if no row changed.
        """
        sets = ", ".join(self._field_value(field, value, where=False) for field, value in record.as_dict().items())
        where = self._where(self._record_keys(record))

        self.connection.exec(f"UPDATE {self.identifier}\nSET {sets}\nWHERE {where}")
        if not self._succeeded():
            return False

        record.mark_as_saved()
        return True

    def delete(self, record: "Model") -> bool:
        """
        Delete the row matching the record's captured keys; False when nothing was deleted.
        """
        rows = self.connection.exec(f"DELETE FROM {self.identifier}\nWHERE {self._where(self._record_keys(record))}")
        return rows > 0 and self._succeeded()
