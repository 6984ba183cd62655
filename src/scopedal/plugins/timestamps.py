"""
Timestamps plugin: keeps creation_date and update_date up to date.
"""

import datetime as dt

from . import ModelPlugin

DISABLED_FLAG = "_timestamps_disabled"


class Timestamps(ModelPlugin):
    """
    Adds 'creation_date' (set on insert) and 'update_date' (set on insert and update).
    """

    fields = ("creation_date", "update_date")

    def _enabled(self) -> bool:
        return not self.model.__dict__.get(DISABLED_FLAG, False)

    def disable_timestamps(self) -> None:
        """
        Stop touching the timestamp fields of this record.
        """
        self.model.__dict__[DISABLED_FLAG] = True

    def enable_timestamps(self) -> None:
        """
        Touch the timestamp fields of this record again.
        """
        self.model.__dict__[DISABLED_FLAG] = False

    def before_insert(self) -> None:
        """
        Set both timestamps.
        """
        if self._enabled():
            now = dt.datetime.now().replace(microsecond=0)
            self.model.creation_date = now
            self.model.update_date = now

    def before_update(self) -> None:
        """
        Refresh the update timestamp.
        """
        if self._enabled():
            self.model.update_date = dt.datetime.now().replace(microsecond=0)
