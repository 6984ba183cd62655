"""
Constants values.
"""

import typing as t

# alias of the primary entity's row set in generated SQL:
MASTER_ALIAS = "_master_"

# marks a relation path token inside user expressions:
REL_START = "@"

# LIMIT count meaning 'all remaining rows' (MySQL's max unsigned bigint):
MAX_ROWCOUNT = "18446744073709551615"

# errorCode() of a connection when the last statement succeeded:
SUCCESS_CODE = "00000"
GENERAL_ERROR_CODE = "HY000"

DEFAULT_FOUND_ROWS_KEY = "found_rows"

# nested set subtrees are set aside by this offset while moving:
NESTED_SET_OFFSET = 1_000_000

Cardinality = t.Literal["one-to-one", "many-to-one", "one-to-many"]
ONE_TO_ONE: Cardinality = "one-to-one"
MANY_TO_ONE: Cardinality = "many-to-one"
ONE_TO_MANY: Cardinality = "one-to-many"

Mode = t.Literal["select", "count", "update", "delete"]
MODE_SELECT: Mode = "select"
MODE_COUNT: Mode = "count"
MODE_UPDATE: Mode = "update"
MODE_DELETE: Mode = "delete"

EVENTS = (
    "after_construct",
    "before_insert",
    "after_insert",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
)
