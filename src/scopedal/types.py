"""
Stuff to make mypy happy.
"""

# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

# Standard library
import typing as t

# Internal references
if t.TYPE_CHECKING:
    from .models import Model
    from .query import Query

# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------

AnyCallable: t.TypeAlias = t.Callable[..., t.Any]
AnyDict: t.TypeAlias = dict[str, t.Any]

# positional binds (for '?') or named binds; never both in one statement
Params: t.TypeAlias = t.Sequence[t.Any] | t.Mapping[str, t.Any]

# a scope is applied to a query, its return value is ignored:
ScopeFn: t.TypeAlias = t.Callable[["Query"], t.Any]

# relation name -> (target descriptor name, join pairs, cardinality)
RelationTuple: t.TypeAlias = tuple[str, tuple[tuple[str, str], ...], str]

# a field-name -> value mapping used to address one record:
KeyValues: t.TypeAlias = t.Mapping[str, t.Any] | t.Any


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class Statement(t.Protocol):  # pragma: no cover
    """A prepared statement, as returned by Connection.prepare and Connection.query."""

    def execute(self, params: t.Optional[Params] = None) -> bool:
        """
        Run the statement with bind parameters; False on a backend error.
        """

    def fetch_all(self, assoc: bool = True) -> list[t.Any]:
        """
        All result rows, as dicts (assoc) or tuples.
        """

    def fetch(self, assoc: bool = True) -> t.Any:
        """
        The next result row, or None.
        """

    def row_count(self) -> int:
        """
        Rows affected by the last execute.
        """

    def close_cursor(self) -> None:
        """
        Release the result set.
        """


class Connection(t.Protocol):  # pragma: no cover
    """
    The SQL transport the library talks to.

    ScopeDAL (a pydal DAL) implements this, tests use a recording fake.
    """

    def prepare(self, sql: str) -> Statement:
        """Prepare a statement for execution."""

    def query(self, sql: str) -> Statement:
        """Prepare and execute a statement without binds."""

    def exec(self, sql: str) -> int:
        """Execute a statement without binds, returns the affected row count."""

    def quote(self, value: t.Any) -> str:
        """Render value as an SQL literal (NULL-aware)."""

    def last_insert_id(self) -> t.Any:
        """Auto increment value generated by the last INSERT."""

    def error_code(self) -> str:
        """SQLSTATE of the last statement, '00000' on success."""


# ---------------------------------------------------------------------------
# TypedDicts
# ---------------------------------------------------------------------------


class Pagination(t.TypedDict):
    """Pagination key of a paginate dict has these items."""

    total_items: int
    current_page: int
    per_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool
    next_page: t.Optional[int]
    prev_page: t.Optional[int]


class PaginationMetadata(t.TypedDict):
    """Used by Query.paginate to remember how a page was selected."""

    limit: int
    current_page: int
    max_page: int
    rows: int


class PaginateDict(t.TypedDict):
    """Result of PaginatedCollection.as_dict()."""

    data: list[t.Any]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Generics
# ---------------------------------------------------------------------------

T = t.TypeVar("T", bound=t.Any)

T_Model = t.TypeVar("T_Model", bound="Model")

ModelRef: t.TypeAlias = t.Union[str, t.Type["Model"]]
