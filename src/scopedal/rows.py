"""
Contains the result collections returned by Query.all() and Query.paginate().
"""

from __future__ import annotations

import math
import typing as t

from .serializers import as_json
from .types import AnyDict, PaginateDict, Pagination, PaginationMetadata, T


class Collection(list[T]):
    """
    List of records (or mappings) with extra values attached by string key, such as the found rows total.

    Example:
        posts = manager.select("Post").calc_found_rows().limit(0, 10).all()
        posts[0]  # first record
        posts["found_rows"]  # total without the limit
        posts.found_rows  # same
    """

    extra: AnyDict

    def __init__(self, rows: t.Iterable[T] = (), **extra: t.Any) -> None:
        """
        Rows behave like a normal list, extra values are reachable by string key or attribute.
        """
        super().__init__(rows)
        self.extra = dict(extra)

    @t.overload
    def __getitem__(self, item: t.SupportsIndex) -> T:
        """
        Integer index: a row.
        """

    @t.overload
    def __getitem__(self, item: slice) -> list[T]:
        """
        Slice: a list of rows.
        """

    @t.overload
    def __getitem__(self, item: str) -> t.Any:
        """
        String key: an extra value.
        """

    def __getitem__(self, item: t.Any) -> t.Any:
        """
        Rows by index, extra values by key.
        """
        if isinstance(item, str):
            return self.extra[item]
        return super().__getitem__(item)

    def __setitem__(self, item: t.Any, value: t.Any) -> None:
        """
        Replace a row by index or set an extra value by key.
        """
        if isinstance(item, str):
            self.extra[item] = value
        else:
            super().__setitem__(item, value)

    def __getattr__(self, item: str) -> t.Any:
        """
        Extra values as attributes.
        """
        if item.startswith("_") or item == "extra":
            raise AttributeError(item)
        try:
            return self.extra[item]
        except KeyError as e:
            raise AttributeError(item) from e

    def first(self) -> t.Optional[T]:
        """
        First row or None.
        """
        return self[0] if self else None

    def as_dict(self) -> AnyDict:
        """
        Rows (as dicts where possible) plus the extra values.
        """
        return {
            "data": [row.as_dict(with_relations=True) if hasattr(row, "as_dict") else row for row in self],
            **self.extra,
        }

    def as_json(self, indent: t.Optional[int] = None, **kwargs: t.Any) -> str:
        """
        Dump the collection with its extra values as JSON.
        """
        return as_json.encode(self.as_dict(), indent=indent, **kwargs)


class PaginatedCollection(Collection[T]):
    """
    Result of Query.paginate(): one page of rows plus page info.
    """

    metadata: PaginationMetadata

    def __init__(self, rows: t.Iterable[T], metadata: PaginationMetadata, **extra: t.Any) -> None:
        """
        Metadata holds the limit, the requested page and the total row count.
        """
        super().__init__(rows, **extra)
        self.metadata = metadata

    def __getattr__(self, item: str) -> t.Any:
        """
        Keep metadata out of the extra lookup.
        """
        if item == "metadata":
            raise AttributeError(item)
        return super().__getattr__(item)

    @classmethod
    def from_collection(cls, rows: Collection[T], total: int, limit: int, page: int) -> "PaginatedCollection[T]":
        """
        Wrap the result of a calc_found_rows query.
        """
        metadata: PaginationMetadata = {
            "limit": limit,
            "current_page": page,
            "max_page": math.ceil(total / limit) if limit else 1,
            "rows": total,
        }
        return cls(rows, metadata, **rows.extra)

    @property
    def pagination(self) -> Pagination:
        """
        Get all page info.
        """
        pagination_data = self.metadata

        has_next_page = pagination_data["current_page"] < pagination_data["max_page"]
        has_prev_page = pagination_data["current_page"] > 1
        return {
            "total_items": pagination_data["rows"],
            "current_page": pagination_data["current_page"],
            "per_page": pagination_data["limit"],
            "total_pages": pagination_data["max_page"],
            "has_next_page": has_next_page,
            "has_prev_page": has_prev_page,
            "next_page": pagination_data["current_page"] + 1 if has_next_page else None,
            "prev_page": pagination_data["current_page"] - 1 if has_prev_page else None,
        }

    def as_dict(self) -> PaginateDict:  # type: ignore
        """
        Convert to a dictionary with pagination info and the rows.
        """
        return {"data": super().as_dict()["data"], "pagination": self.pagination}
