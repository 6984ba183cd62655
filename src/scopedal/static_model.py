"""
Chainable facade over one model: scopes pile up, fetchers and statics consume them.
"""

from __future__ import annotations

import typing as t

from .types import AnyCallable, ScopeFn

if t.TYPE_CHECKING:
    from .define import ModelDescriptor
    from .manager import Manager
    from .query import Query


class StaticModel:
    """
    Bound to a model and a manager, usually reached as `manager.Post` or `record.static_model()`.

    Example:
        manager.Chapter.at_index(0).first()  # scope, then fetcher
        manager.Chapter.get(5)  # plain static, called with the manager
    """

    def __init__(self, descriptor: "ModelDescriptor", manager: "Manager") -> None:
        """
        Starts without pending scopes.
        """
        self.descriptor = descriptor
        self.manager = manager
        self.scopes: list[ScopeFn] = []

    def __repr__(self) -> str:
        """
        Show the model name and the number of pending scopes.
        """
        return f"<StaticModel {self.descriptor.name} ({len(self.scopes)} scopes)>"

    def scope(self, fn: ScopeFn) -> t.Self:
        """
        Add a pending scope callable.
        """
        self.scopes.append(fn)
        return self

    def query(self) -> "Query":
        """
        A fresh query on the model, with every pending scope applied in order.
        """
        query = self.manager.select(self.descriptor.name)
        for fn in self.scopes:
            query.scope(fn)
        return query

    def __getattr__(self, name: str) -> AnyCallable:
        """
        Scopes return this StaticModel, fetchers get it as first argument, other statics get the manager.
        """
        if name.startswith("_"):
            raise AttributeError(name)

        if scope_fn := self.descriptor.scopes.get(name):

            def add_scope(*args: t.Any, **kwargs: t.Any) -> t.Self:
                return self.scope(scope_fn(*args, **kwargs))

            return add_scope

        if fetcher_fn := self.descriptor.fetchers.get(name):

            def fetch(*args: t.Any, **kwargs: t.Any) -> t.Any:
                return fetcher_fn(self, *args, **kwargs)

            return fetch

        static_fn = getattr(self.descriptor.model, name)

        def call_static(*args: t.Any, **kwargs: t.Any) -> t.Any:
            return static_fn(self.manager, *args, **kwargs)

        return call_static
