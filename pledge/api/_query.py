"""
Query — a ThenableOperation you can keep refining until it runs.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Self

from pledge._errors import OperationStartedError
from pledge.operation._thenable import ThenableOperation
from pledge.operation._types import OperationDescriptor, SortKey

type SortSpec = str | SortKey | Mapping[str, int]


def _sort_keys(spec: SortSpec) -> list[SortKey]:
    match spec:
        case str():
            return [
                (token[1:], -1) if token.startswith("-") else (token, 1)
                for token in spec.split()
            ]
        case (str() as path, int() as direction):
            return [(path, direction)]
        case Mapping():
            return [(path, direction) for path, direction in spec.items()]
        case _:
            raise TypeError(f"unsupported sort spec: {spec!r}")


class Query[T](ThenableOperation[T]):
    """
    Lazy query builder.

    Builder methods mutate the query in place and return it, so calls
    chain. They raise OperationStartedError once the query has started:
    the descriptor that reached the engine is final.

    Example:
        rock = bands.find({"genre": "rock"}).sort("-formed name").limit(5)
        rock.then(print)     # starts here
        rock.limit(10)       # OperationStartedError
    """

    __slots__ = ()

    def _change(self, name: str, fn: Callable[[OperationDescriptor], OperationDescriptor]) -> Self:
        if self.started:
            raise OperationStartedError(self._descriptor, name)
        self._descriptor = fn(self._descriptor)
        return self

    def where(self, criteria: Mapping[str, Any] | None = None, /, **fields: Any) -> Self:
        """Add criteria; keyword arguments are equality matches."""
        merged = {**(criteria or {}), **fields}
        return self._change("where", lambda d: d.with_criteria(merged))

    def select(self, *fields: str) -> Self:
        """
        Project fields. "-name" excludes; whitespace-separated strings allowed.

            .select("name members")
            .select("-members")
        """
        paths = [path for spec in fields for path in spec.split()]
        return self._change("select", lambda d: d.with_projection(*paths))

    def sort(self, *specs: SortSpec) -> Self:
        """
        Order results.

            .sort("-formed name")
            .sort(("formed", -1), ("name", 1))
            .sort({"formed": -1})
        """
        keys = [key for spec in specs for key in _sort_keys(spec)]
        return self._change("sort", lambda d: d.with_sort(*keys))

    def limit(self, n: int | None) -> Self:
        return self._change("limit", lambda d: d.with_limit(n))

    def skip(self, n: int) -> Self:
        return self._change("skip", lambda d: d.with_skip(n))


__all__ = ("Query", "SortSpec")
