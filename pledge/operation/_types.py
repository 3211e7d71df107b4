"""
Operation types — descriptors and execution state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from kungfu import Result

from pledge._errors import ExecutionFailure

# ═══════════════════════════════════════════════════════════════════════════════
# Operation Kind
# ═══════════════════════════════════════════════════════════════════════════════


class OperationKind(Enum):
    """What an engine is asked to do."""

    FIND = "find"
    FIND_ONE = "find_one"
    COUNT = "count_documents"
    DISTINCT = "distinct"
    INSERT = "insert_many"
    SAVE = "save"
    UPDATE_ONE = "update_one"
    UPDATE_MANY = "update_many"
    DELETE_ONE = "delete_one"
    DELETE_MANY = "delete_many"

    @property
    def is_write(self) -> bool:
        return self in _WRITES


_WRITES = frozenset({
    OperationKind.INSERT,
    OperationKind.SAVE,
    OperationKind.UPDATE_ONE,
    OperationKind.UPDATE_MANY,
    OperationKind.DELETE_ONE,
    OperationKind.DELETE_MANY,
})


# ═══════════════════════════════════════════════════════════════════════════════
# Freezing — descriptors never share mutable state with callers
# ═══════════════════════════════════════════════════════════════════════════════


def freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze(): fresh, mutable copies."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# Operation Descriptor
# ═══════════════════════════════════════════════════════════════════════════════

type SortKey = tuple[str, int]


@dataclass(frozen=True, slots=True)
class OperationDescriptor:
    """
    Immutable specification of what to execute.

    Built incrementally — each with_*() returns a new descriptor.

    Example:
        d = (
            OperationDescriptor(OperationKind.FIND, "bands")
            .with_criteria({"genre": "rock"})
            .with_sort(("name", 1))
            .with_limit(10)
        )
    """

    kind: OperationKind
    collection: str
    criteria: Mapping[str, Any] = field(default_factory=dict)
    projection: tuple[str, ...] = ()
    sort: tuple[SortKey, ...] = ()
    limit: int | None = None
    skip: int = 0
    payload: Any = None
    distinct_on: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "criteria", freeze(self.criteria))
        object.__setattr__(self, "payload", freeze(self.payload))

    @property
    def label(self) -> str:
        """Human-readable `collection.method` for logs and errors."""
        return f"{self.collection}.{self.kind.value}"

    def with_criteria(self, criteria: Mapping[str, Any]) -> OperationDescriptor:
        """Merge criteria (later keys win)."""
        return replace(self, criteria={**self.criteria, **criteria})

    def with_projection(self, *fields: str) -> OperationDescriptor:
        return replace(self, projection=(*self.projection, *fields))

    def with_sort(self, *keys: SortKey) -> OperationDescriptor:
        return replace(self, sort=(*self.sort, *keys))

    def with_limit(self, limit: int | None) -> OperationDescriptor:
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        return replace(self, limit=limit)

    def with_skip(self, skip: int) -> OperationDescriptor:
        if skip < 0:
            raise ValueError("skip must be >= 0")
        return replace(self, skip=skip)


# ═══════════════════════════════════════════════════════════════════════════════
# Execution State — Pending → Running → Settled
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Pending:
    """Not started. The descriptor may still change."""


@dataclass(frozen=True, slots=True)
class Running:
    """Dispatched to the engine, outcome not known yet."""


@dataclass(frozen=True, slots=True)
class Settled[T]:
    """Final. Ok(value) or Error(ExecutionFailure)."""

    outcome: Result[T, ExecutionFailure]


type ExecutionState[T] = Pending | Running | Settled[T]


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "OperationKind",
    "OperationDescriptor",
    "SortKey",
    "freeze",
    "thaw",
    "Pending",
    "Running",
    "Settled",
    "ExecutionState",
)
