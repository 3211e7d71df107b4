"""
Collection — the caller-facing data-access surface.

Reads (and filtered writes) return Query: nothing runs until observed.
save()/insert_many() are eager: the write is on its way before they return.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pledge._types import Thenable
from pledge.api._options import Options
from pledge.api._query import Query
from pledge.operation._eager import eager
from pledge.operation._engine import Engine
from pledge.operation._memory import DeleteResult, UpdateResult
from pledge.operation._types import OperationDescriptor, OperationKind

type Document = dict[str, Any]
type Criteria = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Collection:
    """
    Named collection bound to an engine.

    Example:
        bands = Collection("bands", MemoryEngine())

        saved = bands.save({"name": "Guns N' Roses"})     # true promise, running
        assert isinstance(saved, get_promise_constructor())

        query = bands.find_one({"name": "Guns N' Roses"})  # Query, not running
        doc = await query                                  # runs once
        promise = query.exec()                             # same result, true promise
    """

    name: str
    engine: Engine[Any, Any]
    options: Options = field(default_factory=Options)

    # ───────────────────────────────────────────────────────────────────────
    # Deferred
    # ───────────────────────────────────────────────────────────────────────

    def _query(self, kind: OperationKind, criteria: Criteria | None, **extra: Any) -> Query[Any]:
        descriptor = OperationDescriptor(kind, self.name, criteria or {}, **extra)
        return Query(
            self.engine,
            descriptor,
            registry=self.options.registry,
            debug=self.options.debug,
        )

    def find(self, criteria: Criteria | None = None) -> Query[list[Document]]:
        return self._query(OperationKind.FIND, criteria)

    def find_one(self, criteria: Criteria | None = None) -> Query[Document | None]:
        """Resolves with the first match or None."""
        return self._query(OperationKind.FIND_ONE, criteria)

    def find_by_id(self, document_id: Any) -> Query[Document | None]:
        return self._query(OperationKind.FIND_ONE, {"_id": document_id})

    def count_documents(self, criteria: Criteria | None = None) -> Query[int]:
        return self._query(OperationKind.COUNT, criteria)

    def distinct(self, field: str, criteria: Criteria | None = None) -> Query[list[Any]]:
        return self._query(OperationKind.DISTINCT, criteria, distinct_on=field)

    def update_one(self, criteria: Criteria, update: Criteria) -> Query[UpdateResult]:
        return self._query(OperationKind.UPDATE_ONE, criteria, payload=update)

    def update_many(self, criteria: Criteria, update: Criteria) -> Query[UpdateResult]:
        return self._query(OperationKind.UPDATE_MANY, criteria, payload=update)

    def delete_one(self, criteria: Criteria | None = None) -> Query[DeleteResult]:
        return self._query(OperationKind.DELETE_ONE, criteria)

    def delete_many(self, criteria: Criteria | None = None) -> Query[DeleteResult]:
        return self._query(OperationKind.DELETE_MANY, criteria)

    # ───────────────────────────────────────────────────────────────────────
    # Eager
    # ───────────────────────────────────────────────────────────────────────

    def _eager(self, descriptor: OperationDescriptor) -> Thenable[Any]:
        return eager(
            self.engine,
            descriptor,
            registry=self.options.registry,
            debug=self.options.debug,
        )

    def save(self, document: Mapping[str, Any]) -> Thenable[Document]:
        """
        Insert or replace by _id (assigned if missing). Already running.

        The payload is copied now: mutating document afterwards does not
        change what gets written.
        """
        return self._eager(OperationDescriptor(OperationKind.SAVE, self.name, payload=document))

    def insert_many(self, documents: Iterable[Mapping[str, Any]]) -> Thenable[list[Document]]:
        return self._eager(OperationDescriptor(OperationKind.INSERT, self.name, payload=list(documents)))


__all__ = ("Collection", "Document", "Criteria")
