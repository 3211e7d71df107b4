"""
MemoryEngine — in-memory document engine.

Note: Only for single-process use / tests / examples.
There is no persistence and no isolation between concurrent writes beyond
what a single event loop gives for free.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from kungfu import Error, LazyCoroResult, Ok, Result

from pledge.operation._types import OperationDescriptor, OperationKind, SortKey, thaw

# ═══════════════════════════════════════════════════════════════════════════════
# Errors & Results
# ═══════════════════════════════════════════════════════════════════════════════


class EngineErrorKind(Enum):
    """Engine error kinds."""

    DUPLICATE_KEY = auto()
    INVALID_QUERY = auto()
    INVALID_UPDATE = auto()
    UNSUPPORTED = auto()


@dataclass(frozen=True, slots=True)
class EngineError:
    """Engine operation error."""

    kind: EngineErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


@dataclass(frozen=True, slots=True)
class UpdateResult:
    matched: int
    modified: int


@dataclass(frozen=True, slots=True)
class DeleteResult:
    deleted: int


class _Rejected(Exception):
    """Carries an EngineError out of nested helpers."""

    def __init__(self, kind: EngineErrorKind, message: str) -> None:
        super().__init__(message)
        self.error = EngineError(kind, message)


# ═══════════════════════════════════════════════════════════════════════════════
# Field access
# ═══════════════════════════════════════════════════════════════════════════════

_MISSING: Any = object()


def _get(doc: Mapping[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set(doc: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    current = doc
    for part in parents:
        current = current.setdefault(part, {})
        if not isinstance(current, dict):
            raise _Rejected(EngineErrorKind.INVALID_UPDATE, f"cannot set {path!r}: {part!r} is not a document")
    current[leaf] = value


def _unset(doc: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    current: Any = doc
    for part in parents:
        current = current.get(part) if isinstance(current, dict) else None
    if isinstance(current, dict):
        current.pop(leaf, None)


# ═══════════════════════════════════════════════════════════════════════════════
# Criteria matching
# ═══════════════════════════════════════════════════════════════════════════════


def _eq(value: Any, arg: Any) -> bool:
    if value is _MISSING:
        return arg is None
    if isinstance(value, list) and not isinstance(arg, (list, tuple)):
        return arg in value
    return value == arg


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, arg: Any) -> bool:
        if value is _MISSING or value is None:
            return False
        try:
            return op(value, arg)
        except TypeError:
            return False

    return check


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _eq,
    "$ne": lambda v, arg: not _eq(v, arg),
    "$gt": _compare(lambda v, arg: v > arg),
    "$gte": _compare(lambda v, arg: v >= arg),
    "$lt": _compare(lambda v, arg: v < arg),
    "$lte": _compare(lambda v, arg: v <= arg),
    "$in": lambda v, arg: any(_eq(v, a) for a in arg),
    "$nin": lambda v, arg: not any(_eq(v, a) for a in arg),
    "$exists": lambda v, arg: (v is not _MISSING) == bool(arg),
}


def _is_operator_expr(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and all(
        isinstance(k, str) and k.startswith("$") for k in value
    )


def _matches(doc: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    for key, expected in criteria.items():
        if key == "$or":
            if not any(_matches(doc, c) for c in expected):
                return False
            continue
        if key == "$and":
            if not all(_matches(doc, c) for c in expected):
                return False
            continue
        if key.startswith("$"):
            raise _Rejected(EngineErrorKind.INVALID_QUERY, f"unknown top-level operator {key!r}")

        value = _get(doc, key)
        if _is_operator_expr(expected):
            for op, arg in expected.items():
                check = _OPERATORS.get(op)
                if check is None:
                    raise _Rejected(EngineErrorKind.INVALID_QUERY, f"unknown operator {op!r}")
                if not check(value, thaw(arg)):
                    return False
        elif not _eq(value, thaw(expected)):
            return False
    return True


# ═══════════════════════════════════════════════════════════════════════════════
# Sort / projection / update
# ═══════════════════════════════════════════════════════════════════════════════


def _sorted(docs: list[dict[str, Any]], keys: tuple[SortKey, ...]) -> list[dict[str, Any]]:
    result = list(docs)
    # Stable sorts applied from the least significant key.
    for path, direction in reversed(keys):
        def sort_key(doc: dict[str, Any], path: str = path) -> tuple[Any, ...]:
            value = _get(doc, path)
            return (0,) if value is _MISSING or value is None else (1, value)

        result.sort(key=sort_key, reverse=direction < 0)
    return result


def _project(doc: dict[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    if not fields:
        return doc
    excluded = [f[1:] for f in fields if f.startswith("-")]
    included = [f for f in fields if not f.startswith("-")]
    if excluded and included:
        raise _Rejected(EngineErrorKind.INVALID_QUERY, "cannot mix inclusion and exclusion in projection")
    if excluded:
        return {k: v for k, v in doc.items() if k not in excluded}
    return {k: v for k, v in doc.items() if k == "_id" or k in included}


def _updated(doc: dict[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Return an updated copy; doc itself is left alone."""
    if not update:
        raise _Rejected(EngineErrorKind.INVALID_UPDATE, "empty update")
    operators = [k.startswith("$") for k in update]
    if any(operators) and not all(operators):
        raise _Rejected(EngineErrorKind.INVALID_UPDATE, "cannot mix operators and fields")
    ops: Mapping[str, Any] = update if all(operators) else {"$set": update}

    result = copy.deepcopy(doc)
    for op, fields in ops.items():
        for path, arg in fields.items():
            match op:
                case "$set":
                    _set(result, path, thaw(arg))
                case "$unset":
                    _unset(result, path)
                case "$inc":
                    current = _get(result, path)
                    base = 0 if current is _MISSING else current
                    if not isinstance(base, (int, float)) or not isinstance(arg, (int, float)):
                        raise _Rejected(EngineErrorKind.INVALID_UPDATE, f"$inc on non-numeric {path!r}")
                    _set(result, path, base + arg)
                case _:
                    raise _Rejected(EngineErrorKind.INVALID_UPDATE, f"unknown update operator {op!r}")

    if result.get("_id") != doc.get("_id"):
        raise _Rejected(EngineErrorKind.INVALID_UPDATE, "_id is immutable")
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# MemoryEngine
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryEngine:
    """
    In-memory engine understanding every OperationKind.

    Criteria: equality, dotted paths, $eq $ne $gt $gte $lt $lte $in $nin
    $exists, top-level $or/$and. Updates: $set $unset $inc, or bare fields
    (treated as $set).

    Example:
        engine = MemoryEngine(latency=0.01)
        bands = Collection("bands", engine)
    """

    def __init__(
        self,
        *,
        latency: float = 0.0,
        id_factory: Callable[[], Any] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._collections: dict[str, dict[Any, dict[str, Any]]] = {}
        self._latency = latency
        self._id_factory = id_factory
        self.executed: list[OperationDescriptor] = []

    def documents(self, collection: str) -> list[dict[str, Any]]:
        """Snapshot of a collection, in insertion order."""
        return copy.deepcopy(list(self._collections.get(collection, {}).values()))

    def execute(self, descriptor: OperationDescriptor) -> LazyCoroResult[Any, EngineError]:
        self.executed.append(descriptor)

        async def run() -> Result[Any, EngineError]:
            await asyncio.sleep(self._latency)
            handler = self._handlers.get(descriptor.kind)
            if handler is None:
                return Error(EngineError(EngineErrorKind.UNSUPPORTED, descriptor.kind.value))
            try:
                return Ok(handler(self, descriptor))
            except _Rejected as rejected:
                return Error(rejected.error)

        return LazyCoroResult(run)

    # ───────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────

    def _select(self, d: OperationDescriptor) -> list[dict[str, Any]]:
        docs = [
            doc
            for doc in self._collections.get(d.collection, {}).values()
            if _matches(doc, d.criteria)
        ]
        docs = _sorted(docs, d.sort)[d.skip:]
        if d.limit:
            docs = docs[: d.limit]
        return docs

    def _find(self, d: OperationDescriptor) -> list[dict[str, Any]]:
        return [_project(copy.deepcopy(doc), d.projection) for doc in self._select(d)]

    def _find_one(self, d: OperationDescriptor) -> dict[str, Any] | None:
        found = self._find(d.with_limit(1))
        return found[0] if found else None

    def _count(self, d: OperationDescriptor) -> int:
        return len(self._select(d))

    def _distinct(self, d: OperationDescriptor) -> list[Any]:
        if d.distinct_on is None:
            raise _Rejected(EngineErrorKind.INVALID_QUERY, "distinct requires a field")
        seen: list[Any] = []
        for doc in self._select(d):
            value = _get(doc, d.distinct_on)
            if value is _MISSING:
                continue
            for item in value if isinstance(value, list) else [value]:
                if item not in seen:
                    seen.append(copy.deepcopy(item))
        return seen

    # ───────────────────────────────────────────────────────────────────────
    # Writes
    # ───────────────────────────────────────────────────────────────────────

    def _with_id(self, doc: dict[str, Any]) -> dict[str, Any]:
        if doc.get("_id") is None:
            doc["_id"] = self._id_factory()
        return doc

    def _insert(self, d: OperationDescriptor) -> list[dict[str, Any]]:
        coll = self._collections.setdefault(d.collection, {})
        docs = [self._with_id(thaw(doc)) for doc in d.payload or ()]
        ids = [doc["_id"] for doc in docs]
        clash = next((i for i in ids if i in coll), None)
        if clash is not None or len(set(ids)) != len(ids):
            raise _Rejected(EngineErrorKind.DUPLICATE_KEY, f"duplicate _id in {d.collection}")
        for doc in docs:
            coll[doc["_id"]] = doc
        return copy.deepcopy(docs)

    def _save(self, d: OperationDescriptor) -> dict[str, Any]:
        if not isinstance(d.payload, Mapping):
            raise _Rejected(EngineErrorKind.INVALID_UPDATE, "save requires a document")
        coll = self._collections.setdefault(d.collection, {})
        doc = self._with_id(thaw(d.payload))
        coll[doc["_id"]] = doc
        return copy.deepcopy(doc)

    def _update(self, d: OperationDescriptor) -> UpdateResult:
        if not isinstance(d.payload, Mapping):
            raise _Rejected(EngineErrorKind.INVALID_UPDATE, "update requires a mapping")
        coll = self._collections.get(d.collection, {})
        targets = self._select(d)
        if d.kind is OperationKind.UPDATE_ONE:
            targets = targets[:1]
        # Compute every new version first so a bad update changes nothing.
        updated = [(doc, _updated(doc, d.payload)) for doc in targets]
        modified = 0
        for old, new in updated:
            if new != old:
                coll[old["_id"]] = new
                modified += 1
        return UpdateResult(matched=len(updated), modified=modified)

    def _delete(self, d: OperationDescriptor) -> DeleteResult:
        coll = self._collections.get(d.collection, {})
        targets = self._select(d)
        if d.kind is OperationKind.DELETE_ONE:
            targets = targets[:1]
        for doc in targets:
            del coll[doc["_id"]]
        return DeleteResult(deleted=len(targets))

    _handlers: dict[OperationKind, Callable[[MemoryEngine, OperationDescriptor], Any]] = {
        OperationKind.FIND: _find,
        OperationKind.FIND_ONE: _find_one,
        OperationKind.COUNT: _count,
        OperationKind.DISTINCT: _distinct,
        OperationKind.INSERT: _insert,
        OperationKind.SAVE: _save,
        OperationKind.UPDATE_ONE: _update,
        OperationKind.UPDATE_MANY: _update,
        OperationKind.DELETE_ONE: _delete,
        OperationKind.DELETE_MANY: _delete,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "EngineErrorKind",
    "EngineError",
    "UpdateResult",
    "DeleteResult",
    "MemoryEngine",
)
