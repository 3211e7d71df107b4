"""
Execution engine — the storage backend boundary.

Engine.execute(descriptor) is the only thing the deferral layer calls.
All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

from pledge._errors import ExecutionFailure
from pledge.operation._types import OperationDescriptor

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Engine Protocol — Users Implement This
# ═══════════════════════════════════════════════════════════════════════════════


class Engine[T, E](Protocol):
    """
    Execution engine protocol.

    Implement this for real backends (Mongo driver, SQL, HTTP APIs, ...).

    Note: execute() is called exactly once per logical operation. Retries,
    batching and backpressure are the engine's business, not ours.

    Example:
        class MotorEngine:
            def __init__(self, db: AsyncIOMotorDatabase) -> None:
                self.db = db

            def execute(self, d: OperationDescriptor) -> LazyCoroResult[Any, str]:
                async def run() -> Result[Any, str]:
                    coll = self.db[d.collection]
                    match d.kind:
                        case OperationKind.FIND_ONE:
                            return Ok(await coll.find_one(dict(d.criteria)))
                        ...
                return LazyCoroResult(run)
    """

    def execute(self, descriptor: OperationDescriptor) -> Awaitable[Result[T, E]]:
        """Start the operation. The awaitable delivers Ok(value) or Error(e)."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Function-based Engine
# ═══════════════════════════════════════════════════════════════════════════════


def _identity(exc: Exception) -> Any:
    return exc


@dataclass(frozen=True, slots=True)
class FunctionalEngine[T, E]:
    """Engine built from a plain async function that raises on failure."""

    fn: Callable[[OperationDescriptor], Awaitable[T]]
    on_error: Callable[[Exception], E]

    def execute(self, descriptor: OperationDescriptor) -> LazyCoroResult[T, E]:
        fn = self.fn
        return L.catching_async(lambda: fn(descriptor), on_error=self.on_error)


def engine_from[T, E](
    fn: Callable[[OperationDescriptor], Awaitable[T]],
    on_error: Callable[[Exception], E] = _identity,
) -> FunctionalEngine[T, E]:
    """
    Lift an async function into an Engine.

    Example:
        async def run(d: OperationDescriptor) -> Any:
            return await driver.command(d.collection, d.kind.value, dict(d.criteria))

        engine = engine_from(run, on_error=lambda e: DriverError(str(e)))
    """
    return FunctionalEngine(fn=fn, on_error=on_error)


# ═══════════════════════════════════════════════════════════════════════════════
# dispatch() — the single call into the engine
# ═══════════════════════════════════════════════════════════════════════════════

type Outcome[T] = Result[T, ExecutionFailure]


async def _settle(
    descriptor: OperationDescriptor,
    pending: Awaitable[Any],
) -> Outcome[Any]:
    try:
        result = await pending
    except Exception as exc:
        return Error(ExecutionFailure(exc, descriptor))

    match result:
        case Ok(value):
            return Ok(value)
        case Error(err):
            return Error(ExecutionFailure(err, descriptor))
        case value:
            # Engines returning bare values are treated as successful.
            return Ok(value)


async def _raise(exc: Exception) -> Any:
    raise exc


def dispatch(
    engine: Engine[Any, Any],
    descriptor: OperationDescriptor,
    *,
    debug: bool = False,
) -> asyncio.Task[Outcome[Any]]:
    """
    Invoke engine.execute() now and return a task with the normalized outcome.

    Nothing escapes synchronously: an execute() that raises becomes an
    Error outcome like any other failure.
    """
    if debug:
        logger.info(
            "%s(%s)",
            descriptor.label,
            dict(descriptor.criteria) if descriptor.criteria else "",
        )
    logger.debug("dispatch %s", descriptor.label)
    loop = asyncio.get_running_loop()

    try:
        pending: Awaitable[Any] = engine.execute(descriptor)
    except Exception as exc:
        pending = _raise(exc)

    return loop.create_task(_settle(descriptor, pending))


def unwrap_task[T](
    task: asyncio.Task[Outcome[T]],
    descriptor: OperationDescriptor,
) -> Outcome[T]:
    """Outcome of a finished dispatch task; cancellation counts as failure."""
    if task.cancelled():
        return Error(ExecutionFailure(asyncio.CancelledError(), descriptor))
    return task.result()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Engine",
    "FunctionalEngine",
    "engine_from",
    "Outcome",
    "dispatch",
    "unwrap_task",
)
