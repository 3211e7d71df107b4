"""
Eager operations — already running when the caller gets them.
"""

from __future__ import annotations

import asyncio
from typing import Any

from kungfu import Error, Ok

from pledge._types import Reject, Resolve, Thenable
from pledge.operation._engine import Engine, Outcome, dispatch, unwrap_task
from pledge.operation._types import OperationDescriptor
from pledge.promise._registry import PromiseRegistry, construct, registry as default_registry

# ═══════════════════════════════════════════════════════════════════════════════
# eager() — dispatch now, hand back a true promise
# ═══════════════════════════════════════════════════════════════════════════════


def eager[T](
    engine: Engine[T, Any],
    descriptor: OperationDescriptor,
    *,
    registry: PromiseRegistry | None = None,
    debug: bool = False,
) -> Thenable[T]:
    """
    Run a write-style operation immediately.

    The engine has been called before this returns, and the result is an
    instance of the registry's active constructor. Its own then()/catch()
    are all the subscription machinery needed; subscribing never
    re-triggers the write.

    Note: The promise is built before the engine is called. A failing
    constructor, or a factory producing a non-thenable, raises before
    anything has been written.

    Example:
        promise = eager(engine, OperationDescriptor(OperationKind.SAVE, "bands", payload=doc))
        assert isinstance(promise, get_promise_constructor())
        saved = await promise
    """
    constructor = (registry if registry is not None else default_registry).get()
    task: asyncio.Task[Outcome[T]] | None = None
    early: list[tuple[Resolve[T], Reject]] = []

    def executor(resolve: Resolve[T], reject: Reject) -> None:
        if task is None:
            early.append((resolve, reject))
        else:
            _bind(task, descriptor, resolve, reject)

    promise = construct(constructor, executor)
    task = dispatch(engine, descriptor, debug=debug)
    for resolve, reject in early:
        _bind(task, descriptor, resolve, reject)
    return promise


def _bind[T](
    task: asyncio.Task[Outcome[T]],
    descriptor: OperationDescriptor,
    resolve: Resolve[T],
    reject: Reject,
) -> None:
    def settle(done: asyncio.Task[Outcome[T]]) -> None:
        match unwrap_task(done, descriptor):
            case Ok(value):
                resolve(value)
            case Error(failure):
                reject(failure)

    task.add_done_callback(settle)


__all__ = ("eager",)
