"""
ThenableOperation — deferred, query-style execution.

Nothing runs until the first .then(), .exec() or await. From then on the
engine has been called exactly once, whatever happens next.

    op = ThenableOperation(engine, descriptor)
    op.then(print)          # starts it
    promise = op.exec()     # same execution, true promise
    value = await op        # same execution again
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, cast

from kungfu import Error, Ok

from pledge._errors import DoubleDispatchError
from pledge._types import OnFulfilled, OnRejected, PromiseConstructor, Reject, Resolve, Thenable
from pledge.operation._engine import Engine, Outcome, dispatch, unwrap_task
from pledge.operation._types import (
    ExecutionState,
    OperationDescriptor,
    Pending,
    Running,
    Settled,
)
from pledge.promise._promise import as_exception
from pledge.promise._registry import PromiseRegistry, construct, registry as default_registry

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Subscriber
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class _Subscriber:
    """Handlers plus the resolve/reject of the promise they feed."""

    on_fulfilled: OnFulfilled[Any, Any] | None
    on_rejected: OnRejected[Any] | None
    resolve: Resolve[Any]
    reject: Reject


def _notify(sub: _Subscriber, outcome: Outcome[Any]) -> None:
    match outcome:
        case Ok(value):
            handler, arg, passthrough = sub.on_fulfilled, value, sub.resolve
        case Error(failure):
            handler, arg, passthrough = sub.on_rejected, failure, sub.reject

    if handler is None:
        passthrough(arg)
        return
    try:
        result = handler(arg)
    except Exception as exc:
        sub.reject(exc)
        return
    sub.resolve(result)


# ═══════════════════════════════════════════════════════════════════════════════
# ThenableOperation
# ═══════════════════════════════════════════════════════════════════════════════


class ThenableOperation[T]:
    """
    A deferred operation: thenable, but not a promise.

    State machine:
        Pending ──(then/exec/await)──▶ Running ──(engine outcome)──▶ Settled

    Note: The promise constructor is captured from the registry at the
    Pending → Running transition. Every wrapper this operation hands out
    afterwards is built from that constructor, even if the registry has
    moved on since.

    Failures are retained: an operation that failed with nobody listening
    delivers the failure to whoever subscribes later.
    """

    __slots__ = (
        "_engine",
        "_descriptor",
        "_registry",
        "_debug",
        "_state",
        "_subscribers",
        "_constructor",
    )

    def __init__(
        self,
        engine: Engine[T, Any],
        descriptor: OperationDescriptor,
        *,
        registry: PromiseRegistry | None = None,
        debug: bool = False,
    ) -> None:
        self._engine = engine
        self._descriptor = descriptor
        self._registry = registry if registry is not None else default_registry
        self._debug = debug
        self._state: ExecutionState[T] = Pending()
        self._subscribers: list[_Subscriber] = []
        self._constructor: PromiseConstructor | None = None

    # ───────────────────────────────────────────────────────────────────────
    # Introspection
    # ───────────────────────────────────────────────────────────────────────

    @property
    def descriptor(self) -> OperationDescriptor:
        return self._descriptor

    @property
    def state(self) -> ExecutionState[T]:
        return self._state

    @property
    def started(self) -> bool:
        return not isinstance(self._state, Pending)

    @property
    def settled(self) -> bool:
        return isinstance(self._state, Settled)

    @property
    def constructor(self) -> PromiseConstructor | None:
        """Constructor captured at start; None while pending."""
        return self._constructor

    # ───────────────────────────────────────────────────────────────────────
    # Thenable surface
    # ───────────────────────────────────────────────────────────────────────

    def then(
        self,
        on_fulfilled: OnFulfilled[T, Any] | None = None,
        on_rejected: OnRejected[Any] | None = None,
    ) -> Thenable[Any]:
        """
        Subscribe, starting execution if needed.

        Returns a true promise (captured constructor) that resolves with
        the handler's result or rejects with what the handler raised.
        """
        constructor = self._start()

        def executor(resolve: Resolve[Any], reject: Reject) -> None:
            self._subscribe(_Subscriber(on_fulfilled, on_rejected, resolve, reject))

        return construct(constructor, executor)

    def catch(self, on_rejected: OnRejected[Any]) -> Thenable[Any]:
        return self.then(None, on_rejected)

    def finally_(self, callback: Any) -> Thenable[Any]:
        """Run callback on either outcome; the outcome passes through."""

        def on_fulfilled(value: T) -> T:
            callback()
            return value

        def on_rejected(reason: BaseException) -> Any:
            callback()
            raise reason

        return self.then(on_fulfilled, on_rejected)

    def exec(self) -> Thenable[T]:
        """
        Materialize into a true promise.

        Starts execution if it has not started. Every call returns a new,
        independent wrapper over the same single execution.
        """
        return self.then()

    def __await__(self):
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def resolve(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def reject(reason: object) -> None:
            if not future.done():
                future.set_exception(as_exception(reason))

        self._start()
        self._subscribe(_Subscriber(None, None, resolve, reject))
        return future.__await__()

    # ───────────────────────────────────────────────────────────────────────
    # State machine
    # ───────────────────────────────────────────────────────────────────────

    def _start(self) -> PromiseConstructor:
        """Pending → Running, once. Returns the captured constructor."""
        if isinstance(self._state, Pending):
            constructor = self._registry.get()
            self._dispatch()
            self._constructor = constructor
        return cast(PromiseConstructor, self._constructor)

    def _dispatch(self) -> None:
        if not isinstance(self._state, Pending):
            raise DoubleDispatchError(self._descriptor)
        task = dispatch(self._engine, self._descriptor, debug=self._debug)
        self._state = Running()
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[Outcome[T]]) -> None:
        outcome = unwrap_task(task, self._descriptor)
        self._state = Settled(outcome)
        subscribers, self._subscribers = self._subscribers, []

        if isinstance(outcome, Error) and not subscribers:
            logger.debug("%s failed with no subscribers; retained", self._descriptor.label)
        else:
            logger.debug("%s settled, notifying %d", self._descriptor.label, len(subscribers))

        for sub in subscribers:
            _notify(sub, outcome)

    def _subscribe(self, sub: _Subscriber) -> None:
        match self._state:
            case Settled(outcome):
                asyncio.get_running_loop().call_soon(_notify, sub, outcome)
            case _:
                self._subscribers.append(sub)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._descriptor.label} {type(self._state).__name__.lower()}>"


__all__ = ("ThenableOperation",)
