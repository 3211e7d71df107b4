"""
Promise — the default promise constructor.

asyncio.Future underneath, executor contract on top:

    promise = Promise(lambda resolve, reject: resolve(42))
    value = await promise.then(lambda v: v + 1)   # 43
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Literal, Self

from pledge._errors import ExecutionFailure
from pledge._types import Executor, OnFulfilled, OnRejected, is_thenable

type PromiseState = Literal["pending", "fulfilled", "rejected"]


def as_exception(reason: object) -> BaseException:
    """Rejection reasons must be raisable by `await`."""
    if isinstance(reason, BaseException):
        return reason
    return ExecutionFailure(reason)


class Promise[T]:
    """
    Future-backed promise honouring the two-argument executor contract.

    Note: resolve/reject are single-fire. The first call locks the promise,
    later calls are ignored, even while a resolved thenable is still
    being adopted.

    Handlers registered with .then() always run on a later loop turn, in
    registration order, never in the caller's stack frame.

    Example:
        def executor(resolve, reject):
            loop.call_later(0.1, resolve, "done")

        result = await Promise(executor)
    """

    __slots__ = ("_future", "_locked", "_rejected")

    def __init__(self, executor: Executor[T]) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._locked = False
        self._rejected = False
        try:
            executor(self._resolve, self._reject)
        except Exception as exc:
            self._reject(exc)

    # ───────────────────────────────────────────────────────────────────────
    # Executor callbacks
    # ───────────────────────────────────────────────────────────────────────

    def _resolve(self, value: Any) -> None:
        if self._locked:
            return
        self._locked = True
        self._adopt(value)

    def _reject(self, reason: object) -> None:
        if self._locked:
            return
        self._locked = True
        self._fail(reason)

    def _adopt(self, value: Any) -> None:
        if value is self:
            self._fail(TypeError("a promise cannot be resolved with itself"))
            return
        if is_thenable(value):
            self._adopt_thenable(value)
            return
        if inspect.isawaitable(value):
            asyncio.ensure_future(value).add_done_callback(self._adopt_future)
            return
        if not self._future.done():
            self._future.set_result(value)

    def _adopt_thenable(self, thenable: Any) -> None:
        # Foreign thenables may call back twice, or call back and then raise:
        # only the first signal counts.
        called = False

        def on_value(value: Any) -> None:
            nonlocal called
            if not called:
                called = True
                self._adopt(value)

        def on_reason(reason: object) -> None:
            nonlocal called
            if not called:
                called = True
                self._fail(reason)

        try:
            thenable.then(on_value, on_reason)
        except Exception as exc:
            on_reason(exc)

    def _adopt_future(self, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            self._fail(asyncio.CancelledError())
        elif (exc := future.exception()) is not None:
            self._fail(exc)
        else:
            self._adopt(future.result())

    def _fail(self, reason: object) -> None:
        if not self._future.done():
            self._rejected = True
            self._future.set_exception(as_exception(reason))

    # ───────────────────────────────────────────────────────────────────────
    # Thenable surface
    # ───────────────────────────────────────────────────────────────────────

    def then[U](
        self,
        on_fulfilled: OnFulfilled[T, Any] | None = None,
        on_rejected: OnRejected[Any] | None = None,
    ) -> Promise[U]:
        """
        Chain handlers. Returns a new promise of the same class.

        The chained promise resolves with the handler's return value
        (adopting thenables and awaitables) or rejects with what it raised.
        A missing handler passes the outcome through.
        """
        source = self._future

        def executor(resolve: Any, reject: Any) -> None:
            def settle(future: asyncio.Future[T]) -> None:
                if future.cancelled():
                    reject(asyncio.CancelledError())
                    return
                exc = future.exception()
                if exc is None:
                    handler, arg, passthrough = on_fulfilled, future.result(), resolve
                else:
                    handler, arg, passthrough = on_rejected, exc, reject
                if handler is None:
                    passthrough(arg)
                    return
                try:
                    result = handler(arg)
                except Exception as err:
                    reject(err)
                    return
                resolve(result)

            source.add_done_callback(settle)

        return type(self)(executor)

    def catch[U](self, on_rejected: OnRejected[U]) -> Promise[T | U]:
        """Handle rejection only."""
        return self.then(None, on_rejected)

    def finally_(self, callback: Any) -> Promise[T]:
        """
        Run callback on either outcome, passing the outcome through.

        If callback raises, the chained promise rejects with that instead.
        """

        def on_fulfilled(value: T) -> T:
            callback()
            return value

        def on_rejected(reason: BaseException) -> T:
            callback()
            raise reason

        return self.then(on_fulfilled, on_rejected)

    @classmethod
    def resolve(cls, value: Any = None) -> Self:
        """Promise already resolved with value (returned as-is if already one of ours)."""
        if isinstance(value, cls):
            return value
        return cls(lambda resolve, _reject: resolve(value))

    @classmethod
    def reject(cls, reason: object) -> Self:
        """Promise already rejected with reason."""
        return cls(lambda _resolve, reject: reject(reason))

    # ───────────────────────────────────────────────────────────────────────
    # Introspection / await
    # ───────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> PromiseState:
        """Inspecting the state does not count as handling a rejection."""
        if not self._future.done():
            return "pending"
        return "rejected" if self._rejected else "fulfilled"

    def __await__(self):
        # A cancelled awaiter must not cancel the promise for everyone else.
        return asyncio.shield(self._future).__await__()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.state}>"


__all__ = ("Promise", "PromiseState", "as_exception")
