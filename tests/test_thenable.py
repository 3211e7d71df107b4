"""
Tests for ThenableOperation — lazy start, one-shot dispatch, constructor capture.
"""
from __future__ import annotations

import asyncio

import pytest

from pledge import DoubleDispatchError, ExecutionFailure
from pledge.operation import (
    OperationDescriptor,
    OperationKind,
    Pending,
    Running,
    Settled,
    ThenableOperation,
    engine_from,
)
from pledge.promise import Promise


class PromiseX(Promise):
    pass


class PromiseY(Promise):
    pass


class Recording:
    """Minimal promise type: then() and nothing else, not awaitable."""

    def __init__(self, executor):
        self.outcome = None
        executor(self._resolve, self._reject)

    def _resolve(self, value):
        self.outcome = ("fulfilled", value)

    def _reject(self, reason):
        self.outcome = ("rejected", reason)

    def then(self, on_fulfilled=None, on_rejected=None):
        return self


def find_one(name: str = "Guns N' Roses") -> OperationDescriptor:
    return OperationDescriptor(OperationKind.FIND_ONE, "bands", {"name": name})


@pytest.fixture
def op(engine, promise_registry):
    def make(descriptor: OperationDescriptor | None = None, eng=None) -> ThenableOperation:
        return ThenableOperation(
            eng if eng is not None else engine,
            descriptor or find_one(),
            registry=promise_registry,
        )

    return make


async def _boom(descriptor):
    raise RuntimeError("backend down")


failing = engine_from(_boom)


# ═══════════════════════════════════════════════════════════════════════════════
# Lazy start
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_nothing_runs_until_observed(op, engine, promise_registry):
    q = op()

    assert engine.executed == []
    assert q.state == Pending()
    assert not q.started
    assert not isinstance(q, promise_registry.get())


@pytest.mark.asyncio
async def test_then_starts_execution(op, engine):
    q = op()
    chained = q.then(lambda doc: doc)

    assert len(engine.executed) == 1
    assert q.state == Running()
    assert await chained is None
    assert q.settled


@pytest.mark.asyncio
async def test_many_thens_dispatch_once(op, engine):
    q = op()
    results = await asyncio.gather(*(q.then(lambda doc: ("seen", doc)) for _ in range(5)))

    assert len(engine.executed) == 1
    assert results == [("seen", None)] * 5


@pytest.mark.asyncio
async def test_exec_after_then_does_not_redispatch(op, engine):
    q = op()
    chained = q.then(lambda doc: doc)
    promise = q.exec()

    assert await chained is None
    assert await promise is None
    assert len(engine.executed) == 1


@pytest.mark.asyncio
async def test_then_after_exec_does_not_redispatch(op, engine):
    q = op()
    promise = q.exec()
    chained = q.then(lambda doc: "then saw it")

    assert await promise is None
    assert await chained == "then saw it"
    assert len(engine.executed) == 1


@pytest.mark.asyncio
async def test_exec_returns_independent_true_promises(op, engine, promise_registry):
    q = op()
    first, second = q.exec(), q.exec()

    assert first is not second
    assert isinstance(first, promise_registry.get())
    assert isinstance(second, promise_registry.get())
    assert not isinstance(q, promise_registry.get())
    assert await first is None and await second is None
    assert len(engine.executed) == 1


@pytest.mark.asyncio
async def test_await_uses_the_same_execution(op, engine):
    q = op()

    assert await q is None
    assert await q is None
    assert await q.exec() is None
    assert len(engine.executed) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Settlement timing and ordering
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_subscribing_after_settlement_is_asynchronous(op):
    q = op()
    await q
    seen = []

    chained = q.then(seen.append)
    assert seen == []

    await chained
    assert seen == [None]


@pytest.mark.asyncio
async def test_post_settlement_subscribers_fire_after_pre_settlement_ones(op):
    q = op()
    order = []
    pre = [q.then(lambda _, i=i: order.append(f"pre{i}")) for i in (1, 2)]
    await q
    post = [q.then(lambda _, i=i: order.append(f"post{i}")) for i in (1, 2)]

    await asyncio.gather(*pre, *post)
    assert order == ["pre1", "pre2", "post1", "post2"]


# ═══════════════════════════════════════════════════════════════════════════════
# Constructor capture
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_constructor_captured_when_execution_starts(op, promise_registry):
    promise_registry.set(PromiseX)
    a = op()
    a.then()

    promise_registry.set(PromiseY)
    b = op()
    b.then()

    a_promise, b_promise = a.exec(), b.exec()
    assert isinstance(a_promise, PromiseX)
    assert not isinstance(a_promise, PromiseY)
    assert isinstance(b_promise, PromiseY)
    assert a.constructor is PromiseX
    await asyncio.gather(a_promise, b_promise)


@pytest.mark.asyncio
async def test_constructor_not_captured_at_construction(op, promise_registry):
    promise_registry.set(PromiseX)
    q = op()
    promise_registry.set(PromiseY)

    assert q.constructor is None
    promise = q.exec()
    assert isinstance(promise, PromiseY)
    await promise


@pytest.mark.asyncio
async def test_then_returns_true_promise_of_captured_constructor(op, promise_registry):
    promise_registry.set(PromiseX)
    q = op()
    chained = q.then(lambda doc: doc)

    assert isinstance(chained, PromiseX)
    await chained


@pytest.mark.asyncio
async def test_then_only_constructor_works_end_to_end(op, engine, promise_registry):
    promise_registry.set(Recording)
    q = op()

    promise = q.exec()
    assert isinstance(promise, Recording)
    assert await q is None

    assert promise.outcome == ("fulfilled", None)
    assert len(engine.executed) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_failure_reaches_every_subscriber(op):
    q = op(eng=failing)
    reasons = []

    early = q.then(None, reasons.append)
    with pytest.raises(ExecutionFailure):
        await q.exec()
    late = q.catch(reasons.append)
    await asyncio.gather(early, late)

    assert len(reasons) == 2
    assert reasons[0] is reasons[1]
    assert isinstance(reasons[0].error, RuntimeError)
    assert isinstance(reasons[0].__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_failure_never_escapes_synchronously(op):
    q = op(eng=failing)

    chained = q.then(lambda doc: doc)  # must not raise

    with pytest.raises(ExecutionFailure, match="backend down"):
        await chained


@pytest.mark.asyncio
async def test_failure_is_retained_for_later_subscribers(op):
    q = op(eng=failing)
    await q.catch(lambda e: None)
    assert q.settled

    with pytest.raises(ExecutionFailure) as first:
        await q.exec()
    with pytest.raises(ExecutionFailure) as second:
        await q
    assert first.value is second.value


@pytest.mark.asyncio
async def test_engine_raising_synchronously_becomes_rejection(op):
    class Exploding:
        def execute(self, descriptor):
            raise RuntimeError("sync failure")

    q = op(eng=Exploding())
    with pytest.raises(ExecutionFailure) as info:
        await q
    assert isinstance(info.value.error, RuntimeError)
    assert q.descriptor is info.value.descriptor


@pytest.mark.asyncio
async def test_handler_exception_rejects_chained(op):
    q = op()

    def explode(doc):
        raise LookupError("no band")

    with pytest.raises(LookupError):
        await q.then(explode)


@pytest.mark.asyncio
async def test_finally_runs_on_failure(op):
    q = op(eng=failing)
    calls = []

    with pytest.raises(ExecutionFailure):
        await q.finally_(lambda: calls.append("cleanup"))
    assert calls == ["cleanup"]


@pytest.mark.asyncio
async def test_second_dispatch_is_a_programming_error(op):
    q = op()
    q.exec()

    with pytest.raises(DoubleDispatchError):
        q._dispatch()
    await q


@pytest.mark.asyncio
async def test_promise_resolved_with_operation_adopts_it(op, engine):
    q = op()
    promise = Promise(lambda resolve, reject: resolve(q))

    assert await promise is None
    assert q.settled
    assert len(engine.executed) == 1
    assert isinstance(q.state, Settled)
