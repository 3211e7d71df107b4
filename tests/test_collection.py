"""
End-to-end behaviour of Collection: eager saves, lazy queries, swapping
the promise constructor between them.
"""
from __future__ import annotations

import asyncio

import pytest

import pledge
from pledge.api import Collection, Options, Query
from pledge.operation import MemoryEngine
from pledge.promise import Promise


class PromiseX(Promise):
    pass


class PromiseY(Promise):
    pass


class CountingEngine(MemoryEngine):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def execute(self, descriptor):
        self.calls += 1
        return super().execute(descriptor)


@pytest.mark.asyncio
async def test_save_is_a_promise_find_is_not(bands, promise_registry):
    saved = bands.save({"name": "Guns N' Roses"})
    query = bands.find_one({"name": "Guns N' Roses"})

    assert isinstance(saved, promise_registry.get())
    assert isinstance(query, Query)
    assert not isinstance(query, promise_registry.get())
    await saved


@pytest.mark.asyncio
async def test_find_one_without_match_resolves_none(bands, promise_registry):
    seen = []
    query = bands.find_one({"name": "Guns N' Roses"})

    await query.then(seen.append)
    promise = query.exec()

    assert seen == [None]
    assert isinstance(promise, promise_registry.get())
    assert await promise is None


@pytest.mark.asyncio
async def test_two_thens_one_engine_call(promise_registry):
    engine = CountingEngine()
    bands = Collection("bands", engine, Options().with_registry(promise_registry))
    query = bands.find_one({"name": "Guns N' Roses"})

    await asyncio.gather(query.then(lambda doc: doc), query.then(lambda doc: doc))

    assert engine.calls == 1


@pytest.mark.asyncio
async def test_constructor_swap_between_queries(bands, promise_registry):
    promise_registry.set(PromiseX)
    first = bands.find_one({"name": "Guns N' Roses"})
    await first

    promise_registry.set(PromiseY)
    second = bands.find_one({"name": "Guns N' Roses"})
    await second

    assert isinstance(first.exec(), PromiseX)
    assert isinstance(second.exec(), PromiseY)
    saved = bands.save({"name": "Slash"})
    assert isinstance(saved, PromiseY)
    await saved


@pytest.mark.asyncio
async def test_process_wide_constructor_applies_by_default():
    bands = Collection("bands", MemoryEngine())

    pledge.set_promise_constructor(PromiseX)
    saved = bands.save({"name": "Slash"})
    query = bands.find_one({"name": "Slash"})
    query.then()

    assert isinstance(saved, PromiseX)
    assert isinstance(query.exec(), PromiseX)
    assert (await query)["name"] == "Slash"
    await saved


@pytest.mark.asyncio
async def test_save_then_find_round_trip(bands):
    saved = await bands.save({"name": "Guns N' Roses", "formed": 1985})

    found = await bands.find_by_id(saved["_id"])
    assert found == saved


@pytest.mark.asyncio
async def test_handler_may_return_another_query(bands):
    await bands.save({"name": "Guns N' Roses", "formed": 1985})
    await bands.save({"name": "Nirvana", "formed": 1987})

    later = await bands.find_one({"name": "Guns N' Roses"}).then(
        lambda gnr: bands.find({"formed": {"$gt": gnr["formed"]}}),
    )

    assert [doc["name"] for doc in later] == ["Nirvana"]


@pytest.mark.asyncio
async def test_registry_using_scopes_the_swap(bands, promise_registry):
    with promise_registry.using(PromiseY):
        query = bands.count_documents()
        query.then()

    assert promise_registry.get() is Promise
    assert isinstance(query.exec(), PromiseY)
    assert await query == 0
