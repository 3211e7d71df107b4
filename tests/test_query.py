"""
Tests for the Query builder and OperationDescriptor.
"""
from __future__ import annotations

from types import MappingProxyType

import pytest
import pytest_asyncio

from pledge import OperationStartedError
from pledge.operation import OperationDescriptor, OperationKind


@pytest_asyncio.fixture
async def seeded(bands):
    await bands.insert_many([
        {"name": "Guns N' Roses", "formed": 1985, "genre": "rock"},
        {"name": "Velvet Revolver", "formed": 2002, "genre": "rock"},
        {"name": "Slash's Snakepit", "formed": 1994, "genre": "rock"},
        {"name": "Nirvana", "formed": 1987, "genre": "grunge"},
    ])
    return bands


# ═══════════════════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════════════════


def test_builder_refines_descriptor(bands):
    q = (
        bands.find({"genre": "rock"})
        .where(formed={"$gt": 1990})
        .select("name formed")
        .sort("-formed")
        .limit(5)
        .skip(1)
    )

    d = q.descriptor
    assert d.kind is OperationKind.FIND
    assert dict(d.criteria) == {"genre": "rock", "formed": {"$gt": 1990}}
    assert d.projection == ("name", "formed")
    assert d.sort == (("formed", -1),)
    assert d.limit == 5
    assert d.skip == 1


@pytest.mark.parametrize(
    ("spec", "expected"),
    [
        ("-formed name", (("formed", -1), ("name", 1))),
        (("formed", -1), (("formed", -1),)),
        ({"formed": 1, "name": -1}, (("formed", 1), ("name", -1))),
    ],
)
def test_sort_spec_forms(bands, spec, expected):
    assert bands.find().sort(spec).descriptor.sort == expected


def test_unsupported_sort_spec(bands):
    with pytest.raises(TypeError):
        bands.find().sort(42)


def test_negative_limit_rejected(bands):
    with pytest.raises(ValueError):
        bands.find().limit(-1)


@pytest.mark.asyncio
async def test_builder_after_start_raises(bands, engine):
    q = bands.find({"genre": "rock"})
    q.then()

    with pytest.raises(OperationStartedError, match="limit"):
        q.limit(1)
    assert q.descriptor.limit is None
    await q
    assert engine.executed == [q.descriptor]


@pytest.mark.asyncio
async def test_queries_are_not_running_until_observed(seeded, engine):
    before = len(engine.executed)
    q = seeded.find().sort("name")

    assert len(engine.executed) == before
    names = [doc["name"] for doc in await q]
    assert names == ["Guns N' Roses", "Nirvana", "Slash's Snakepit", "Velvet Revolver"]


@pytest.mark.asyncio
async def test_full_query_pipeline(seeded):
    docs = await seeded.find({"genre": "rock"}).sort("-formed").skip(1).limit(1).select("name")

    assert docs == [{"_id": 3, "name": "Slash's Snakepit"}]


# ═══════════════════════════════════════════════════════════════════════════════
# Descriptor
# ═══════════════════════════════════════════════════════════════════════════════


def test_descriptor_freezes_caller_data():
    criteria = {"name": {"$in": ["Slash"]}}
    d = OperationDescriptor(OperationKind.FIND, "bands", criteria)
    criteria["name"]["$in"].append("Axl")

    assert isinstance(d.criteria, MappingProxyType)
    assert d.criteria["name"]["$in"] == ("Slash",)


def test_descriptor_with_methods_return_new_instances():
    d = OperationDescriptor(OperationKind.FIND, "bands")
    narrowed = d.with_criteria({"genre": "rock"}).with_limit(3)

    assert dict(d.criteria) == {}
    assert d.limit is None
    assert dict(narrowed.criteria) == {"genre": "rock"}
    assert narrowed.limit == 3


def test_descriptor_label():
    assert OperationDescriptor(OperationKind.COUNT, "bands").label == "bands.count_documents"


def test_write_kinds():
    assert OperationKind.SAVE.is_write
    assert OperationKind.DELETE_MANY.is_write
    assert not OperationKind.FIND_ONE.is_write
