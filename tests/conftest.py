"""
Pytest configuration and shared fixtures for pledge tests.
"""
from __future__ import annotations

import pytest

from pledge.api import Collection, Options
from pledge.operation import MemoryEngine
from pledge.promise import PromiseRegistry, registry


@pytest.fixture(autouse=True)
def reset_global_registry():
    """Tests that touch the process-wide registry must not leak into others."""
    yield
    registry.reset()


@pytest.fixture
def engine() -> MemoryEngine:
    """Fresh in-memory engine with predictable ids."""
    counter = iter(range(1, 1_000_000))
    return MemoryEngine(id_factory=lambda: next(counter))


@pytest.fixture
def promise_registry() -> PromiseRegistry:
    """Registry private to one test."""
    return PromiseRegistry()


@pytest.fixture
def bands(engine: MemoryEngine, promise_registry: PromiseRegistry) -> Collection:
    """The `bands` collection bound to the private registry."""
    return Collection("bands", engine, Options().with_registry(promise_registry))
