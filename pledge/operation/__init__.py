"""
Operation — deferred and eager execution over an engine.

    from pledge import operation as O

    query = O.ThenableOperation(engine, descriptor)   # not running yet
    promise = O.eager(engine, save_descriptor)        # already running
"""

from __future__ import annotations

from pledge.operation._types import (
    OperationKind,
    OperationDescriptor,
    SortKey,
    Pending,
    Running,
    Settled,
    ExecutionState,
)
from pledge.operation._engine import (
    Engine,
    FunctionalEngine,
    engine_from,
    Outcome,
    dispatch,
)
from pledge.operation._thenable import ThenableOperation
from pledge.operation._eager import eager
from pledge.operation._memory import MemoryEngine, EngineError, EngineErrorKind

__all__ = (
    "OperationKind",
    "OperationDescriptor",
    "SortKey",
    "Pending",
    "Running",
    "Settled",
    "ExecutionState",
    "Engine",
    "FunctionalEngine",
    "engine_from",
    "Outcome",
    "dispatch",
    "ThenableOperation",
    "eager",
    "MemoryEngine",
    "EngineError",
    "EngineErrorKind",
)
