"""
Core types for pledge.

Re-exports from kungfu + promise contract aliases.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from collections.abc import Callable

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Executor Contract
# ═══════════════════════════════════════════════════════════════════════════════

type Resolve[T] = Callable[[T], None]
"""Settle a promise with a value (or adopt a thenable)."""

type Reject = Callable[[object], None]
"""Settle a promise with a failure reason."""

type Executor[T] = Callable[[Resolve[T], Reject], None]
"""The two-argument function a promise constructor runs synchronously."""

type OnFulfilled[T, U] = Callable[[T], U]
type OnRejected[U] = Callable[[BaseException], U]

# ═══════════════════════════════════════════════════════════════════════════════
# Thenable — the capability every async result shares
# ═══════════════════════════════════════════════════════════════════════════════


@runtime_checkable
class Thenable[T](Protocol):
    """
    Anything exposing `.then(on_fulfilled, on_rejected)`.

    Both Query objects and true promises satisfy it; only the latter are
    instances of the registered promise constructor.
    """

    def then(
        self,
        on_fulfilled: OnFulfilled[T, Any] | None = None,
        on_rejected: OnRejected[Any] | None = None,
    ) -> Thenable[Any]: ...


type PromiseConstructor = Callable[[Executor[Any]], Thenable[Any]]
"""A class (or factory) taking an executor and producing a thenable."""


def is_thenable(value: object) -> bool:
    """Duck-typed check; classes themselves are never thenables."""
    if isinstance(value, type):
        return False
    return callable(getattr(value, "then", None))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Executor contract
    "Resolve",
    "Reject",
    "Executor",
    "OnFulfilled",
    "OnRejected",
    # Thenable
    "Thenable",
    "PromiseConstructor",
    "is_thenable",
)
