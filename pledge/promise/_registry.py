"""
Promise registry — the process-wide promise constructor slot.

    from pledge import promise as P

    P.set_promise_constructor(MyPromise)
    P.get_promise_constructor()   # MyPromise
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pledge._errors import InvalidConstructorError
from pledge._types import Executor, PromiseConstructor, Thenable, is_thenable
from pledge.promise._promise import Promise

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Validation — best-effort duck typing
# ═══════════════════════════════════════════════════════════════════════════════


def check_constructor(constructor: object) -> PromiseConstructor:
    """
    Validate a promise constructor.

    Classes must expose a callable `then`; nothing else is required of
    them. Factory functions cannot be inspected up front; their products
    are checked by construct().
    """
    if not callable(constructor):
        raise InvalidConstructorError(constructor, "not callable")
    if isinstance(constructor, type):
        if not callable(getattr(constructor, "then", None)):
            raise InvalidConstructorError(constructor, "instances have no then()")
    return constructor  # type: ignore[return-value]


def construct(constructor: PromiseConstructor, executor: Executor[Any]) -> Thenable[Any]:
    """Build a true promise and verify the product is a thenable."""
    promise = constructor(executor)
    if not is_thenable(promise):
        raise InvalidConstructorError(constructor, f"produced {type(promise).__name__} without then()")
    return promise


# ═══════════════════════════════════════════════════════════════════════════════
# PromiseRegistry
# ═══════════════════════════════════════════════════════════════════════════════


class PromiseRegistry:
    """
    Mutable slot holding the active promise constructor.

    Note: Only operations that start executing after set() see the new
    constructor. Running and settled operations keep the one captured at
    their own start.

    Example:
        registry = PromiseRegistry()
        registry.set(TracingPromise)

        with registry.using(OtherPromise):
            ...  # operations started here use OtherPromise
    """

    __slots__ = ("_default", "_constructor")

    def __init__(self, default: PromiseConstructor = Promise) -> None:
        self._default = check_constructor(default)
        self._constructor = self._default

    def get(self) -> PromiseConstructor:
        return self._constructor

    def set(self, constructor: PromiseConstructor) -> None:
        checked = check_constructor(constructor)
        logger.debug(
            "promise constructor %s -> %s",
            _name(self._constructor),
            _name(checked),
        )
        self._constructor = checked

    def reset(self) -> None:
        """Restore the default constructor."""
        self.set(self._default)

    @contextmanager
    def using(self, constructor: PromiseConstructor) -> Iterator[PromiseConstructor]:
        """Temporarily swap the constructor."""
        previous = self._constructor
        self.set(constructor)
        try:
            yield constructor
        finally:
            self.set(previous)

    def __repr__(self) -> str:
        return f"PromiseRegistry({_name(self._constructor)})"


def _name(constructor: object) -> str:
    return getattr(constructor, "__qualname__", repr(constructor))


# ═══════════════════════════════════════════════════════════════════════════════
# Process-wide registry
# ═══════════════════════════════════════════════════════════════════════════════

registry = PromiseRegistry()


def get_promise_constructor() -> PromiseConstructor:
    """Currently active constructor of the process-wide registry."""
    return registry.get()


def set_promise_constructor(constructor: PromiseConstructor) -> None:
    """Replace the process-wide constructor."""
    registry.set(constructor)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "PromiseRegistry",
    "registry",
    "get_promise_constructor",
    "set_promise_constructor",
    "check_constructor",
    "construct",
)
