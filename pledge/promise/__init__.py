"""
Promise — the default constructor and the registry that can replace it.

    from pledge import promise as P

    P.set_promise_constructor(MyPromise)
    assert isinstance(users.save(doc), MyPromise)
"""

from __future__ import annotations

from pledge.promise._promise import Promise, PromiseState, as_exception
from pledge.promise._registry import (
    PromiseRegistry,
    registry,
    get_promise_constructor,
    set_promise_constructor,
    check_constructor,
    construct,
)

__all__ = (
    "Promise",
    "PromiseState",
    "as_exception",
    "PromiseRegistry",
    "registry",
    "get_promise_constructor",
    "set_promise_constructor",
    "check_constructor",
    "construct",
)
