"""
pledge — deferred execution with a pluggable promise type.

    from pledge import promise as P     # Promise + constructor registry
    from pledge import operation as O   # Deferred / eager operations, engines
    from pledge import api as A         # Collections and queries

    bands = A.Collection("bands", O.MemoryEngine())
    saved = bands.save({"name": "Guns N' Roses"})   # running, true promise
    query = bands.find_one({"name": "Slash"})       # not running, thenable
"""

from pledge import promise
from pledge import operation
from pledge import api
from pledge._types import (
    Thenable,
    PromiseConstructor,
    Executor,
    is_thenable,
)
from pledge._errors import (
    PledgeError,
    InvalidConstructorError,
    ExecutionFailure,
    DoubleDispatchError,
    OperationStartedError,
)
from pledge.promise import (
    Promise,
    get_promise_constructor,
    set_promise_constructor,
)
from pledge.api import Collection, Query, Options

__version__ = "0.1.0"

__all__ = (
    "promise",
    "operation",
    "api",
    "Thenable",
    "PromiseConstructor",
    "Executor",
    "is_thenable",
    "PledgeError",
    "InvalidConstructorError",
    "ExecutionFailure",
    "DoubleDispatchError",
    "OperationStartedError",
    "Promise",
    "get_promise_constructor",
    "set_promise_constructor",
    "Collection",
    "Query",
    "Options",
)
