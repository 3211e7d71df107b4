"""
Error hierarchy.

Everything pledge raises derives from PledgeError. Engine failures never
raise synchronously: they travel as ExecutionFailure through rejection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pledge.operation._types import OperationDescriptor


class PledgeError(Exception):
    """Base class for pledge errors."""


@dataclass(eq=False)
class InvalidConstructorError(PledgeError, TypeError):
    """Value registered as promise constructor lacks the executor/then surface."""

    constructor: object
    reason: str

    def __str__(self) -> str:
        return f"{self.constructor!r} is not a promise constructor: {self.reason}"


@dataclass(eq=False)
class ExecutionFailure(PledgeError):
    """
    Failure reported by an execution engine.

    Note: error may be any value (engines return Error(E) with arbitrary E).
    When it is an exception, it is chained as __cause__.
    """

    error: object
    descriptor: OperationDescriptor | None = None

    def __post_init__(self) -> None:
        if isinstance(self.error, BaseException):
            self.__cause__ = self.error

    def __str__(self) -> str:
        if self.descriptor is None:
            return str(self.error)
        return f"{self.descriptor.label} failed: {self.error}"


@dataclass(eq=False)
class DoubleDispatchError(PledgeError, RuntimeError):
    """An operation tried to reach its engine twice. Programming error."""

    descriptor: OperationDescriptor

    def __str__(self) -> str:
        return f"{self.descriptor.label} was already dispatched"


@dataclass(eq=False)
class OperationStartedError(PledgeError):
    """Descriptor change requested after execution started."""

    descriptor: OperationDescriptor
    change: str

    def __str__(self) -> str:
        return f"cannot apply {self.change}() to {self.descriptor.label}: already started"


__all__ = (
    "PledgeError",
    "InvalidConstructorError",
    "ExecutionFailure",
    "DoubleDispatchError",
    "OperationStartedError",
)
