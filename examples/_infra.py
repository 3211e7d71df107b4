"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from pledge import operation as O
from pledge import promise as P
from pledge.operation import OperationDescriptor, OperationKind


# Errors
@dataclass(frozen=True, slots=True)
class DriverDown(Exception):
    host: str

    def __str__(self) -> str:
        return f"driver at {self.host} is not answering"


# Promises
class TracingPromise(P.Promise):
    """Prints every chained handler registration."""

    def then(self, on_fulfilled=None, on_rejected=None):
        print(f"  [trace] then() on {type(self).__name__}")
        return super().then(on_fulfilled, on_rejected)


class AuditPromise(P.Promise):
    pass


# Fake driver
@dataclass(slots=True)
class FlakyDriver:
    """Counts-only backend that can be switched off."""

    host: str = "db-1"
    up: bool = True
    calls: list[str] = field(default_factory=list)

    async def run(self, d: OperationDescriptor) -> Any:
        await asyncio.sleep(0.01)
        self.calls.append(d.label)
        if not self.up:
            raise DriverDown(self.host)
        if d.kind is OperationKind.COUNT:
            return 3
        return None

    def engine(self) -> O.FunctionalEngine[Any, Exception]:
        return O.engine_from(self.run)


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    logging.basicConfig(level=logging.INFO, format="  [%(name)s] %(message)s")
    asyncio.run(main())
