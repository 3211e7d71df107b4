"""
Promises — eager saves, lazy queries, swapping the constructor.

Key concepts:
- save() is already running and IS a promise of the active constructor
- find_one() is a Query: thenable, not a promise, not running
- exec() turns a query into a real promise, always over one execution

Level 3: pledge.api
Level 2: pledge.operation
Level 1: pledge.promise
"""

from pledge import api as A
from pledge import operation as O
from pledge import promise as P
from examples._infra import AuditPromise, TracingPromise, banner, run


engine = O.MemoryEngine(latency=0.01)
bands = A.Collection("bands", engine, A.Options().with_debug())


async def main() -> None:
    banner("Promises: eager writes vs. lazy reads")

    print("\n1. save() starts immediately:")
    saved = bands.save({"name": "Guns N' Roses", "formed": 1985})
    print(f"   isinstance(saved, Promise) = {isinstance(saved, P.get_promise_constructor())}")
    print(f"   engine calls so far = {len(engine.executed)}")
    doc = await saved
    print(f"   saved _id={doc['_id']}")

    print("\n2. find_one() waits until observed:")
    query = bands.find_one({"name": "Slash"})
    print(f"   {query!r}")
    print(f"   isinstance(query, Promise) = {isinstance(query, P.get_promise_constructor())}")
    found = await query.then(lambda d: d)
    print(f"   found = {found}")

    print("\n3. exec() reuses the same execution:")
    before = len(engine.executed)
    promise = query.exec()
    print(f"   exec() -> {promise!r}, extra engine calls = {len(engine.executed) - before}")
    print(f"   await -> {await promise}")

    banner("Promises: swapping the constructor")

    P.set_promise_constructor(TracingPromise)
    traced = bands.find_one({"name": "Guns N' Roses"})
    name = await traced.then(lambda d: d["name"])
    print(f"   traced query resolved {name!r}")

    P.set_promise_constructor(AuditPromise)
    print(f"   old query still hands out {type(traced.exec()).__name__}")
    slash = bands.save({"name": "Slash"})
    print(f"   new save hands out {type(slash).__name__}")
    await slash

    with P.registry.using(TracingPromise):
        scoped = bands.count_documents()
        print(f"   count = {await scoped}")
    print(f"   after with-block: {P.get_promise_constructor().__name__}")

    P.registry.reset()
    print("\nDone!")


if __name__ == "__main__":
    run(main)
