"""
Engines — plugging a backend in, and what failures look like.

Key concepts:
- Engine = anything with execute(descriptor) -> awaitable Result
- engine_from() lifts a plain async function (exceptions become Error)
- Failures never raise at the call site; they reject every subscriber

Level 2: pledge.operation
Level 1: combinators.lift
"""

from pledge import ExecutionFailure
from pledge import api as A
from examples._infra import FlakyDriver, banner, run


driver = FlakyDriver()
bands = A.Collection("bands", driver.engine())


async def main() -> None:
    banner("Engines: function-based engine")

    print("\n1. Query through a plain async function:")
    count = await bands.count_documents({"genre": "rock"})
    print(f"   count = {count}, driver calls = {driver.calls}")

    print("\n2. Driver goes down; nothing raises until observed:")
    driver.up = False
    query = bands.count_documents()
    chained = query.then(lambda n: n, lambda e: f"recovered from: {e}")
    print(f"   chained -> {await chained!r}")

    print("\n3. The failure is retained for later subscribers:")
    try:
        await query.exec()
    except ExecutionFailure as failure:
        print(f"   {type(failure.error).__name__}: {failure}")
    print(f"   driver calls = {len(driver.calls)}")

    print("\nDone!")


if __name__ == "__main__":
    run(main)
