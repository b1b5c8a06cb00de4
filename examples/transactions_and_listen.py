"""Transactions and live updates.

Write transactions stage changes and apply them when the block exits
cleanly; listeners receive an Update for every committed change.
"""

from __future__ import annotations

import asyncio

from threads_shell import Database, Registry, Update, get_local_client


def on_update(update: Update) -> None:
    print(f"  update: {update.action.value} {update.model}:{update.entity_id}")


async def main() -> None:
    client = get_local_client()
    registry = Registry(client)
    db = Database(client, await registry.activate("people"))
    people = await db.create_collection("Person", {"title": "Person"})

    subscription = people.listen(None, on_update)

    print("Committed transaction:")
    async with people.write_transaction() as tx:
        [adam_id] = await tx.create([{"firstName": "Adam"}])
        await tx.create([{"firstName": "Eve"}])

    print("Aborted transaction:")
    try:
        async with people.write_transaction() as tx:
            await tx.delete([adam_id])
            raise RuntimeError("changed my mind")
    except RuntimeError as exc:
        print(f"  rolled back: {exc}")
    print(f"  Adam still there? {await people.has([adam_id])}")

    print("Read transaction:")
    async with people.read_transaction() as rtx:
        print(f"  {len(await rtx.find())} people in the snapshot")

    subscription.close()
    client.close()


if __name__ == "__main__":
    asyncio.run(main())
    print("\nDone!")
