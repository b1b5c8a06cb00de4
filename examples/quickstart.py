"""Quickstart: create a store, register a collection, and work with entities.

Uses the on-disk local client, so the store survives between runs of the
same temporary directory.
"""

from __future__ import annotations

import asyncio
import tempfile

from threads_shell import Database, Registry, Where, get_local_client


async def main(root: str) -> None:
    client = get_local_client(root)
    registry = Registry(client, timeout=5.0)

    handle = await registry.activate("people")
    db = Database(client, handle)
    print(f"Using {handle.name} (id={handle.id})")

    people = await db.create_collection(
        "Person",
        {"title": "Person", "type": "object", "required": ["firstName"]},
    )
    adam_id, eve_id = await people.create(
        [
            {"firstName": "Adam", "lastName": "Doe", "age": 21},
            {"firstName": "Eve", "lastName": "Doe", "age": 23},
        ]
    )
    print(f"Created: {adam_id}, {eve_id}")

    # --- Queries ---
    print(f"Adam: {await people.find(Where('firstName').eq('Adam'))}")
    print(f"Over 21: {await people.find(Where('age').gt(21))}")
    print(f"By age, oldest first: {await people.find(Where('lastName').eq('Doe').order_by_desc('age'))}")

    # --- Update and delete ---
    adam = await people.get(adam_id)
    adam["age"] = 22
    await people.save([adam])
    await people.delete([eve_id])
    print(f"Has Eve? {await people.has([eve_id])}")

    print(f"Links: {(await db.get_links()).addresses}")
    client.close()


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(main(tmp))
    print("\nDone!")
