"""Error handling: every failure is a ThreadsError subclass carrying store and model context."""

from __future__ import annotations

import asyncio
import tempfile

from threads_shell import (
    AlreadyExists,
    Database,
    NotFound,
    OperationTimeout,
    Registry,
    SchemaViolation,
    ThreadsError,
    get_local_client,
)


async def main(root: str) -> None:
    client = get_local_client(root)
    registry = Registry(client)
    db = Database(client, await registry.activate("people"))
    people = await db.create_collection("Person", {"required": ["firstName"]})

    # --- Unknown entity ---
    try:
        await people.get("missing")
    except NotFound as exc:
        print(f"NotFound: {exc}")

    # --- Schema check ---
    try:
        await people.create([{"lastName": "Doe"}])
    except SchemaViolation as exc:
        print(f"SchemaViolation: {exc}")

    # --- Name bound to another store ---
    try:
        await registry.activate("people", "0" * 32)
    except AlreadyExists as exc:
        print(f"AlreadyExists: {exc}")

    # --- Resume a store that does not exist ---
    try:
        await registry.activate("archive", "0" * 32)
    except NotFound as exc:
        print(f"NotFound: {exc}")
    print(f"Known stores: {registry.list()}")

    # --- Timeouts: disk I/O runs in a worker thread, so a tiny deadline expires ---
    slow = Database(client, registry.active(), timeout=1e-9)  # type: ignore[arg-type]
    try:
        await slow.get_links()
    except OperationTimeout as exc:
        print(f"OperationTimeout: {exc}")
    except ThreadsError as exc:
        print(f"Other error: {exc!r}")
    else:
        print("Finished before the deadline")

    client.close()


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(main(tmp))
    print("\nDone!")
