"""Database and Collection: pass-through wrappers bound to one store handle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from threads_shell._delegate import delegate

if TYPE_CHECKING:
    from collections.abc import Iterator

    from threads_shell._client import Client, ReadTransaction, WriteTransaction
    from threads_shell._models import StoreHandle, StoreLink, Subscription
    from threads_shell._types import Entity, Listener, QueryLike, Schema

log = logging.getLogger(__name__)


class Collection:
    """One registered model of a database.

    Every operation is forwarded to the client with the owning store's id and
    the model name; payloads and results pass through untouched.

    :param db: The owning database.
    :param name: The model name.
    :param schema: The JSON schema the model was registered with.
    """

    def __init__(self, db: Database, name: str, schema: Schema) -> None:
        self._db = db
        self._name = name
        self._schema = schema

    def __repr__(self) -> str:
        return f"Collection(store={self._db.name!r}, name={self._name!r})"

    @property
    def db(self) -> Database:
        return self._db

    @property
    def name(self) -> str:
        return self._name

    @property
    def schema(self) -> Schema:
        return self._schema

    async def _forward(self, operation: str, payload: Any) -> Any:
        method = getattr(self._db.client, operation)
        return await delegate(
            method(self._db.id, self._name, payload),
            operation=operation,
            timeout=self._db.timeout,
            store_id=self._db.id,
            model=self._name,
        )

    async def create(self, entities: list[Entity]) -> list[str]:
        """Create entities and return their ids."""
        return await self._forward("model_create", entities)  # type: ignore[no-any-return]

    async def save(self, entities: list[Entity]) -> None:
        """Save changes to existing entities."""
        await self._forward("model_save", entities)

    async def delete(self, ids: list[str]) -> None:
        """Delete entities by id."""
        await self._forward("model_delete", ids)

    async def has(self, ids: list[str]) -> bool:
        """Return ``True`` if the collection holds every id."""
        return await self._forward("model_has", ids)  # type: ignore[no-any-return]

    async def find(self, query: QueryLike = None) -> Any:
        """Find entities matching a query (a :class:`~threads_shell.Query` or its dict form)."""
        return await self._forward("model_find", query)

    async def get(self, entity_id: str) -> Any:
        """Get one entity by id."""
        return await self._forward("model_find", entity_id)

    def read_transaction(self) -> ReadTransaction:
        return self._db.client.read_transaction(self._db.id, self._name)

    def write_transaction(self) -> WriteTransaction:
        return self._db.client.write_transaction(self._db.id, self._name)

    def listen(self, entity_id: str | None, callback: Listener) -> Subscription:
        """Call ``callback`` for every update to ``entity_id`` (``None``: every entity)."""
        log.info("Listening to %s:%s", self._name, entity_id)
        return self._db.client.listen(self._db.id, self._name, entity_id, callback)


class Database:
    """Wrapper around one store handle.

    Collections created through :meth:`create_collection` are reachable as
    ``db["name"]`` and, when the name is a valid identifier, ``db.name``.

    :param client: The shared client.
    :param handle: The store handle owned by the registry.
    :param timeout: Seconds each client call may take (``None``: unbounded).
    """

    def __init__(self, client: Client, handle: StoreHandle, *, timeout: float | None = None) -> None:
        self._client = client
        self._handle = handle
        self._timeout = timeout
        self._collections: dict[str, Collection] = {}

    def __repr__(self) -> str:
        return f"Database(name={self.name!r}, id={self.id!r}, collections={list(self._collections)!r})"

    @property
    def client(self) -> Client:
        return self._client

    @property
    def handle(self) -> StoreHandle:
        return self._handle

    @property
    def id(self) -> str:
        return self._handle.id

    @property
    def name(self) -> str | None:
        return self._handle.name

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def collections(self) -> dict[str, Collection]:
        """Registered collections by name (a copy)."""
        return dict(self._collections)

    async def create_collection(self, name: str, schema: Schema) -> Collection:
        """Register ``schema`` under ``name`` and return the new collection.

        Nothing is recorded locally unless the client accepts the schema.
        """
        await delegate(
            self._client.register_schema(self.id, name, schema),
            operation="register_schema",
            timeout=self._timeout,
            store_id=self.id,
            model=name,
        )
        collection = Collection(self, name, schema)
        self._collections[name] = collection
        log.info("Registered collection '%s' in store '%s'", name, self.name)
        return collection

    async def get_links(self) -> StoreLink:
        """Return the store's addresses."""
        return await delegate(
            self._client.get_store_link(self.id),
            operation="get_store_link",
            timeout=self._timeout,
            store_id=self.id,
        )

    def __getitem__(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            available = sorted(self._collections)
            raise KeyError(f"Unknown collection '{name}'. Available collections: {available}") from None

    def __getattr__(self, name: str) -> Collection:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._collections[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute or collection {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._collections

    def __iter__(self) -> Iterator[Collection]:
        return iter(list(self._collections.values()))

    def __dir__(self) -> list[str]:
        return [*super().__dir__(), *(n for n in self._collections if n.isidentifier())]
