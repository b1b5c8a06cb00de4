"""Client abstract base class: the contract the registry and wrappers delegate to."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from types import TracebackType

    from threads_shell._config import ClientConfig
    from threads_shell._models import StoreHandle, StoreLink, Subscription
    from threads_shell._types import Entity, Listener, QueryLike, Schema


class ReadTransaction(abc.ABC):
    """Read-only view of one model, used as ``async with``."""

    async def __aenter__(self) -> ReadTransaction:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.end(commit=exc_type is None)

    @abc.abstractmethod
    async def start(self) -> None:
        """Begin the transaction."""

    @abc.abstractmethod
    async def end(self, *, commit: bool = True) -> None:
        """Finish the transaction."""

    @abc.abstractmethod
    async def has(self, ids: list[str]) -> bool:
        """Return ``True`` if every id exists."""

    @abc.abstractmethod
    async def find(self, query: QueryLike = None) -> list[Entity]:
        """Return entities matching ``query``."""

    @abc.abstractmethod
    async def find_by_id(self, entity_id: str) -> Entity:
        """Return one entity.

        :raises NotFound: If the entity does not exist.
        """


class WriteTransaction(ReadTransaction):
    """Read-write view of one model. Writes apply when the transaction ends with ``commit``."""

    async def __aenter__(self) -> WriteTransaction:
        await self.start()
        return self

    @abc.abstractmethod
    async def create(self, entities: list[Entity]) -> list[str]:
        """Stage new entities and return their ids."""

    @abc.abstractmethod
    async def save(self, entities: list[Entity]) -> None:
        """Stage updates to existing entities."""

    @abc.abstractmethod
    async def delete(self, ids: list[str]) -> None:
        """Stage deletion of existing entities."""


class Client(abc.ABC):
    """Abstract base class for all clients.

    Every client must implement all abstract methods. Client-native
    exceptions must never leak; they must be mapped to ``threads_shell`` errors.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Identifier for this client type (e.g. ``'memory'``, ``'s3'``)."""

    @property
    @abc.abstractmethod
    def config(self) -> ClientConfig:
        """The configuration this client was built from; ``config.host`` is its address."""

    @abc.abstractmethod
    async def ping(self) -> None:
        """Check that the client can reach its backing service.

        :raises ClientUnavailable: If it cannot.
        """

    @abc.abstractmethod
    async def new_store(self) -> StoreHandle:
        """Create a new store and return its (unnamed) handle."""

    @abc.abstractmethod
    async def start(self, store_id: str) -> None:
        """Resume an existing store.

        :raises NotFound: If no store with this id exists.
        """

    @abc.abstractmethod
    async def register_schema(self, store_id: str, name: str, schema: Schema) -> None:
        """Register a model under ``name`` validated by the JSON ``schema``.

        :raises AlreadyExists: If the model is already registered.
        :raises SchemaViolation: If ``schema`` is not a JSON object.
        """

    @abc.abstractmethod
    async def model_create(self, store_id: str, name: str, entities: list[Entity]) -> list[str]:
        """Create entities, returning their ids.

        :raises AlreadyExists: If an entity id is taken.
        :raises SchemaViolation: If an entity is rejected by the model schema.
        """

    @abc.abstractmethod
    async def model_save(self, store_id: str, name: str, entities: list[Entity]) -> None:
        """Replace existing entities.

        :raises NotFound: If an entity does not exist.
        """

    @abc.abstractmethod
    async def model_delete(self, store_id: str, name: str, ids: list[str]) -> None:
        """Delete entities by id.

        :raises NotFound: If an entity does not exist.
        """

    @abc.abstractmethod
    async def model_has(self, store_id: str, name: str, ids: list[str]) -> bool:
        """Return ``True`` if every id exists."""

    @abc.abstractmethod
    async def model_find(self, store_id: str, name: str, query: QueryLike) -> Any:
        """Find entities.

        A string ``query`` is an entity id and returns that entity. Anything else
        is a query payload and returns the list of matches.

        :raises NotFound: If a string id does not exist.
        """

    @abc.abstractmethod
    def read_transaction(self, store_id: str, name: str) -> ReadTransaction:
        """Return a read-only transaction over one model."""

    @abc.abstractmethod
    def write_transaction(self, store_id: str, name: str) -> WriteTransaction:
        """Return a read-write transaction over one model."""

    @abc.abstractmethod
    def listen(self, store_id: str, name: str, entity_id: str | None, callback: Listener) -> Subscription:
        """Call ``callback`` with every :class:`Update` to ``entity_id``.

        ``entity_id=None`` listens to every entity of the model.
        """

    @abc.abstractmethod
    async def get_store_link(self, store_id: str) -> StoreLink:
        """Return the addresses of a store.

        :raises NotFound: If no store with this id exists.
        """

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""
