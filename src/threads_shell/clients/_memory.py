"""In-process client: stores live in dictionaries for the lifetime of the client."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, TypeVar

from threads_shell._config import ClientConfig
from threads_shell.clients._base import DocumentClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from threads_shell._types import Entity

T = TypeVar("T")


class MemoryClient(DocumentClient):
    """Client keeping every store in memory. Nothing survives :meth:`close`.

    :param config: Optional configuration; defaults to ``ClientConfig(type="memory")``.
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        config = config or ClientConfig(type="memory")
        if not config.host:
            config = ClientConfig(type=config.type, host="memory://", options=config.options)
        super().__init__(config)
        self._schemas: dict[str, dict[str, dict[str, Any]]] = {}
        self._entities: dict[str, dict[str, dict[str, Entity]]] = {}

    @property
    def name(self) -> str:
        return "memory"

    async def _io(self, fn: Callable[..., T], *args: Any) -> T:
        return fn(*args)

    def _check_connection(self) -> None:
        pass

    def _create_store(self, store_id: str) -> None:
        self._schemas[store_id] = {}
        self._entities[store_id] = {}

    def _store_exists(self, store_id: str) -> bool:
        return store_id in self._schemas

    def _load_schema(self, store_id: str, model: str) -> dict[str, Any] | None:
        schema = self._schemas[store_id].get(model)
        return copy.deepcopy(schema) if schema is not None else None

    def _save_schema(self, store_id: str, model: str, schema: dict[str, Any]) -> None:
        self._schemas[store_id][model] = copy.deepcopy(schema)

    def _load_entities(self, store_id: str, model: str) -> dict[str, Entity]:
        return copy.deepcopy(self._entities[store_id].get(model, {}))

    def _save_entities(self, store_id: str, model: str, entities: dict[str, Entity]) -> None:
        self._entities[store_id][model] = copy.deepcopy(entities)

    def _addresses(self, store_id: str) -> list[str]:
        return [f"memory://{store_id}"]

    def close(self) -> None:
        super().close()
        self._schemas.clear()
        self._entities.clear()
