"""Shared implementation for clients that keep each model as a JSON document map."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
import re
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from threads_shell._client import Client, ReadTransaction, WriteTransaction
from threads_shell._errors import AlreadyExists, NotFound, SchemaViolation, ThreadsError
from threads_shell._models import Action, StoreHandle, StoreLink, Subscription, Update
from threads_shell._query import Query

if TYPE_CHECKING:
    from collections.abc import Callable

    from threads_shell._config import ClientConfig
    from threads_shell._types import Entity, Listener, QueryLike, Schema

T = TypeVar("T")

log = logging.getLogger(__name__)

ID_FIELD = "ID"
MODEL_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def _to_json(value: Any, what: str, **context: str) -> Any:
    """Deep-copy ``value`` through JSON, rejecting anything that does not serialize."""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as exc:
        raise SchemaViolation(f"{what} is not JSON-serializable: {exc}", **context) from None


class DocumentClient(Client):
    """Client whose stores hold one ``{id: entity}`` document per model.

    Subclasses supply the blocking storage primitives; this class implements the
    model operations, transactions and listener fan-out on top of them.
    Read-modify-write of one model is serialized with an ``asyncio.Lock``.

    :param config: The configuration the client was built from.
    """

    def __init__(self, config: ClientConfig) -> None:
        self._config = config
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._listeners: dict[tuple[str, str], list[tuple[str | None, Listener, Subscription]]] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(host={self._config.host!r})"

    @property
    def config(self) -> ClientConfig:
        return self._config

    # region: storage primitives
    @abc.abstractmethod
    def _check_connection(self) -> None:
        """Raise ``ClientUnavailable`` if the storage cannot be reached."""

    @abc.abstractmethod
    def _create_store(self, store_id: str) -> None: ...

    @abc.abstractmethod
    def _store_exists(self, store_id: str) -> bool: ...

    @abc.abstractmethod
    def _load_schema(self, store_id: str, model: str) -> dict[str, Any] | None:
        """Return the model schema, or ``None`` if the model is not registered."""

    @abc.abstractmethod
    def _save_schema(self, store_id: str, model: str, schema: dict[str, Any]) -> None: ...

    @abc.abstractmethod
    def _load_entities(self, store_id: str, model: str) -> dict[str, Entity]: ...

    @abc.abstractmethod
    def _save_entities(self, store_id: str, model: str, entities: dict[str, Entity]) -> None: ...

    @abc.abstractmethod
    def _addresses(self, store_id: str) -> list[str]: ...

    async def _io(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking storage primitive off the event loop."""
        return await asyncio.to_thread(fn, *args)

    # endregion

    # region: helpers
    def _lock(self, store_id: str, model: str) -> asyncio.Lock:
        key = (store_id, model)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def _require_store(self, store_id: str) -> None:
        if not await self._io(self._store_exists, store_id):
            raise NotFound(f"Store not found: {store_id}", store_id=store_id, client=self.name)

    async def _require_model(self, store_id: str, model: str) -> dict[str, Any]:
        await self._require_store(store_id)
        schema = await self._io(self._load_schema, store_id, model)
        if schema is None:
            raise NotFound(f"Model not registered: {model}", store_id=store_id, model=model, client=self.name)
        return schema

    def _documents(self, entities: list[Entity], store_id: str, model: str) -> list[Entity]:
        docs = _to_json(list(entities), "Entities", store_id=store_id, model=model)
        for doc in docs:
            if not isinstance(doc, dict):
                raise SchemaViolation(
                    f"Entities must be JSON objects, got {type(doc).__name__}", store_id=store_id, model=model
                )
            if ID_FIELD in doc and not isinstance(doc[ID_FIELD], str):
                raise SchemaViolation(f"Entity {ID_FIELD} must be a string", store_id=store_id, model=model)
        return docs

    @staticmethod
    def _validate(schema: Mapping[str, Any], doc: Entity, store_id: str, model: str) -> None:
        for field in schema.get("required", []):
            if field not in doc:
                raise SchemaViolation(
                    f"Entity is missing required property '{field}'", store_id=store_id, model=model
                )

    def _apply_create(
        self, schema: Mapping[str, Any], staged: dict[str, Entity], docs: list[Entity], store_id: str, model: str
    ) -> list[str]:
        """Assign missing ids and insert ``docs`` into ``staged``; all or nothing."""
        ids: list[str] = []
        for doc in docs:
            if not doc.get(ID_FIELD):
                doc[ID_FIELD] = uuid.uuid4().hex
            self._validate(schema, doc, store_id, model)
            entity_id = doc[ID_FIELD]
            if entity_id in staged or entity_id in ids:
                raise AlreadyExists(f"Entity already exists: {entity_id}", store_id=store_id, model=model)
            ids.append(entity_id)
        staged.update(zip(ids, docs))
        return ids

    def _apply_save(
        self, schema: Mapping[str, Any], staged: dict[str, Entity], docs: list[Entity], store_id: str, model: str
    ) -> None:
        for doc in docs:
            entity_id = doc.get(ID_FIELD)
            if not entity_id or entity_id not in staged:
                raise NotFound(f"Entity not found: {entity_id}", store_id=store_id, model=model)
            self._validate(schema, doc, store_id, model)
        staged.update((doc[ID_FIELD], doc) for doc in docs)

    @staticmethod
    def _apply_delete(staged: dict[str, Entity], ids: list[str], store_id: str, model: str) -> None:
        missing = [entity_id for entity_id in ids if entity_id not in staged]
        if missing:
            raise NotFound(f"Entity not found: {missing[0]}", store_id=store_id, model=model)
        for entity_id in ids:
            staged.pop(entity_id, None)

    def _find(self, entities: dict[str, Entity], query: QueryLike, store_id: str, model: str) -> Any:
        if isinstance(query, str):
            if query not in entities:
                raise NotFound(f"Entity not found: {query}", store_id=store_id, model=model)
            return dict(entities[query])
        try:
            return Query.coerce(query).apply(entities.values())
        except (TypeError, ValueError, KeyError) as exc:
            raise ThreadsError(f"Invalid query: {exc}", store_id=store_id, model=model) from None

    # endregion

    # region: stores
    async def ping(self) -> None:
        await self._io(self._check_connection)

    async def new_store(self) -> StoreHandle:
        store_id = uuid.uuid4().hex
        await self._io(self._create_store, store_id)
        log.info("Created store %s on %s", store_id, self.name)
        return StoreHandle(id=store_id)

    async def start(self, store_id: str) -> None:
        await self._require_store(store_id)
        log.info("Started store %s on %s", store_id, self.name)

    async def register_schema(self, store_id: str, name: str, schema: Schema) -> None:
        if not MODEL_NAME.match(name):
            raise SchemaViolation(f"Invalid model name: {name!r}", store_id=store_id, model=name)
        if not isinstance(schema, Mapping):
            raise SchemaViolation(
                f"Schema must be a JSON object, got {type(schema).__name__}", store_id=store_id, model=name
            )
        doc = _to_json(dict(schema), "Schema", store_id=store_id, model=name)
        async with self._lock(store_id, name):
            await self._require_store(store_id)
            if await self._io(self._load_schema, store_id, name) is not None:
                raise AlreadyExists(f"Model already registered: {name}", store_id=store_id, model=name)
            await self._io(self._save_schema, store_id, name, doc)
            await self._io(self._save_entities, store_id, name, {})

    async def get_store_link(self, store_id: str) -> StoreLink:
        await self._require_store(store_id)
        return StoreLink(store_id=store_id, addresses=self._addresses(store_id))

    # endregion

    # region: models
    async def model_create(self, store_id: str, name: str, entities: list[Entity]) -> list[str]:
        docs = self._documents(entities, store_id, name)
        async with self._lock(store_id, name):
            schema = await self._require_model(store_id, name)
            staged = await self._io(self._load_entities, store_id, name)
            ids = self._apply_create(schema, staged, docs, store_id, name)
            await self._io(self._save_entities, store_id, name, staged)
        self._notify(store_id, name, [(Action.CREATE, doc[ID_FIELD], doc) for doc in docs])
        return ids

    async def model_save(self, store_id: str, name: str, entities: list[Entity]) -> None:
        docs = self._documents(entities, store_id, name)
        async with self._lock(store_id, name):
            schema = await self._require_model(store_id, name)
            staged = await self._io(self._load_entities, store_id, name)
            self._apply_save(schema, staged, docs, store_id, name)
            await self._io(self._save_entities, store_id, name, staged)
        self._notify(store_id, name, [(Action.SAVE, doc[ID_FIELD], doc) for doc in docs])

    async def model_delete(self, store_id: str, name: str, ids: list[str]) -> None:
        ids = list(ids)
        async with self._lock(store_id, name):
            await self._require_model(store_id, name)
            staged = await self._io(self._load_entities, store_id, name)
            self._apply_delete(staged, ids, store_id, name)
            await self._io(self._save_entities, store_id, name, staged)
        self._notify(store_id, name, [(Action.DELETE, entity_id, None) for entity_id in ids])

    async def model_has(self, store_id: str, name: str, ids: list[str]) -> bool:
        await self._require_model(store_id, name)
        entities = await self._io(self._load_entities, store_id, name)
        return all(entity_id in entities for entity_id in ids)

    async def model_find(self, store_id: str, name: str, query: QueryLike) -> Any:
        await self._require_model(store_id, name)
        entities = await self._io(self._load_entities, store_id, name)
        return self._find(entities, query, store_id, name)

    def read_transaction(self, store_id: str, name: str) -> ReadTransaction:
        return _DocumentReadTransaction(self, store_id, name)

    def write_transaction(self, store_id: str, name: str) -> WriteTransaction:
        return _DocumentWriteTransaction(self, store_id, name)

    # endregion

    # region: listeners
    def listen(self, store_id: str, name: str, entity_id: str | None, callback: Listener) -> Subscription:
        key = (store_id, name)
        entries = self._listeners.setdefault(key, [])

        def _remove() -> None:
            entries[:] = [entry for entry in entries if entry[2] is not subscription]

        subscription = Subscription(on_close=_remove)
        entries.append((entity_id, callback, subscription))
        return subscription

    def _notify(self, store_id: str, name: str, changes: list[tuple[Action, str, Entity | None]]) -> None:
        entries = list(self._listeners.get((store_id, name), ()))
        if not entries:
            return
        for action, entity_id, doc in changes:
            for wanted, callback, subscription in entries:
                if subscription.closed or (wanted is not None and wanted != entity_id):
                    continue
                update = Update(action=action, model=name, entity_id=entity_id, entity=dict(doc) if doc else None)
                try:
                    callback(update)
                except Exception:
                    log.exception("Listener for %s:%s failed on %s", name, wanted, action.value)

    # endregion

    def close(self) -> None:
        for entries in list(self._listeners.values()):
            for _wanted, _callback, subscription in list(entries):
                subscription.close()
        self._listeners.clear()


class _DocumentReadTransaction(ReadTransaction):
    """Reads against a snapshot taken at :meth:`start`."""

    def __init__(self, client: DocumentClient, store_id: str, model: str) -> None:
        self._client = client
        self._store_id = store_id
        self._model = model
        self._schema: dict[str, Any] | None = None
        self._staged: dict[str, Entity] | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(store_id={self._store_id!r}, model={self._model!r})"

    def _snapshot(self) -> dict[str, Entity]:
        if self._staged is None:
            raise ThreadsError("Transaction is not started", store_id=self._store_id, model=self._model)
        return self._staged

    async def start(self) -> None:
        self._schema = await self._client._require_model(self._store_id, self._model)
        self._staged = await self._client._io(self._client._load_entities, self._store_id, self._model)

    async def end(self, *, commit: bool = True) -> None:
        self._staged = None

    async def has(self, ids: list[str]) -> bool:
        staged = self._snapshot()
        return all(entity_id in staged for entity_id in ids)

    async def find(self, query: QueryLike = None) -> list[Entity]:
        return self._client._find(self._snapshot(), query, self._store_id, self._model)  # type: ignore[no-any-return]

    async def find_by_id(self, entity_id: str) -> Entity:
        return self._client._find(self._snapshot(), entity_id, self._store_id, self._model)  # type: ignore[no-any-return]


class _DocumentWriteTransaction(_DocumentReadTransaction, WriteTransaction):
    """Holds the model lock from :meth:`start` to :meth:`end`; writes land on commit."""

    def __init__(self, client: DocumentClient, store_id: str, model: str) -> None:
        super().__init__(client, store_id, model)
        self._changes: list[tuple[Action, str, Entity | None]] = []
        self._lock = client._lock(store_id, model)

    async def start(self) -> None:
        await self._lock.acquire()
        try:
            await super().start()
        except BaseException:
            self._lock.release()
            raise
        self._changes = []

    async def end(self, *, commit: bool = True) -> None:
        if self._staged is None:
            return
        try:
            if commit and self._changes:
                await self._client._io(self._client._save_entities, self._store_id, self._model, self._staged)
        finally:
            changes, self._changes = self._changes, []
            self._staged = None
            self._lock.release()
        if commit:
            self._client._notify(self._store_id, self._model, changes)

    async def create(self, entities: list[Entity]) -> list[str]:
        staged = self._snapshot()
        docs = self._client._documents(entities, self._store_id, self._model)
        ids = self._client._apply_create(self._schema or {}, staged, docs, self._store_id, self._model)
        self._changes.extend((Action.CREATE, doc[ID_FIELD], doc) for doc in docs)
        return ids

    async def save(self, entities: list[Entity]) -> None:
        staged = self._snapshot()
        docs = self._client._documents(entities, self._store_id, self._model)
        self._client._apply_save(self._schema or {}, staged, docs, self._store_id, self._model)
        self._changes.extend((Action.SAVE, doc[ID_FIELD], doc) for doc in docs)

    async def delete(self, ids: list[str]) -> None:
        ids = list(ids)
        staged = self._snapshot()
        self._client._apply_delete(staged, ids, self._store_id, self._model)
        self._changes.extend((Action.DELETE, entity_id, None) for entity_id in ids)
