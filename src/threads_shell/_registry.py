"""Registry: maps store names to handles and tracks the active store."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from threads_shell._delegate import delegate
from threads_shell._errors import AlreadyExists
from threads_shell._models import StoreHandle

if TYPE_CHECKING:
    from collections.abc import Iterator

    from threads_shell._client import Client

log = logging.getLogger(__name__)


class Registry:
    """Name-to-handle registry with create-or-reuse activation.

    Activating a known name never calls the client. Activating an unknown
    name performs exactly one store creation (or resume) call, even when
    several activations of that name are in flight at once.

    :param client: The client stores are created and resumed through.
    :param timeout: Seconds each client call may take (``None``: unbounded).
    """

    def __init__(self, client: Client, *, timeout: float | None = None) -> None:
        self._client = client
        self._timeout = timeout
        self._handles: dict[str, StoreHandle] = {}
        self._pending: dict[str, asyncio.Task[StoreHandle]] = {}
        self._active: StoreHandle | None = None

    def __repr__(self) -> str:
        active = self._active.name if self._active is not None else None
        return f"Registry(client={self._client.name!r}, stores={self.list()!r}, active={active!r})"

    @property
    def client(self) -> Client:
        return self._client

    async def activate(self, name: str, store_id: str | None = None) -> StoreHandle:
        """Make ``name`` the active store, creating or resuming it if unknown.

        :param name: Local store name.
        :param store_id: Id of an existing remote store to resume under ``name``.
        :raises AlreadyExists: If ``name`` is already bound to a different id.
        :raises ValueError: If ``name`` is empty.
        """
        if not name:
            raise ValueError("Store name must be a non-empty string")

        handle = self._handles.get(name)
        if handle is None:
            task = self._pending.get(name)
            if task is None or task.done():
                task = asyncio.ensure_future(self._open(name, store_id))
                self._pending[name] = task
            # A joined creation may have been started for another id.
            handle = await asyncio.shield(task)

        if store_id is not None and store_id != handle.id:
            raise AlreadyExists(
                f"Store '{name}' is already bound to id {handle.id!r}",
                store_id=store_id,
                client=self._client.name,
            )
        self._active = handle
        return handle

    async def _open(self, name: str, store_id: str | None) -> StoreHandle:
        """Create or resume the remote store and insert its handle on success."""
        try:
            if store_id is None:
                created = await delegate(self._client.new_store(), operation="new_store", timeout=self._timeout)
                handle = created.annotate(name)
                log.info("Created store '%s' (id=%s)", name, handle.id)
            else:
                await delegate(
                    self._client.start(store_id), operation="start", timeout=self._timeout, store_id=store_id
                )
                handle = StoreHandle(id=store_id, name=name)
                log.info("Resumed store '%s' (id=%s)", name, handle.id)
            self._handles[name] = handle
            return handle
        finally:
            self._pending.pop(name, None)

    def active(self) -> StoreHandle | None:
        """Return the active store handle, or ``None`` before the first activation."""
        return self._active

    def get(self, name: str) -> StoreHandle | None:
        """Look up a handle by name without changing the active store."""
        return self._handles.get(name)

    def exists(self, name: str) -> bool:
        return name in self._handles

    def list(self) -> list[str]:
        """Return known store names in insertion order."""
        return list(self._handles)

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[StoreHandle]:
        return iter(list(self._handles.values()))
