"""Immutable handle and event models."""

from __future__ import annotations

import dataclasses
import enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclasses.dataclass(frozen=True, eq=False)
class StoreHandle:
    """Local representation of a remote store.

    :param id: Store identifier issued by the client.
    :param name: Local annotation chosen by the caller, unknown to the client.
    """

    id: str
    name: str | None = None

    def annotate(self, name: str) -> StoreHandle:
        """Return a copy of this handle carrying ``name``."""
        return dataclasses.replace(self, name=name)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StoreHandle):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)


@dataclasses.dataclass(frozen=True)
class StoreLink:
    """Addresses a store can be reached or shared through.

    :param store_id: The store the link points to.
    :param addresses: Client-specific addresses (URLs) of the store.
    :param key: Optional access key for the store.
    """

    store_id: str
    addresses: list[str] = dataclasses.field(default_factory=list)
    key: str | None = None


class Action(enum.Enum):
    """Kinds of entity change delivered to listeners."""

    CREATE = "create"
    SAVE = "save"
    DELETE = "delete"


@dataclasses.dataclass(frozen=True)
class Update:
    """A single change to an entity.

    :param action: What happened to the entity.
    :param model: The model the entity belongs to.
    :param entity_id: The entity identifier.
    :param entity: The entity after the change (``None`` for deletes).
    """

    action: Action
    model: str
    entity_id: str
    entity: dict[str, Any] | None = None


class Subscription:
    """Handle for a live-update listener registered with a client.

    :param on_close: Called once when the subscription is closed.
    """

    __slots__ = ("_closed", "_on_close")

    def __init__(self, on_close: Callable[[], None] | None = None) -> None:
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop delivering updates. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __repr__(self) -> str:
        return f"Subscription(closed={self._closed!r})"
