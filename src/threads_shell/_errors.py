"""Normalized error hierarchy for threads_shell."""

from __future__ import annotations

from typing import Optional


class ThreadsError(Exception):
    """Base class for all threads_shell errors.

    :param message: Human-readable error description.
    :param store_id: The store involved in the error, if any.
    :param model: The model (collection) name involved, if any.
    :param client: The client name involved, if any.
    """

    def __init__(
        self,
        message: str = "",
        *,
        store_id: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[str] = None,
    ) -> None:
        self.store_id = store_id
        self.model = model
        self.client = client
        super().__init__(message)

    def _context(self) -> list[tuple[str, object]]:
        pairs: list[tuple[str, object]] = []
        if self.store_id is not None:
            pairs.append(("store_id", self.store_id))
        if self.model is not None:
            pairs.append(("model", self.model))
        if self.client is not None:
            pairs.append(("client", self.client))
        return pairs

    def __str__(self) -> str:
        parts = [super().__str__()]
        parts.extend(f"{key}={value!r}" for key, value in self._context())
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(super().__str__())]
        args.extend(f"{key}={value!r}" for key, value in self._context())
        return f"{cls}({', '.join(args)})"


class NotFound(ThreadsError):
    """Raised when a store, model or entity does not exist."""


class AlreadyExists(ThreadsError):
    """Raised when a store name, model or entity id conflicts with an existing one."""


class SchemaViolation(ThreadsError):
    """Raised when a schema or an entity is rejected by the client."""


class PermissionDenied(ThreadsError):
    """Raised when access is denied by the client's backing storage."""


class ClientUnavailable(ThreadsError):
    """Raised when the client cannot be reached or initialized."""


class OperationTimeout(ThreadsError):
    """Raised when a delegated client call does not complete in time.

    :param timeout: The timeout that expired, in seconds.
    """

    def __init__(
        self,
        message: str = "",
        *,
        store_id: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(message, store_id=store_id, model=model, client=client)

    def _context(self) -> list[tuple[str, object]]:
        pairs = super()._context()
        if self.timeout is not None:
            pairs.append(("timeout", self.timeout))
        return pairs


class InvalidConfig(ThreadsError):
    """Raised for malformed shell or client configuration."""
