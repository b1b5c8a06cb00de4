"""Bounded delegation of client calls."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from threads_shell._errors import OperationTimeout

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")

log = logging.getLogger(__name__)


async def delegate(
    call: Awaitable[T],
    *,
    operation: str,
    timeout: float | None = None,
    store_id: str | None = None,
    model: str | None = None,
) -> T:
    """Await a client call, cancelling it once ``timeout`` seconds pass.

    Whatever the call raises propagates unchanged. Only expiry of ``timeout``
    itself is reported as :class:`OperationTimeout`.

    :param call: The awaitable returned by the client.
    :param operation: Client operation name, used in logs and errors.
    :param timeout: Seconds to wait, or ``None`` to wait indefinitely.
    """
    log.debug("-> %s store_id=%s model=%s", operation, store_id, model)
    try:
        async with asyncio.timeout(timeout) as scope:
            result = await call
    except TimeoutError:
        if scope.expired():
            raise OperationTimeout(
                f"{operation} did not complete within {timeout}s",
                store_id=store_id,
                model=model,
                timeout=timeout,
            ) from None
        raise
    log.debug("<- %s store_id=%s model=%s", operation, store_id, model)
    return result
