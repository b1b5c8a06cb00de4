"""Shared test fixtures and marker registration."""

from __future__ import annotations

import asyncio
import collections
from typing import TYPE_CHECKING, Any

import pytest

from threads_shell.clients._memory import MemoryClient

if TYPE_CHECKING:
    from threads_shell._models import StoreHandle
    from threads_shell._types import Schema


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


class RecordingClient(MemoryClient):
    """In-memory client that counts store calls, sleeps before answering and can be told to fail.

    :param delay: Seconds every store-level call sleeps before running.
    """

    def __init__(self, delay: float = 0.0) -> None:
        super().__init__()
        self.delay = delay
        self.calls: collections.Counter[str] = collections.Counter()
        self.failures: dict[str, Exception] = {}

    async def _record(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.failures:
            raise self.failures[operation]

    async def new_store(self) -> StoreHandle:
        await self._record("new_store")
        return await super().new_store()

    async def start(self, store_id: str) -> None:
        await self._record("start")
        await super().start(store_id)

    async def register_schema(self, store_id: str, name: str, schema: Schema) -> None:
        await self._record("register_schema")
        await super().register_schema(store_id, name, schema)

    async def model_create(self, store_id: str, name: str, entities: list[dict[str, Any]]) -> list[str]:
        await self._record("model_create")
        return await super().model_create(store_id, name, entities)


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def slow_client() -> RecordingClient:
    """Client whose store calls take 200 ms."""
    return RecordingClient(delay=0.2)


@pytest.fixture
def person_schema() -> dict[str, Any]:
    return {
        "title": "Person",
        "type": "object",
        "required": ["firstName"],
        "properties": {
            "firstName": {"type": "string"},
            "lastName": {"type": "string"},
            "age": {"type": "integer", "minimum": 0},
        },
    }
