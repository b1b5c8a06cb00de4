"""Tests for handles, links, updates and subscriptions."""

from __future__ import annotations

import dataclasses

import pytest

from threads_shell._models import Action, StoreHandle, StoreLink, Subscription, Update


class TestStoreHandle:
    def test_annotate_returns_named_copy(self) -> None:
        handle = StoreHandle(id="abc")
        named = handle.annotate("people")
        assert named.name == "people"
        assert named.id == "abc"
        assert handle.name is None

    def test_equality_by_id(self) -> None:
        assert StoreHandle(id="abc") == StoreHandle(id="abc", name="people")
        assert StoreHandle(id="abc") != StoreHandle(id="def")
        assert hash(StoreHandle(id="abc")) == hash(StoreHandle(id="abc", name="x"))

    def test_not_equal_to_other_types(self) -> None:
        assert StoreHandle(id="abc") != "abc"

    def test_immutable(self) -> None:
        handle = StoreHandle(id="abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            handle.name = "x"  # type: ignore[misc]


def test_store_link_defaults() -> None:
    link = StoreLink(store_id="abc")
    assert link.addresses == []
    assert link.key is None


def test_update_fields() -> None:
    update = Update(action=Action.DELETE, model="Person", entity_id="1")
    assert update.entity is None
    assert update.action.value == "delete"


class TestSubscription:
    def test_close_calls_hook_once(self) -> None:
        calls: list[int] = []
        sub = Subscription(on_close=lambda: calls.append(1))
        assert not sub.closed
        sub.close()
        sub.close()
        assert sub.closed
        assert calls == [1]

    def test_close_without_hook(self) -> None:
        sub = Subscription()
        sub.close()
        assert sub.closed
