"""Tests for the interactive session and its REPL wrappers."""

from __future__ import annotations

import asyncio
import io
from typing import TYPE_CHECKING

import pytest

from threads_shell import _factory
from threads_shell._config import ClientConfig, ShellConfig
from threads_shell._errors import ClientUnavailable, OperationTimeout
from threads_shell._models import StoreHandle
from threads_shell._query import Query, Where
from threads_shell._shell import PLAYGROUND, Session, ShellDatabase, ShellTransaction
from threads_shell.clients import LocalClient, MemoryClient

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class UnreachableClient(MemoryClient):
    def _check_connection(self) -> None:
        raise ClientUnavailable("connection refused", client=self.name)


class HangingClient(MemoryClient):
    async def ping(self) -> None:
        await asyncio.sleep(10)


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def session(out: io.StringIO) -> Iterator[Session]:
    s = Session(out=out, color=False)
    yield s
    s.close()


@pytest.fixture
def authed(session: Session) -> Session:
    session.auth()
    return session


class TestAuth:
    def test_defaults_to_memory(self, session: Session, out: io.StringIO) -> None:
        client = session.auth()
        assert isinstance(client, MemoryClient)
        assert session.registry is not None
        assert "Authenticated!" in out.getvalue()
        assert "Connected to memory://" in out.getvalue()

    def test_uses_configured_client(self, out: io.StringIO, tmp_path: Path) -> None:
        config = ShellConfig(client=ClientConfig(type="local", options={"root": str(tmp_path)}))
        with Session(config, out=out, color=False) as s:
            assert isinstance(s.auth(), LocalClient)

    def test_mapping_with_type(self, session: Session, tmp_path: Path) -> None:
        assert isinstance(session.auth({"type": "local", "root": str(tmp_path)}), LocalClient)

    def test_invalid_creds_report_and_continue(self, session: Session, out: io.StringIO) -> None:
        assert session.auth({"type": "textile"}) is None
        assert "Hit a snag, try again: Unknown client type" in out.getvalue()
        assert session.client is None

    def test_cloud_creds_without_bucket(self, session: Session, out: io.StringIO) -> None:
        assert session.auth({"key": "k", "secret": "s"}) is None
        assert "Hit a snag" in out.getvalue()

    def test_unreachable_client_exits(
        self, session: Session, out: io.StringIO, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setitem(_factory._CLIENT_FACTORIES, "unreachable", UnreachableClient)
        with pytest.raises(SystemExit) as exc_info:
            session.auth({"type": "unreachable"})
        assert exc_info.value.code == 1
        assert "unable to connect" in out.getvalue()

    def test_hanging_ping_times_out(self, out: io.StringIO, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(_factory._CLIENT_FACTORIES, "hanging", HangingClient)
        with Session(ShellConfig(timeout=0.05), out=out, color=False) as s:
            with pytest.raises(SystemExit) as exc_info:
                s.auth({"type": "hanging"})
        assert exc_info.value.code == 1
        assert "ping did not complete within 0.05s" in out.getvalue()

    def test_skip_check(self, session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(_factory._CLIENT_FACTORIES, "unreachable", UnreachableClient)
        assert session.auth({"type": "unreachable"}, check=False) is not None

    def test_reauth_resets_state(self, authed: Session) -> None:
        authed.use("people")
        authed.auth()
        assert authed.db is None
        assert authed.store() is None


class TestUse:
    def test_requires_auth(self, session: Session, out: io.StringIO) -> None:
        assert session.use("people") is None
        assert "run auth() first" in out.getvalue()

    def test_creates_and_binds_db(self, authed: Session, out: io.StringIO) -> None:
        namespace = authed.namespace()
        db = authed.use("people")
        assert isinstance(db, ShellDatabase)
        assert authed.db is db
        assert namespace["db"] is db
        handle = authed.store()
        assert isinstance(handle, StoreHandle)
        assert handle.name == "people"
        assert f"Using people (id={handle.id})" in out.getvalue()

    def test_switching_back_reuses_database(self, authed: Session) -> None:
        people = authed.use("people")
        authed.use("pets")
        assert authed.use("people") is people
        assert authed.registry is not None
        assert authed.registry.list() == ["people", "pets"]

    def test_resume_unknown_id_reports(self, authed: Session, out: io.StringIO) -> None:
        assert authed.use("people", "no-such-store") is None
        assert "Hit a snag, try again: Store not found" in out.getvalue()
        assert authed.db is None

    def test_show(self, authed: Session, out: io.StringIO) -> None:
        assert authed.show() == []
        authed.use("people")
        authed.use("pets")
        assert authed.show() == ["people", "pets"]
        assert "* pets" in out.getvalue()


class TestCollections:
    def test_playground_flow(self, authed: Session, out: io.StringIO) -> None:
        db = authed.use("people")
        assert db is not None
        people = db.create_collection(PLAYGROUND.model, PLAYGROUND.schema)
        assert people is not None
        assert db.Person is people
        ids = people.create([PLAYGROUND.adam, PLAYGROUND.eve])
        assert ids is not None and len(ids) == 2
        found = people.find(PLAYGROUND.query)
        assert [e["firstName"] for e in found] == ["Adam"]
        assert people.has(ids) is True
        text = out.getvalue()
        assert "Collection Person created." in text
        assert "Entities created in collection Person" in text

    def test_errors_are_reported(self, authed: Session, out: io.StringIO) -> None:
        db = authed.use("people")
        assert db is not None
        people = db.create_collection(PLAYGROUND.model, PLAYGROUND.schema)
        assert people is not None
        assert people.get("missing") is None
        assert "Hit a snag, try again: Entity not found: missing" in out.getvalue()

    def test_failed_collection_not_exposed(self, authed: Session) -> None:
        db = authed.use("people")
        assert db is not None
        assert db.create_collection("Person", ["not", "a", "schema"]) is None  # type: ignore[arg-type]
        with pytest.raises(AttributeError):
            db.Person  # noqa: B018

    def test_save_delete_and_get_links(self, authed: Session, out: io.StringIO) -> None:
        db = authed.use("people")
        assert db is not None
        people = db.create_collection("Person", PLAYGROUND.schema)
        assert people is not None
        [adam_id] = people.create([dict(PLAYGROUND.adam)])
        adam = people.get(adam_id)
        adam["age"] = 30
        people.save([adam])
        assert people.get(adam_id)["age"] == 30
        people.delete([adam_id])
        assert people.has([adam_id]) is False
        link = db.get_links()
        assert link.addresses == [f"memory://{link.store_id}"]
        assert "Entities deleted from collection Person" in out.getvalue()

    def test_transactions(self, authed: Session) -> None:
        db = authed.use("people")
        assert db is not None
        people = db.create_collection("Person", PLAYGROUND.schema)
        assert people is not None
        tx = people.write_transaction()
        assert isinstance(tx, ShellTransaction)
        with tx:
            [eve_id] = tx.create([dict(PLAYGROUND.eve)])
        with people.read_transaction() as rtx:
            assert rtx.find_by_id(eve_id)["firstName"] == "Eve"
            assert rtx.find(Query()) != []

    def test_blocked_transaction_times_out(self, out: io.StringIO) -> None:
        with Session(ShellConfig(timeout=0.2), out=out, color=False) as s:
            s.auth()
            db = s.use("people")
            assert db is not None
            people = db.create_collection("Person", PLAYGROUND.schema)
            assert people is not None
            with people.write_transaction() as tx:
                with pytest.raises(OperationTimeout, match="start did not complete"):
                    with people.write_transaction():
                        pass
                [eve_id] = tx.create([dict(PLAYGROUND.eve)])
            with people.read_transaction() as rtx:
                assert rtx.find_by_id(eve_id)["firstName"] == "Eve"

    def test_listen_prints_updates(self, authed: Session, out: io.StringIO) -> None:
        db = authed.use("people")
        assert db is not None
        people = db.create_collection("Person", PLAYGROUND.schema)
        assert people is not None
        sub = people.listen()
        [adam_id] = people.create([dict(PLAYGROUND.adam)])
        sub.close()
        people.delete([adam_id])
        text = out.getvalue()
        assert "Listening to Person:*" in text
        assert f"Person:{adam_id} create" in text
        assert f"Person:{adam_id} delete" not in text


class TestNamespace:
    def test_contents(self, session: Session) -> None:
        namespace = session.namespace()
        for name in ("auth", "use", "show", "store", "help", "db", "playground"):
            assert name in namespace
        assert namespace["Query"] is Query
        assert namespace["Where"] is Where

    def test_help(self, session: Session, out: io.StringIO) -> None:
        session.help()
        assert "db.create_collection(name, schema)" in out.getvalue()


def test_errors_are_red_when_colored(out: io.StringIO) -> None:
    with Session(out=out, color=True) as s:
        s.use("people")
    assert "\x1b[31m" in out.getvalue()
