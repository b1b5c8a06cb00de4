"""Interactive shell: a session object plus REPL-friendly wrappers.

The session owns an event loop running in a background thread. Shell
commands submit coroutines to it, wait for the outcome and print it; live
updates from ``listen`` are printed from the loop thread as they arrive.
"""

from __future__ import annotations

import asyncio
import code
import inspect
import logging
import sys
import threading
import types
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TextIO, TypeVar

from threads_shell._config import ClientConfig, ShellConfig
from threads_shell._database import Database
from threads_shell._delegate import delegate
from threads_shell._factory import create_client
from threads_shell._query import Query, Where
from threads_shell._registry import Registry

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from threads_shell._client import Client, ReadTransaction
    from threads_shell._database import Collection
    from threads_shell._models import StoreHandle, Subscription, Update
    from threads_shell._types import Entity, QueryLike, Schema

T = TypeVar("T")

log = logging.getLogger(__name__)

_RED = "31"

HELP = """
auth(creds=None)
    Connect a client: the configured (or in-memory) client without creds,
    or a cloud client from a dict such as {"bucket": ..., "key": ..., "secret": ...}.
use(name, store_id=None)
    Use the database by name, creating it (or resuming store_id) if it is unknown.
show()
    Show the known databases.
store()
    Return the active store handle.
db
    The active database.
db.create_collection(name, schema)
    Create a new collection in the database.
db.get_links()
    Get links for the database.
db.<collection>.create(entities)
    Create new entities in the collection.
db.<collection>.save(entities)
    Save changes to existing entities.
db.<collection>.delete(ids)
    Delete entities by id.
db.<collection>.find(query=None)
    Find entities matching a Where/Query (or a dict of field values).
db.<collection>.get(id)
    Get an entity by id.
db.<collection>.has(ids)
    Return True if the collection holds all the entities.
db.<collection>.listen(id=None)
    Print updates to an entity (every entity without an id).
db.<collection>.read_transaction() / write_transaction()
    Start a transaction; use it with `with` or call start()/end().
Query, Where
    Query builders, e.g. Where("firstName").eq("Adam").
playground
    A sample Person schema, two entities and a query.
"""

PLAYGROUND = types.SimpleNamespace(
    model="Person",
    schema={
        "$id": "https://example.com/person.schema.json",
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "Person",
        "type": "object",
        "properties": {
            "firstName": {"type": "string", "description": "The person's first name."},
            "lastName": {"type": "string", "description": "The person's last name."},
            "age": {
                "description": "Age in years which must be equal to or greater than zero.",
                "type": "integer",
                "minimum": 0,
            },
        },
    },
    adam={"firstName": "Adam", "lastName": "Doe", "age": 21},
    eve={"firstName": "Eve", "lastName": "Doe", "age": 21},
    query=Where("firstName").eq("Adam"),
)


class _LoopRunner:
    """An asyncio event loop running forever in a daemon thread."""

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="threads-shell-loop", daemon=True)
        self._thread.start()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` on the loop and block until it finishes."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def call(self, fn: Any, *args: Any) -> Any:
        """Run a plain callable on the loop thread and return its result."""

        async def _call() -> Any:
            return fn(*args)

        return self.run(_call())

    def close(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()


class Session:
    """Explicit shell context: the client, its registry and the active database.

    :param config: Shell configuration.
    :param out: Stream results are printed to (default: ``sys.stdout``).
    :param color: Colorize errors; defaults to whether ``out`` is a terminal.
    """

    def __init__(self, config: ShellConfig | None = None, *, out: TextIO | None = None, color: bool | None = None):
        self._config = config or ShellConfig()
        self._out = out or sys.stdout
        self._color = self._out.isatty() if color is None else color
        self._write_lock = threading.Lock()
        self._runner = _LoopRunner()
        self._client: Client | None = None
        self._registry: Registry | None = None
        self._databases: dict[str, ShellDatabase] = {}
        self._subscriptions: list[Subscription] = []
        self._namespace: dict[str, Any] = {}
        self.db: ShellDatabase | None = None

    def __repr__(self) -> str:
        client = self._client.name if self._client is not None else None
        return f"Session(client={client!r}, db={self.db!r})"

    @property
    def config(self) -> ShellConfig:
        return self._config

    @property
    def client(self) -> Client | None:
        return self._client

    @property
    def registry(self) -> Registry | None:
        return self._registry

    # region: output
    def say(self, msg: object, *, error: bool = False) -> None:
        """Print ``msg``, in red when it reports an error."""
        text = str(msg)
        if self._color and error:
            text = f"\x1b[{_RED}m{text}\x1b[0m"
        with self._write_lock:
            print(text, file=self._out, flush=True)

    def run(self, coro: Coroutine[Any, Any, T], *, done: str | None = None, echo: bool = True) -> T | None:
        """Run a coroutine on the session loop and report its outcome.

        Prints ``done`` (or, with ``echo``, a non-``None`` result) on success.
        On failure prints the reason and returns ``None``; the session carries on.
        """
        try:
            result = self._runner.run(coro)
        except Exception as exc:
            log.debug("Command failed", exc_info=True)
            self.say(f"Hit a snag, try again: {exc}", error=True)
            return None
        if done is not None:
            self.say(done)
        elif echo and result is not None:
            self.say(result)
        return result

    def _on_update(self, update: Update) -> None:
        self.say(f"{update.model}:{update.entity_id} {update.action.value} {update.entity or ''}".rstrip())

    # endregion

    # region: commands
    def auth(self, creds: ClientConfig | Mapping[str, Any] | None = None, *, check: bool = True) -> Client | None:
        """Connect a client and start a fresh registry.

        :param creds: ``None`` for the configured (or in-memory) client, a
            :class:`ClientConfig`, or a mapping of client options. A mapping
            without ``type`` describes a cloud (``s3``) client.
        :param check: Verify connectivity; the process exits when it fails.
        """
        if creds is None:
            config = self._config.client or ClientConfig(type="memory")
        elif isinstance(creds, ClientConfig):
            config = creds
        else:
            options = {k: v for k, v in creds.items() if k not in ("type", "host")}
            config = ClientConfig(type=str(creds.get("type", "s3")), host=str(creds.get("host", "")), options=options)

        self.say("Authenticating...")
        try:
            client = create_client(config)
        except Exception as exc:
            self.say(f"Hit a snag, try again: {exc}", error=True)
            return None
        self._reset()
        self._client = client
        self._registry = Registry(client, timeout=self._config.timeout)
        self.say("Authenticated!")
        if check:
            try:
                self._runner.run(delegate(client.ping(), operation="ping", timeout=self._config.timeout))
            except Exception as exc:
                self.say(f"Shoot, unable to connect to the Threads API: {exc}", error=True)
                raise SystemExit(1) from None
            self.say(f"Connected to {client.config.host}")
        return client

    def use(self, name: str, store_id: str | None = None) -> ShellDatabase | None:
        """Use the database ``name``, creating it (or resuming ``store_id``) when unknown."""
        if self._registry is None:
            self.say("Not authenticated, run auth() first", error=True)
            return None
        self.say(f"Switching to {name}...")
        handle = self.run(self._registry.activate(name, store_id), echo=False)
        if handle is None:
            return None
        db = self._databases.get(name)
        if db is None:
            db = ShellDatabase(self, Database(self._registry.client, handle, timeout=self._config.timeout))
            self._databases[name] = db
        self.db = db
        self._namespace["db"] = db
        self.say(f"Using {name} (id={handle.id})")
        return db

    def store(self) -> StoreHandle | None:
        """Return the active store handle."""
        return self._registry.active() if self._registry is not None else None

    def show(self) -> list[str]:
        """Print and return the known database names, marking the active one."""
        if self._registry is None:
            self.say("Not authenticated, run auth() first", error=True)
            return []
        names = self._registry.list()
        active = self._registry.active()
        if not names:
            self.say("No databases yet, run use(name) to create one")
        for name in names:
            handle = self._registry.get(name)
            marker = "*" if active is not None and handle == active else " "
            self.say(f"{marker} {name} (id={handle.id if handle else '?'})")
        return names

    def help(self) -> None:
        self.say(HELP.strip("\n"))

    def listen(self, collection: Collection, entity_id: str | None) -> Subscription:
        subscription = self._runner.call(collection.listen, entity_id, self._on_update)
        self._subscriptions.append(subscription)
        return subscription  # type: ignore[no-any-return]

    # endregion

    # region: lifecycle
    def namespace(self) -> dict[str, Any]:
        """Return the globals the REPL runs with; ``db`` follows :meth:`use`."""
        self._namespace.update(
            {
                "session": self,
                "auth": self.auth,
                "use": self.use,
                "show": self.show,
                "store": self.store,
                "help": self.help,
                "db": self.db,
                "Query": Query,
                "Where": Where,
                "playground": PLAYGROUND,
            }
        )
        return self._namespace

    def _reset(self) -> None:
        for subscription in self._subscriptions:
            self._runner.call(subscription.close)
        self._subscriptions.clear()
        if self._client is not None:
            self._runner.call(self._client.close)
        self._client = None
        self._registry = None
        self._databases.clear()
        self.db = None
        self._namespace["db"] = None

    def close(self) -> None:
        """Close subscriptions and the client, then stop the loop."""
        self._reset()
        self._runner.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # endregion


class ShellTransaction:
    """Blocking facade over a client transaction, usable with ``with``."""

    def __init__(self, session: Session, transaction: ReadTransaction) -> None:
        self._session = session
        self._tx = transaction

    def __repr__(self) -> str:
        return f"ShellTransaction({self._tx!r})"

    def _run(self, operation: str, call: Coroutine[Any, Any, T]) -> T:
        return self._session._runner.run(delegate(call, operation=operation, timeout=self._session.config.timeout))

    def __getattr__(self, name: str) -> Any:
        method = getattr(self._tx, name)
        if not inspect.iscoroutinefunction(method):
            return method

        def _blocking(*args: Any, **kwargs: Any) -> Any:
            return self._run(name, method(*args, **kwargs))

        return _blocking

    def __enter__(self) -> ShellTransaction:
        self._run("start", self._tx.start())
        return self

    def __exit__(self, exc_type: type[BaseException] | None, *exc_info: object) -> None:
        self._run("end", self._tx.end(commit=exc_type is None))


class ShellCollection:
    """REPL wrapper around a :class:`Collection` that prints outcomes."""

    def __init__(self, session: Session, collection: Collection) -> None:
        self._session = session
        self._collection = collection

    def __repr__(self) -> str:
        return repr(self._collection)

    @property
    def name(self) -> str:
        return self._collection.name

    def create(self, entities: list[Entity]) -> list[str] | None:
        return self._session.run(
            self._collection.create(entities), done=f"Entities created in collection {self.name}"
        )

    def save(self, entities: list[Entity]) -> None:
        self._session.run(self._collection.save(entities), done=f"Entities saved to collection {self.name}")

    def delete(self, ids: list[str]) -> None:
        self._session.run(self._collection.delete(ids), done=f"Entities deleted from collection {self.name}")

    def has(self, ids: list[str]) -> bool | None:
        return self._session.run(self._collection.has(ids))

    def find(self, query: QueryLike | Query = None) -> Any:
        return self._session.run(self._collection.find(query))  # type: ignore[arg-type]

    def get(self, entity_id: str) -> Any:
        return self._session.run(self._collection.get(entity_id))

    def read_transaction(self) -> ShellTransaction:
        return ShellTransaction(self._session, self._collection.read_transaction())

    def write_transaction(self) -> ShellTransaction:
        return ShellTransaction(self._session, self._collection.write_transaction())

    def listen(self, entity_id: str | None = None) -> Subscription:
        self._session.say(f"Listening to {self.name}:{entity_id or '*'}...")
        return self._session.listen(self._collection, entity_id)


class ShellDatabase:
    """REPL wrapper around a :class:`Database`; collections appear as attributes."""

    def __init__(self, session: Session, database: Database) -> None:
        self._session = session
        self._database = database
        self._collections: dict[str, ShellCollection] = {}

    def __repr__(self) -> str:
        return repr(self._database)

    @property
    def database(self) -> Database:
        return self._database

    def create_collection(self, name: str, schema: Schema) -> ShellCollection | None:
        collection = self._session.run(
            self._database.create_collection(name, schema), done=f"Collection {name} created."
        )
        if collection is None:
            return None
        wrapper = ShellCollection(self._session, collection)
        self._collections[name] = wrapper
        return wrapper

    def get_links(self) -> Any:
        return self._session.run(self._database.get_links())

    def __getitem__(self, name: str) -> ShellCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection '{name}'. Available collections: {sorted(self._collections)}") from None

    def __getattr__(self, name: str) -> ShellCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._collections[name]
        except KeyError:
            raise AttributeError(f"No collection {name!r}, create it with db.create_collection()") from None

    def __dir__(self) -> list[str]:
        return [*super().__dir__(), *(n for n in self._collections if n.isidentifier())]


def interact(session: Session, banner: str | None = None) -> None:
    """Run the interactive console until EOF."""
    console = code.InteractiveConsole(locals=session.namespace())
    previous = getattr(sys, "ps1", None)
    sys.ps1 = session.config.prompt
    try:
        console.interact(banner=banner or "Threads shell. Type help() for the available commands.", exitmsg="")
    finally:
        if previous is None:
            del sys.ps1
        else:
            sys.ps1 = previous
