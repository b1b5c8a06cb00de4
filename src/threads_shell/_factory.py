"""Client factory: builds clients from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from threads_shell._config import ClientConfig
from threads_shell._errors import InvalidConfig

if TYPE_CHECKING:
    from threads_shell._client import Client

# Global client factory registry: maps type strings to client classes.
_CLIENT_FACTORIES: dict[str, type[Client]] = {}


def register_client(type_name: str, cls: type[Client]) -> None:
    """Register a client class for a given type string.

    :param type_name: The type identifier (e.g. ``"memory"``).
    :param cls: The client class; constructed as ``cls(config=..., **options)``.
    """
    _CLIENT_FACTORIES[type_name] = cls


def _register_builtin_clients() -> None:
    """Register the built-in clients."""
    from threads_shell.clients._local import LocalClient
    from threads_shell.clients._memory import MemoryClient
    from threads_shell.clients._s3 import S3Client

    _CLIENT_FACTORIES.setdefault("memory", MemoryClient)
    _CLIENT_FACTORIES.setdefault("local", LocalClient)
    _CLIENT_FACTORIES.setdefault("s3", S3Client)


def create_client(config: ClientConfig) -> Client:
    """Instantiate the client described by ``config``.

    :raises InvalidConfig: If the type is unknown or the options do not fit it.
    """
    _register_builtin_clients()
    if config.type not in _CLIENT_FACTORIES:
        raise InvalidConfig(
            f"Unknown client type '{config.type}'. Registered types: {sorted(_CLIENT_FACTORIES.keys())}"
        )
    factory = _CLIENT_FACTORIES[config.type]
    try:
        return factory(config=config, **config.options)  # type: ignore[call-arg]
    except TypeError as exc:
        raise InvalidConfig(
            f"Invalid options for client type {config.type!r}: {exc}. "
            f"Provided options: {sorted(config.options.keys())}"
        ) from exc
    except ValueError as exc:
        raise InvalidConfig(str(exc), client=config.type) from exc


def get_local_client(root: str | None = None) -> Client:
    """Return a client for local use: on-disk under ``root``, in memory without one."""
    if root is None:
        return create_client(ClientConfig(type="memory"))
    return create_client(ClientConfig(type="local", options={"root": root}))


def get_cloud_client(
    bucket: str,
    *,
    key: str | None = None,
    secret: str | None = None,
    prefix: str = "",
    endpoint_url: str | None = None,
    region_name: str | None = None,
) -> Client:
    """Return a client authenticated against S3-compatible cloud storage."""
    options: dict[str, object] = {"bucket": bucket, "prefix": prefix}
    if key is not None:
        options["key"] = key
    if secret is not None:
        options["secret"] = secret
    if endpoint_url is not None:
        options["endpoint_url"] = endpoint_url
    if region_name is not None:
        options["region_name"] = region_name
    return create_client(ClientConfig(type="s3", host=endpoint_url or "", options=options))
