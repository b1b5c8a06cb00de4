"""Configuration model: immutable data containers describing the client and the shell."""

from __future__ import annotations

import dataclasses
import tomllib
from pathlib import Path

from threads_shell._errors import InvalidConfig

DEFAULT_PROMPT = "threads> "


@dataclasses.dataclass(frozen=True)
class ClientConfig:
    """Describes a client instance.

    :param type: Client type identifier (e.g. ``"memory"``, ``"local"``, ``"s3"``).
    :param host: Address the client talks to. Used by the connectivity check and
        shown to the user; clients derive it from their options when empty.
    :param options: Client-specific constructor options.
    """

    type: str
    host: str = ""
    options: dict[str, object] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class ShellConfig:
    """Top-level shell configuration.

    :param client: The client to authenticate with at startup, if any.
    :param timeout: Seconds each delegated client call may take (``None``: unbounded).
    :param prompt: Interactive prompt.
    :param store: Store name to activate at startup.
    :param store_id: Existing store id to resume under ``store``.
    """

    client: ClientConfig | None = None
    timeout: float | None = 30.0
    prompt: str = DEFAULT_PROMPT
    store: str | None = None
    store_id: str | None = None

    def validate(self) -> None:
        """Check cross-field consistency.

        :raises InvalidConfig: If the configuration cannot be used.
        """
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidConfig(f"timeout must be positive, got {self.timeout!r}")
        if self.store_id is not None and not self.store:
            raise InvalidConfig("store_id requires a store name to resume it under")
        if self.store is not None and self.client is None:
            raise InvalidConfig(f"Store '{self.store}' requested but no client is configured")

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ShellConfig:
        """Construct from a plain dict (e.g. parsed TOML).

        :param data: Dict with optional ``client``, ``timeout``, ``prompt``,
            ``store`` and ``store_id`` keys.
        """
        raw_client = data.get("client")
        client: ClientConfig | None = None
        if raw_client is not None:
            if not isinstance(raw_client, dict):
                msg = "Expected 'client' to be a table"
                raise TypeError(msg)
            if "type" not in raw_client:
                raise InvalidConfig("Client config requires a 'type'")
            raw_options = raw_client.get("options", {})
            if not isinstance(raw_options, dict):
                msg = "Expected 'client.options' to be a table"
                raise TypeError(msg)
            client = ClientConfig(
                type=str(raw_client["type"]),
                host=str(raw_client.get("host", "")),
                options=dict(raw_options),
            )

        raw_timeout = data.get("timeout", 30.0)
        timeout: float | None = None
        if raw_timeout is not None:
            try:
                timeout = float(raw_timeout)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                raise InvalidConfig(f"timeout must be a number, got {raw_timeout!r}") from None
        store = data.get("store")
        store_id = data.get("store_id")
        return cls(
            client=client,
            timeout=timeout,
            prompt=str(data.get("prompt", DEFAULT_PROMPT)),
            store=str(store) if store is not None else None,
            store_id=str(store_id) if store_id is not None else None,
        )


def load_config(path: str | Path) -> ShellConfig:
    """Read a TOML config file and validate it.

    :raises InvalidConfig: If the file is missing, unparsable or inconsistent.
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError:
        raise InvalidConfig(f"Config file not found: {path}") from None
    except tomllib.TOMLDecodeError as exc:
        raise InvalidConfig(f"Invalid TOML in {path}: {exc}") from None
    config = ShellConfig.from_dict(data)
    config.validate()
    return config
