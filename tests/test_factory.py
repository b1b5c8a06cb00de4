"""Tests for building clients from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from threads_shell import _factory
from threads_shell._config import ClientConfig
from threads_shell._errors import InvalidConfig
from threads_shell._factory import create_client, get_cloud_client, get_local_client, register_client
from threads_shell.clients import LocalClient, MemoryClient, S3Client

if TYPE_CHECKING:
    from pathlib import Path


class TestCreateClient:
    def test_memory(self) -> None:
        client = create_client(ClientConfig(type="memory"))
        assert isinstance(client, MemoryClient)
        assert client.config.host == "memory://"

    def test_local(self, tmp_path: Path) -> None:
        client = create_client(ClientConfig(type="local", options={"root": str(tmp_path)}))
        assert isinstance(client, LocalClient)
        assert client.config.host == tmp_path.resolve().as_uri()

    def test_s3_is_lazy(self) -> None:
        client = create_client(ClientConfig(type="s3", options={"bucket": "threads"}))
        assert isinstance(client, S3Client)
        assert client.config.host == "s3://threads"

    def test_configured_host_kept(self) -> None:
        client = create_client(ClientConfig(type="memory", host="memory://shared"))
        assert client.config.host == "memory://shared"

    def test_unknown_type(self) -> None:
        with pytest.raises(InvalidConfig, match="Unknown client type"):
            create_client(ClientConfig(type="textile"))

    def test_unexpected_option(self) -> None:
        with pytest.raises(InvalidConfig, match="Invalid options"):
            create_client(ClientConfig(type="memory", options={"colour": "blue"}))

    def test_missing_required_option(self) -> None:
        with pytest.raises(InvalidConfig, match="Invalid options"):
            create_client(ClientConfig(type="s3"))

    def test_invalid_option_value(self) -> None:
        with pytest.raises(InvalidConfig, match="bucket"):
            create_client(ClientConfig(type="s3", options={"bucket": " "}))

    def test_register_custom_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        class CustomClient(MemoryClient):
            @property
            def name(self) -> str:
                return "custom"

        monkeypatch.setitem(_factory._CLIENT_FACTORIES, "custom", CustomClient)
        register_client("custom", CustomClient)
        assert create_client(ClientConfig(type="custom")).name == "custom"


class TestShortcuts:
    def test_local_without_root_is_memory(self) -> None:
        assert isinstance(get_local_client(), MemoryClient)

    def test_local_with_root(self, tmp_path: Path) -> None:
        client = get_local_client(str(tmp_path))
        assert isinstance(client, LocalClient)

    def test_cloud(self) -> None:
        client = get_cloud_client("threads", key="k", secret="s", endpoint_url="http://minio:9000")
        assert isinstance(client, S3Client)
        assert client.config.host == "http://minio:9000"
        assert client.config.options["key"] == "k"
