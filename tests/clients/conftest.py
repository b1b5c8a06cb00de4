"""Client test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

import socket
import uuid
from typing import TYPE_CHECKING

import pytest

from threads_shell.clients._local import LocalClient
from threads_shell.clients._memory import MemoryClient

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from threads_shell.clients._base import DocumentClient


def _s3_available() -> bool:
    try:
        import boto3  # noqa: F401
        import moto  # noqa: F401
        import s3fs  # noqa: F401

        return True
    except ImportError:
        return False


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session")
def moto_server() -> Iterator[str | None]:
    """Start a moto HTTP server for the test session.

    Server mode keeps s3fs/aiobotocore talking real HTTP instead of a patched client.
    """
    if not _s3_available():
        yield None
        return
    from moto.moto_server.threaded_moto_server import ThreadedMotoServer

    port = _free_port()
    server = ThreadedMotoServer(port=port, verbose=False)
    server.start()
    yield f"http://127.0.0.1:{port}"
    server.stop()


def make_bucket(endpoint: str, prefix: str = "threads") -> str:
    import boto3

    bucket = f"{prefix}-{uuid.uuid4().hex[:8]}"
    client = boto3.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
    )
    client.create_bucket(Bucket=bucket)
    return bucket


_s3_param = pytest.param(
    "s3",
    marks=pytest.mark.skipif(not _s3_available(), reason="moto/s3fs not installed"),
)


@pytest.fixture(params=["memory", "local", _s3_param])
def client(request: pytest.FixtureRequest, moto_server: str | None, tmp_path: Path) -> Iterator[DocumentClient]:
    """Parameterized client fixture. Add new clients here."""
    if request.param == "memory":
        c: DocumentClient = MemoryClient()
    elif request.param == "local":
        c = LocalClient(root=str(tmp_path / "stores"))
    elif request.param == "s3":
        from threads_shell.clients._s3 import S3Client

        assert moto_server is not None
        c = S3Client(
            bucket=make_bucket(moto_server, "conformance"),
            key="testing",
            secret="testing",
            region_name="us-east-1",
            endpoint_url=moto_server,
        )
    else:
        pytest.skip(f"Unknown client: {request.param}")
    yield c
    c.close()
