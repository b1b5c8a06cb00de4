"""S3-compatible cloud client using s3fs."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from threads_shell._config import ClientConfig
from threads_shell._errors import (
    ClientUnavailable,
    NotFound,
    PermissionDenied,
    SchemaViolation,
    ThreadsError,
)
from threads_shell.clients._base import MODEL_NAME, DocumentClient

if TYPE_CHECKING:
    from collections.abc import Iterator

    from threads_shell._types import Entity

log = logging.getLogger(__name__)

_STORE_MARKER = ".store"
_SCHEMA_SUFFIX = ".schema.json"
_ENTITIES_SUFFIX = ".entities.json"


class S3Client(DocumentClient):
    """Client keeping stores as JSON objects in an S3 bucket.

    The access key and secret are the cloud credentials; every store lives
    under ``<bucket>/<prefix>/<store_id>/``.

    :param bucket: S3 bucket name (required, non-empty).
    :param prefix: Key prefix all stores are kept under.
    :param endpoint_url: Custom endpoint URL (e.g. for MinIO).
    :param key: AWS access key ID.
    :param secret: AWS secret access key.
    :param region_name: AWS region name.
    :param client_options: Additional options passed to s3fs.
    :param connect_attempts: Attempts made by the connectivity check.
    :param config: Optional configuration; ``host`` defaults to the endpoint or ``s3://<bucket>``.
    """

    def __init__(
        self,
        bucket: str,
        *,
        prefix: str = "",
        endpoint_url: str | None = None,
        key: str | None = None,
        secret: str | None = None,
        region_name: str | None = None,
        client_options: dict[str, Any] | None = None,
        connect_attempts: int = 3,
        config: ClientConfig | None = None,
    ) -> None:
        if not bucket or not bucket.strip():
            raise ValueError("bucket must be a non-empty string")
        if connect_attempts < 1:
            raise ValueError("connect_attempts must be at least 1")
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._endpoint_url = endpoint_url
        self._key = key
        self._secret = secret
        self._region_name = region_name
        self._client_options = client_options or {}
        self._connect_attempts = connect_attempts
        self._fs_instance: Any = None
        config = config or ClientConfig(type="s3", options={"bucket": bucket})
        if not config.host:
            config = ClientConfig(type=config.type, host=endpoint_url or f"s3://{bucket}", options=config.options)
        super().__init__(config)

    @property
    def name(self) -> str:
        return "s3"

    # region: lazy filesystem

    @property
    def _fs(self) -> Any:
        if self._fs_instance is None:
            import s3fs  # type: ignore[import-untyped]

            opts: dict[str, Any] = dict(self._client_options)
            if self._endpoint_url is not None:
                opts["endpoint_url"] = self._endpoint_url
            if self._key is not None:
                opts["key"] = self._key
            if self._secret is not None:
                opts["secret"] = self._secret
            if self._region_name is not None:
                client_kwargs: dict[str, Any] = opts.setdefault("client_kwargs", {})
                client_kwargs["region_name"] = self._region_name
            opts.setdefault("anon", False)
            self._fs_instance = s3fs.S3FileSystem(**opts)
        return self._fs_instance

    # endregion

    # region: key helpers

    def _store_path(self, store_id: str) -> str:
        if not store_id or "/" in store_id or store_id in (".", ".."):
            raise NotFound(f"Store not found: {store_id}", store_id=store_id, client=self.name)
        if self._prefix:
            return f"{self._bucket}/{self._prefix}/{store_id}"
        return f"{self._bucket}/{store_id}"

    def _model_path(self, store_id: str, model: str, suffix: str) -> str:
        if not MODEL_NAME.match(model):
            raise SchemaViolation(f"Invalid model name: {model!r}", store_id=store_id, model=model)
        return f"{self._store_path(store_id)}/{model}{suffix}"

    # endregion

    # region: error mapping

    @contextmanager
    def _errors(self, store_id: str = "", model: str | None = None) -> Iterator[None]:
        """Map s3fs/botocore exceptions to threads_shell errors."""
        try:
            yield
        except ThreadsError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {store_id}", store_id=store_id, model=model, client=self.name) from None
        except PermissionError:
            raise PermissionDenied(
                f"Permission denied: {store_id}", store_id=store_id, model=model, client=self.name
            ) from None
        except Exception as exc:
            raise self._classify_error(exc, store_id, model) from None

    def _classify_error(self, exc: Exception, store_id: str, model: str | None) -> ThreadsError:
        """Classify an unknown exception into a threads_shell error type."""
        msg = str(exc).lower()
        if "404" in msg or "nosuchkey" in msg or "nosuchbucket" in msg or "not found" in msg:
            return NotFound(f"Not found: {store_id}", store_id=store_id, model=model, client=self.name)
        if "403" in msg or "accessdenied" in msg or "access denied" in msg:
            return PermissionDenied(f"Permission denied: {store_id}", store_id=store_id, model=model, client=self.name)
        if any(kw in msg for kw in ("endpoint", "connect", "timeout", "dns", "name or service")):
            return ClientUnavailable(str(exc), store_id=store_id, model=model, client=self.name)
        return ThreadsError(str(exc), store_id=store_id, model=model, client=self.name)

    def _read_json(self, path: str, store_id: str, model: str) -> Any:
        with self._errors(store_id, model):
            try:
                data = self._fs.cat_file(path)
            except FileNotFoundError:
                return None
            try:
                return json.loads(data)
            except json.JSONDecodeError as exc:
                raise ThreadsError(f"Corrupt document: {exc}", store_id=store_id, model=model) from None

    def _write_json(self, path: str, data: Any, store_id: str, model: str) -> None:
        # A single PUT replaces the object atomically.
        with self._errors(store_id, model):
            self._fs.pipe_file(path, json.dumps(data, sort_keys=True).encode("utf-8"))

    # endregion

    # region: storage primitives

    def _check_connection(self) -> None:
        """List the bucket, retrying while the endpoint is unreachable."""
        from tenacity import (
            before_sleep_log,
            retry,
            retry_if_exception_type,
            stop_after_attempt,
            wait_exponential,
        )

        @retry(
            retry=retry_if_exception_type(ClientUnavailable),
            stop=stop_after_attempt(self._connect_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
            reraise=True,
        )
        def _do_check() -> None:
            log.info("Connecting to %s (bucket %s)", self._config.host, self._bucket)
            with self._errors():
                try:
                    self._fs.ls(self._bucket, refresh=True)
                except FileNotFoundError:
                    raise ClientUnavailable(f"Bucket not found: {self._bucket}", client=self.name) from None

        _do_check()
        log.info("S3 connection established.")

    def _create_store(self, store_id: str) -> None:
        self._write_json(f"{self._store_path(store_id)}/{_STORE_MARKER}", {"id": store_id}, store_id, "")

    def _store_exists(self, store_id: str) -> bool:
        try:
            marker = f"{self._store_path(store_id)}/{_STORE_MARKER}"
        except NotFound:
            return False
        with self._errors(store_id):
            return bool(self._fs.exists(marker))

    def _load_schema(self, store_id: str, model: str) -> dict[str, Any] | None:
        return self._read_json(self._model_path(store_id, model, _SCHEMA_SUFFIX), store_id, model)  # type: ignore[no-any-return]

    def _save_schema(self, store_id: str, model: str, schema: dict[str, Any]) -> None:
        self._write_json(self._model_path(store_id, model, _SCHEMA_SUFFIX), schema, store_id, model)

    def _load_entities(self, store_id: str, model: str) -> dict[str, Entity]:
        return self._read_json(self._model_path(store_id, model, _ENTITIES_SUFFIX), store_id, model) or {}

    def _save_entities(self, store_id: str, model: str, entities: dict[str, Entity]) -> None:
        self._write_json(self._model_path(store_id, model, _ENTITIES_SUFFIX), entities, store_id, model)

    def _addresses(self, store_id: str) -> list[str]:
        path = self._store_path(store_id)
        addresses = [f"s3://{path}"]
        if self._endpoint_url is not None:
            addresses.append(f"{self._endpoint_url.rstrip('/')}/{path}")
        return addresses

    # endregion

    # region: lifecycle

    def close(self) -> None:
        super().close()
        if self._fs_instance is not None:
            self._fs_instance.clear_instance_cache()
            self._fs_instance = None

    # endregion
