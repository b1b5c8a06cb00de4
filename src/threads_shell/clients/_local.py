"""Local filesystem client: one directory per store, stdlib only."""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from threads_shell._config import ClientConfig
from threads_shell._errors import ClientUnavailable, NotFound, PermissionDenied, SchemaViolation, ThreadsError
from threads_shell.clients._base import MODEL_NAME, DocumentClient

if TYPE_CHECKING:
    from collections.abc import Iterator

    from threads_shell._types import Entity

_SCHEMA_SUFFIX = ".schema.json"
_ENTITIES_SUFFIX = ".entities.json"


class LocalClient(DocumentClient):
    """Client persisting stores as JSON files under ``root``.

    Layout: ``<root>/<store_id>/<model>.schema.json`` and
    ``<root>/<store_id>/<model>.entities.json``. Files are replaced atomically.

    :param root: Directory holding all stores; created if missing.
    :param config: Optional configuration; ``host`` defaults to the root's ``file://`` URI.
    """

    def __init__(self, root: str, *, config: ClientConfig | None = None) -> None:
        if not root or not str(root).strip():
            raise ValueError("root must be a non-empty path")
        self._root = Path(root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        config = config or ClientConfig(type="local", options={"root": str(root)})
        if not config.host:
            config = ClientConfig(type=config.type, host=self._root.as_uri(), options=config.options)
        super().__init__(config)

    @property
    def name(self) -> str:
        return "local"

    @property
    def root(self) -> Path:
        return self._root

    # region: path safety
    def _store_dir(self, store_id: str) -> Path:
        """Resolve a store directory, rejecting ids that escape the root."""
        resolved = (self._root / store_id).resolve()
        if resolved.parent != self._root:
            raise NotFound(f"Store not found: {store_id}", store_id=store_id, client=self.name)
        return resolved

    def _model_file(self, store_id: str, model: str, suffix: str) -> Path:
        if not MODEL_NAME.match(model):
            raise SchemaViolation(f"Invalid model name: {model!r}", store_id=store_id, model=model)
        return self._store_dir(store_id) / f"{model}{suffix}"

    # endregion

    # region: helpers
    @contextmanager
    def _errors(self, store_id: str = "", model: str | None = None) -> Iterator[None]:
        """Map filesystem exceptions to threads_shell errors."""
        try:
            yield
        except ThreadsError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {store_id}/{model or ''}", store_id=store_id, model=model) from None
        except PermissionError:
            raise PermissionDenied(f"Permission denied: {store_id}", store_id=store_id, model=model) from None
        except json.JSONDecodeError as exc:
            raise ThreadsError(f"Corrupt document: {exc}", store_id=store_id, model=model) from None

    @staticmethod
    def _write_json(path: Path, data: Any) -> None:
        """Write ``data`` via a temp file in the same directory and ``os.replace``."""
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, str(path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # endregion

    # region: storage primitives
    def _check_connection(self) -> None:
        if not self._root.is_dir() or not os.access(self._root, os.R_OK | os.W_OK):
            raise ClientUnavailable(f"Store root is not a writable directory: {self._root}", client=self.name)

    def _create_store(self, store_id: str) -> None:
        with self._errors(store_id):
            self._store_dir(store_id).mkdir()

    def _store_exists(self, store_id: str) -> bool:
        try:
            return self._store_dir(store_id).is_dir()
        except NotFound:
            return False

    def _load_schema(self, store_id: str, model: str) -> dict[str, Any] | None:
        path = self._model_file(store_id, model, _SCHEMA_SUFFIX)
        with self._errors(store_id, model):
            if not path.is_file():
                return None
            return json.loads(path.read_text(encoding="utf-8"))  # type: ignore[no-any-return]

    def _save_schema(self, store_id: str, model: str, schema: dict[str, Any]) -> None:
        with self._errors(store_id, model):
            self._write_json(self._model_file(store_id, model, _SCHEMA_SUFFIX), schema)

    def _load_entities(self, store_id: str, model: str) -> dict[str, Entity]:
        path = self._model_file(store_id, model, _ENTITIES_SUFFIX)
        with self._errors(store_id, model):
            if not path.is_file():
                return {}
            return json.loads(path.read_text(encoding="utf-8"))  # type: ignore[no-any-return]

    def _save_entities(self, store_id: str, model: str, entities: dict[str, Entity]) -> None:
        with self._errors(store_id, model):
            self._write_json(self._model_file(store_id, model, _ENTITIES_SUFFIX), entities)

    def _addresses(self, store_id: str) -> list[str]:
        return [self._store_dir(store_id).as_uri()]

    # endregion
