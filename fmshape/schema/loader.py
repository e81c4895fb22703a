from __future__ import annotations

import json
import logging
import posixpath
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import yaml
from jsonschema import validators
from jsonschema.exceptions import SchemaError

from ..errors import EngineError, ParseError, ReadError, SchemaNotFound
from .models import SchemaNode

LOGGER = logging.getLogger(__name__)

__all__ = [
    "SchemaLoader",
    "FileSchemaLoader",
    "InMemorySchemaLoader",
    "load_schema_document",
]

_YAML_SUFFIXES = {".yaml", ".yml"}


class SchemaLoader(Protocol):
    """Collaborator that turns a schema location into a parsed schema tree."""

    def load(self, path: str) -> SchemaNode:  # pragma: no cover - protocol
        ...


def load_schema_document(path: Path) -> dict[str, Any]:
    """Read a JSON or YAML schema file and sanity-check its structure."""

    if not path.exists():
        raise SchemaNotFound(str(path))
    try:
        with path.open("r", encoding="utf-8") as handle:
            if path.suffix.lower() in _YAML_SUFFIXES:
                try:
                    document = yaml.safe_load(handle) or {}
                except yaml.YAMLError as exc:
                    raise ParseError(str(path), str(exc)) from exc
            else:
                try:
                    document = json.load(handle)
                except json.JSONDecodeError as exc:
                    raise ParseError(str(path), str(exc)) from exc
    except OSError as exc:
        raise ReadError(str(path), str(exc)) from exc

    if not isinstance(document, Mapping):
        raise ParseError(
            str(path), f"schema must be a mapping, got {type(document).__name__}"
        )
    _check_schema(document, str(path))
    return dict(document)


def _check_schema(document: Mapping[str, Any], location: str) -> None:
    try:
        validator_cls = validators.validator_for(document)
        validator_cls.check_schema(document)
    except SchemaError as exc:
        raise ParseError(location, f"schema failed validation: {exc.message}") from exc


class FileSchemaLoader:
    """Load schema files from disk, caching parsed trees per resolved path.

    The cache is shared by every resolution that uses this loader; it is
    guarded by a lock so concurrent resolutions never race on it.  Cached
    trees are immutable, so handing out the same instance is safe.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self._base_dir = Path(base_dir).expanduser() if base_dir is not None else None
        self._cache: dict[Path, SchemaNode] = {}
        self._lock = threading.Lock()

    def load(self, path: str) -> SchemaNode:
        target = Path(path).expanduser()
        if not target.is_absolute() and self._base_dir is not None:
            target = self._base_dir / target
        target = target.resolve()

        with self._lock:
            cached = self._cache.get(target)
        if cached is not None:
            return cached

        LOGGER.debug("Loading schema document %s", target)
        document = load_schema_document(target)
        try:
            node = SchemaNode.from_mapping(document)
        except EngineError as exc:
            raise ParseError(str(target), exc.message) from exc

        with self._lock:
            return self._cache.setdefault(target, node)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


class InMemorySchemaLoader:
    """Serve schema documents from a mapping keyed by normalized path."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]]) -> None:
        self._documents = {posixpath.normpath(key): value for key, value in documents.items()}
        self.calls: list[str] = []

    def load(self, path: str) -> SchemaNode:
        key = posixpath.normpath(path)
        self.calls.append(key)
        if key not in self._documents:
            raise SchemaNotFound(path)
        return SchemaNode.from_mapping(self._documents[key])
