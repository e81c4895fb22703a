"""Copy-on-write wrapper around one document's front matter."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from .errors import InvalidType
from .paths import read_path, write_path

__all__ = ["FrontmatterData"]


class FrontmatterData:
    """Immutable view of a front-matter mapping addressed by path expressions.

    ``set`` returns a new instance; the receiver is never modified, so several
    directive phases may read the same source data independently.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise InvalidType("mapping", data)
        self._data: dict[str, Any] = copy.deepcopy(dict(data))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FrontmatterData:
        return cls(data)

    @classmethod
    def _adopt(cls, data: dict[str, Any]) -> FrontmatterData:
        instance = cls.__new__(cls)
        instance._data = data
        return instance

    def get(self, path: str) -> Any:
        """Return a copy of the value at ``path`` (or ``NOT_FOUND``)."""

        return copy.deepcopy(read_path(self._data, path))

    def set(self, path: str, value: Any) -> FrontmatterData:
        return self._adopt(write_path(self._data, path, value))

    def replace(self, data: Mapping[str, Any]) -> FrontmatterData:
        return type(self)(data)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def keys(self) -> list[str]:
        """Dotted paths of every leaf value; lists count as leaves."""

        return list(_leaf_paths(self._data, ""))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FrontmatterData):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"FrontmatterData({self._data!r})"


def _leaf_paths(value: Mapping[str, Any], prefix: str) -> Iterator[str]:
    for key, item in value.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(item, Mapping) and item:
            yield from _leaf_paths(item, path)
        else:
            yield path
