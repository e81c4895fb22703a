"""Path expressions over nested front-matter data.

A path is a ``.``-separated list of segments.  Each segment names a mapping key
and may carry one bracket suffix:

* ``name[]`` projects over the array at ``name``; the rest of the path is
  evaluated against every element.
* ``name[N]`` selects element ``N`` of the array at ``name``.

Array element schemas are never addressed through an ``items`` hierarchy
segment, and reads never fall back to some other array when the addressed one
is missing.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .errors import EmptyInput, InvalidPath, InvalidType

__all__ = ["NOT_FOUND", "PathSegment", "parse_path", "read_path", "write_path"]

_SEGMENT_RE = re.compile(r"^(?P<name>[^\[\]]+)(?:\[(?P<index>\d*)\])?$")


class _NotFound:
    """Marker for a path that does not resolve."""

    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _NotFound:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _NotFound:
        return self


NOT_FOUND = _NotFound()


@dataclass(frozen=True, slots=True)
class PathSegment:
    name: str
    index: int | None = None
    project: bool = False

    def __str__(self) -> str:
        if self.project:
            return f"{self.name}[]"
        if self.index is not None:
            return f"{self.name}[{self.index}]"
        return self.name


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Split ``path`` into validated segments.

    Raises :class:`EmptyInput` for a blank path and :class:`InvalidPath` for
    stray dots or malformed bracket notation.
    """

    if not isinstance(path, str):
        raise InvalidType("string path", path)
    return _parse(path)


@lru_cache(maxsize=512)
def _parse(path: str) -> tuple[PathSegment, ...]:
    if not path.strip():
        raise EmptyInput("Path expression must not be empty")
    if path.startswith("."):
        raise InvalidPath(path, "leading dot")
    if path.endswith("."):
        raise InvalidPath(path, "trailing dot")
    if ".." in path:
        raise InvalidPath(path, "consecutive dots")

    segments: list[PathSegment] = []
    for raw in path.split("."):
        match = _SEGMENT_RE.match(raw)
        if match is None:
            raise InvalidPath(path, f"malformed segment {raw!r}")
        name = match.group("name")
        if name != name.strip():
            raise InvalidPath(path, f"segment {raw!r} has surrounding whitespace")
        index = match.group("index")
        if index is None:
            segments.append(PathSegment(name))
        elif index == "":
            segments.append(PathSegment(name, project=True))
        else:
            segments.append(PathSegment(name, index=int(index)))
    return tuple(segments)


def has_projection(path: str) -> bool:
    return any(segment.project for segment in parse_path(path))


def read_path(data: Any, path: str) -> Any:
    """Return the value at ``path`` or :data:`NOT_FOUND`.

    Paths that contain a ``[]`` projection always produce a list: elements
    where the remainder is absent or ``null`` contribute nothing, and a missing
    array anywhere along the way yields ``[]``.
    """

    segments = parse_path(path)
    result = _read(data, segments)
    if result is NOT_FOUND and any(segment.project for segment in segments):
        return []
    return result


def _read(value: Any, segments: Sequence[PathSegment]) -> Any:
    if not segments:
        return value
    head, rest = segments[0], segments[1:]
    if not isinstance(value, Mapping) or head.name not in value:
        return NOT_FOUND
    current = value[head.name]

    if head.index is not None:
        if not isinstance(current, list) or head.index >= len(current):
            return NOT_FOUND
        return _read(current[head.index], rest)

    if head.project:
        if not isinstance(current, list):
            return NOT_FOUND
        if not rest:
            return list(current)
        collected: list[Any] = []
        for element in current:
            found = _read(element, rest)
            if found is NOT_FOUND or found is None:
                continue
            collected.append(found)
        return collected

    return _read(current, rest)


def write_path(data: Mapping[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Return a copy of ``data`` with ``value`` stored at ``path``.

    Intermediate mappings are created as needed and any non-mapping value in
    the way is replaced.  A trailing ``[]`` stores ``value`` as the whole
    array.  A ``[]`` in the middle of the path distributes the elements of
    ``value`` by index over the array, merging into existing element mappings
    and keeping elements beyond the length of ``value``.
    """

    if not isinstance(data, Mapping):
        raise InvalidType("mapping", data, path=path)
    segments = parse_path(path)
    result = copy.deepcopy(dict(data))
    _write(result, segments, copy.deepcopy(value))
    return result


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _write(container: dict[str, Any], segments: Sequence[PathSegment], value: Any) -> None:
    head, rest = segments[0], segments[1:]

    if head.project:
        if not rest:
            container[head.name] = _as_list(value)
            return
        existing = container.get(head.name)
        elements = list(existing) if isinstance(existing, list) else []
        for position, item in enumerate(_as_list(value)):
            if position < len(elements) and isinstance(elements[position], Mapping):
                element = dict(elements[position])
            else:
                element = {}
            _write(element, rest, item)
            if position < len(elements):
                elements[position] = element
            else:
                elements.append(element)
        container[head.name] = elements
        return

    if head.index is not None:
        existing = container.get(head.name)
        elements = list(existing) if isinstance(existing, list) else []
        while len(elements) <= head.index:
            elements.append({} if rest else None)
        if rest:
            target = elements[head.index]
            element = dict(target) if isinstance(target, Mapping) else {}
            _write(element, rest, value)
            elements[head.index] = element
        else:
            elements[head.index] = value
        container[head.name] = elements
        return

    if not rest:
        container[head.name] = value
        return
    child = container.get(head.name)
    child = dict(child) if isinstance(child, Mapping) else {}
    _write(child, rest, value)
    container[head.name] = child
