from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import FrontmatterPartNotFound, InvalidState, InvalidType
from ..paths import NOT_FOUND, read_path
from ..schema.models import DirectiveKind, SchemaKind, SchemaNode
from .resolver import TemplateContext

LOGGER = logging.getLogger(__name__)

__all__ = [
    "REGISTRY_FIELDS",
    "StructureType",
    "StructureInfo",
    "ShapedOutput",
    "detect_structure",
    "find_frontmatter_part_path",
    "shape_output",
]

# Property names of a command-registry entry; two of them make a registry.
REGISTRY_FIELDS = ("c1", "c2", "c3")
_REGISTRY_MIN_MATCHES = 2
_REGISTRY_PATH = "tools.commands"


class StructureType(str, Enum):
    REGISTRY = "registry"
    COLLECTION = "collection"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class StructureInfo:
    kind: StructureType
    path: str
    from_directive: bool = False


@dataclass(frozen=True, slots=True)
class ShapedOutput:
    container: dict[str, Any]
    items: list[Any] | None
    structure: StructureInfo


def find_frontmatter_part_path(schema: SchemaNode) -> str | None:
    """Dotted path of the first property flagged ``x-frontmatter-part``."""

    return _find_anchor(schema, ())


def _find_anchor(node: SchemaNode, path: tuple[str, ...]) -> str | None:
    for name, child in node.properties.items():
        child_path = path + (name,)
        if child.directive(DirectiveKind.FRONTMATTER_PART.value) is True:
            return ".".join(child_path)
        found = _find_anchor(child, child_path)
        if found is not None:
            return found
    return None


def _looks_like_registry(node: SchemaNode | None) -> bool:
    if node is None:
        return False
    matches = sum(1 for name in node.properties if name in REGISTRY_FIELDS)
    return matches >= _REGISTRY_MIN_MATCHES


def _node_at(schema: SchemaNode, path: str) -> SchemaNode | None:
    current: SchemaNode | None = schema
    for segment in path.split("."):
        if current is None:
            return None
        current = current.properties.get(segment)
    return current


def _first_array(node: SchemaNode, path: tuple[str, ...]) -> tuple[str, SchemaNode] | None:
    for name, child in node.properties.items():
        if child.kind is SchemaKind.ARRAY:
            return ".".join(path + (name,)), child
    for name, child in node.properties.items():
        found = _first_array(child, path + (name,))
        if found is not None:
            return found
    return None


def detect_structure(schema: SchemaNode) -> StructureInfo:
    """Classify the output shape of ``schema``.

    The ``x-frontmatter-part`` placement decides when present.  Otherwise an
    array whose item schema carries registry fields makes a registry, the
    first array property makes a collection, and a schema without arrays is a
    collection rooted at ``items``.
    """

    anchor = find_frontmatter_part_path(schema)
    if anchor is not None:
        node = _node_at(schema, anchor)
        item_schema = node.items if node is not None else None
        if anchor == _REGISTRY_PATH or _looks_like_registry(item_schema):
            return StructureInfo(StructureType.REGISTRY, anchor, True)
        if "." in anchor:
            return StructureInfo(StructureType.CUSTOM, anchor, True)
        return StructureInfo(StructureType.COLLECTION, anchor, True)

    if _looks_like_registry(schema):
        return StructureInfo(StructureType.REGISTRY, "")
    located = _first_array(schema, ())
    if located is not None:
        path, node = located
        if _looks_like_registry(node.items):
            return StructureInfo(StructureType.REGISTRY, path)
        if "." in path:
            return StructureInfo(StructureType.CUSTOM, path)
        return StructureInfo(StructureType.COLLECTION, path)
    LOGGER.debug("No array properties found; assuming an 'items' collection")
    return StructureInfo(StructureType.COLLECTION, "items")


def shape_output(
    data: Mapping[str, Any],
    schema: SchemaNode,
    context: TemplateContext | None = None,
) -> ShapedOutput:
    """Split transformed data into container data and, for dual templates, items.

    Items come from the ``x-frontmatter-part`` array, or from the array that
    :func:`detect_structure` settles on when no property carries the flag.
    :class:`FrontmatterPartNotFound` is raised only when neither the schema
    nor the data holds such an array.
    """

    if not isinstance(data, Mapping):
        raise InvalidType("mapping", data)
    structure = detect_structure(schema)
    container = dict(data)
    if context is None or not context.is_dual:
        return ShapedOutput(container=container, items=None, structure=structure)

    location = structure.path
    if not location:
        raise FrontmatterPartNotFound(
            "x-template-items needs an array flagged x-frontmatter-part or a detectable one"
        )
    items = read_path(data, location)
    if items is NOT_FOUND:
        if _node_at(schema, location) is None:
            raise FrontmatterPartNotFound(
                "x-template-items needs an array flagged x-frontmatter-part or a detectable one"
            )
        items = []
    if not isinstance(items, list):
        raise InvalidState(
            f"Items template needs an array at '{location}', found {type(items).__name__}",
            path=location,
        )
    if not structure.from_directive:
        LOGGER.debug("Rendering items from detected %s array '%s'", structure.kind.value, location)
    return ShapedOutput(container=container, items=list(items), structure=structure)
