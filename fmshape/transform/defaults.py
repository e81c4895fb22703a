"""Fill static JSON-Schema ``default`` values into transformed data."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from ..errors import InvalidSchema, InvalidType
from ..schema.models import DirectiveKind, SchemaNode

__all__ = ["populate_defaults"]


def populate_defaults(
    data: Mapping[str, Any],
    schema: SchemaNode,
    filled: list[str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` where every missing property with a default is set.

    Present values are never overwritten.  Object properties without a
    default of their own are created only when one of their descendants
    receives a default.  A missing ``x-frontmatter-part`` property without a
    default is a schema defect and raises :class:`InvalidSchema`.  The dotted
    paths that received values are appended to ``filled`` when given.
    """

    if not isinstance(data, Mapping):
        raise InvalidType("mapping", data)
    sink = filled if filled is not None else []
    return _fill(copy.deepcopy(dict(data)), schema, "", sink)


def _fill(
    value: dict[str, Any], node: SchemaNode, prefix: str, filled: list[str]
) -> dict[str, Any]:
    for name, child in node.properties.items():
        path = f"{prefix}.{name}" if prefix else name
        if name not in value:
            if child.has_default:
                value[name] = child.default_value()
                filled.append(path)
            elif child.directive(DirectiveKind.FRONTMATTER_PART.value) is True:
                raise InvalidSchema("missing default", property=path)
            elif child.properties:
                nested = _fill({}, child, path, filled)
                if nested:
                    value[name] = nested
            continue

        present = value[name]
        if isinstance(present, Mapping) and child.properties:
            value[name] = _fill(dict(present), child, path, filled)
        elif isinstance(present, list) and child.items is not None and child.items.properties:
            value[name] = [
                _fill(dict(element), child.items, f"{path}[{index}]", filled)
                if isinstance(element, Mapping)
                else element
                for index, element in enumerate(present)
            ]
    return value
