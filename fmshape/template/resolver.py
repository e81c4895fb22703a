"""Locate the container and items templates declared by a schema.

Template paths are resolved against the directory of the schema that declares
them; absolute paths are kept as written.  ``x-template`` is mandatory for
template-driven output.  ``x-template-items`` is optional and a value without
a file extension degrades to single-template processing.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from ..errors import InvalidDirectiveValue, MissingContainerTemplate
from ..schema.models import DirectiveKind, SchemaNode

LOGGER = logging.getLogger(__name__)

__all__ = [
    "TemplateRef",
    "TemplateContext",
    "resolve_relative",
    "resolve_template_path",
    "resolve_items_template_path",
    "resolve_template_context",
]


@dataclass(frozen=True, slots=True)
class TemplateRef:
    path: str
    kind: Literal["container", "items"]


@dataclass(frozen=True, slots=True)
class TemplateContext:
    container_template: TemplateRef
    items_template: TemplateRef | None = None
    resolved_extensions: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_dual(self) -> bool:
        return self.items_template is not None

    @property
    def template_format(self) -> str | None:
        return self.resolved_extensions.get(DirectiveKind.TEMPLATE_FORMAT.value)


def resolve_relative(template: str, schema_location: str) -> str:
    if posixpath.isabs(template):
        return template
    base_dir = posixpath.dirname(schema_location)
    return posixpath.normpath(posixpath.join(base_dir, template))


def resolve_template_path(
    schema: SchemaNode,
    schema_location: str,
    explicit: str | None = None,
) -> str:
    """Return the container template path.

    ``explicit`` (for example a command-line override) wins over the schema's
    ``x-template`` and is used as given.
    """

    if explicit:
        return explicit
    value = schema.directive(DirectiveKind.TEMPLATE.value)
    if value is None:
        raise MissingContainerTemplate(schema_location)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDirectiveValue(
            DirectiveKind.TEMPLATE.value, value, "non-empty template path"
        )
    return resolve_relative(value, schema_location)


def resolve_items_template_path(schema: SchemaNode, schema_location: str) -> str | None:
    value = _items_template_value(schema)
    if value is None:
        return None
    if not isinstance(value, str) or not posixpath.splitext(value)[1]:
        LOGGER.warning(
            "Ignoring x-template-items %r in %s: not a template file path",
            value,
            schema_location or "<schema>",
        )
        return None
    return resolve_relative(value, schema_location)


def _items_template_value(schema: SchemaNode) -> Any:
    name = DirectiveKind.TEMPLATE_ITEMS.value
    if name in schema.directives:
        return schema.directives[name]
    # Fall back to the frontmatter-part array, the other place authors put it.
    for child in schema.properties.values():
        if child.directive(DirectiveKind.FRONTMATTER_PART.value) is True and name in child.directives:
            return child.directives[name]
    return None


def resolve_template_context(
    schema: SchemaNode,
    schema_location: str = "",
    explicit: str | None = None,
) -> TemplateContext:
    container = TemplateRef(resolve_template_path(schema, schema_location, explicit), "container")
    items_path = resolve_items_template_path(schema, schema_location)
    items = TemplateRef(items_path, "items") if items_path is not None else None
    return TemplateContext(
        container_template=container,
        items_template=items,
        resolved_extensions=MappingProxyType(dict(schema.directives)),
    )
