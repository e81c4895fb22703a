"""Validation of raw ``x-*`` values into typed :class:`Directive` records."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..errors import EmptyInput, InvalidDirectiveValue, InvalidPath
from ..paths import parse_path
from .models import Directive, DirectiveKind, SchemaNode

LOGGER = logging.getLogger(__name__)

__all__ = ["TEMPLATE_FORMATS", "parse_directive", "validate_directive_value"]

TEMPLATE_FORMATS = ("json", "yaml", "xml", "markdown")


def _flag(kind: DirectiveKind, value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidDirectiveValue(kind.value, value, "boolean", where)
    return value


def _source_path(kind: DirectiveKind, value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidDirectiveValue(kind.value, value, "non-empty path string", where)
    try:
        parse_path(value)
    except (EmptyInput, InvalidPath) as exc:
        raise InvalidDirectiveValue(
            kind.value, value, "valid path expression", where
        ) from exc
    return value


def _source_paths(kind: DirectiveKind, value: Any, where: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (_source_path(kind, value, where),)
    if isinstance(value, list) and value:
        try:
            return tuple(_source_path(kind, item, where) for item in value)
        except InvalidDirectiveValue as exc:
            raise InvalidDirectiveValue(
                kind.value, value, "list of path strings", where
            ) from exc
    raise InvalidDirectiveValue(
        kind.value, value, "path string or non-empty list of path strings", where
    )


def _flatten_target(kind: DirectiveKind, value: Any, where: str) -> bool | str:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        return _source_path(kind, value, where)
    raise InvalidDirectiveValue(kind.value, value, "boolean or path string", where)


def _expression(kind: DirectiveKind, value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidDirectiveValue(kind.value, value, "non-empty JMESPath expression", where)
    return value


def _template_path(kind: DirectiveKind, value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidDirectiveValue(kind.value, value, "non-empty template path", where)
    return value


def _items_template_path(kind: DirectiveKind, value: Any, where: str) -> str:
    # Extension checks happen at template resolution, where a bad value
    # degrades to single-template output instead of failing.
    if not isinstance(value, str):
        raise InvalidDirectiveValue(kind.value, value, "template path string", where)
    return value


def _template_format(kind: DirectiveKind, value: Any, where: str) -> str:
    if value not in TEMPLATE_FORMATS:
        raise InvalidDirectiveValue(kind.value, value, "one of " + "|".join(TEMPLATE_FORMATS), where)
    return value


_VALIDATORS: dict[DirectiveKind, Callable[[DirectiveKind, Any, str], Any]] = {
    DirectiveKind.FRONTMATTER_PART: _flag,
    DirectiveKind.EXTRACT_FROM: _source_path,
    DirectiveKind.DERIVED_FROM: _source_paths,
    DirectiveKind.DERIVED_UNIQUE: _flag,
    DirectiveKind.FLATTEN_ARRAYS: _flatten_target,
    DirectiveKind.JMESPATH_FILTER: _expression,
    DirectiveKind.TEMPLATE: _template_path,
    DirectiveKind.TEMPLATE_ITEMS: _items_template_path,
    DirectiveKind.TEMPLATE_FORMAT: _template_format,
}


def validate_directive_value(kind: DirectiveKind, value: Any, where: str = "") -> Any:
    """Return the typed payload for ``value`` or raise ``InvalidDirectiveValue``."""

    return _VALIDATORS[kind](kind, value, where)


def parse_directive(
    name: str,
    value: Any,
    path: tuple[str, ...],
    node: SchemaNode | None = None,
) -> Directive | None:
    """Build the directive for one ``x-*`` key, or ``None`` if it is unknown."""

    kind = DirectiveKind.lookup(name)
    where = ".".join(path)
    if kind is None:
        LOGGER.warning("Ignoring unknown schema extension %s at '%s'", name, where or "<root>")
        return None
    payload = validate_directive_value(kind, value, where)
    return Directive(kind=kind, value=payload, path=path, node=node)
