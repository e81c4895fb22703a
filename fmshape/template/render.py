"""Fill JSON, YAML or plain-text templates with transformed data.

Placeholders are ``{{path}}`` or ``{path}`` where ``path`` is a path
expression.  A string that is exactly one placeholder takes the raw value;
placeholders embedded in longer strings are interpolated as text.  Unknown
paths leave the placeholder untouched.  ``{@items}`` expands to the rendered
items of the frontmatter-part array: spliced into a list, substituted for a
whole string value, or joined with newlines in a text template.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..errors import DataShapeError, TemplateError
from ..paths import NOT_FOUND, read_path

LOGGER = logging.getLogger(__name__)

__all__ = ["Template", "load_template", "render_template", "render_output"]

_PLACEHOLDER_RE = re.compile(r"\{\{([\w.@\-\[\]]+)\}\}|\{([\w.@\-\[\]]+)\}")
_ITEMS_MARKERS = {"{@items}", "{{@items}}"}
_STRUCTURED_SUFFIXES = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


@dataclass(frozen=True, slots=True)
class Template:
    path: str
    content: Any
    format: str

    @property
    def is_text(self) -> bool:
        return self.format == "text"


def load_template(path: Path | str) -> Template:
    template_path = Path(path)
    if not template_path.exists():
        raise TemplateError(f"Template not found: {template_path}", path=str(template_path))
    try:
        raw = template_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateError(
            f"Failed to read template {template_path}: {exc}", path=str(template_path)
        ) from exc

    fmt = _STRUCTURED_SUFFIXES.get(template_path.suffix.lower(), "text")
    if fmt == "json":
        try:
            content: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TemplateError(
                f"Failed to parse template {template_path}: {exc}", path=str(template_path)
            ) from exc
    elif fmt == "yaml":
        try:
            content = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise TemplateError(
                f"Failed to parse template {template_path}: {exc}", path=str(template_path)
            ) from exc
    else:
        content = raw
    return Template(path=str(template_path), content=content, format=fmt)


def _lookup(data: Mapping[str, Any], name: str) -> Any:
    try:
        return read_path(data, name)
    except DataShapeError:
        return NOT_FOUND


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False)


def _interpolate(text: str, data: Mapping[str, Any]) -> str:
    def substitute(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        if name.startswith("@"):
            return match.group(0)
        value = _lookup(data, name)
        if value is NOT_FOUND:
            return match.group(0)
        return _as_text(value)

    return _PLACEHOLDER_RE.sub(substitute, text)


def _render_value(value: Any, data: Mapping[str, Any], items: list[Any] | None) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped in _ITEMS_MARKERS and items is not None:
            return copy.deepcopy(items)
        whole = _PLACEHOLDER_RE.fullmatch(stripped)
        if whole is not None:
            name = whole.group(1) or whole.group(2)
            if name.startswith("@"):
                return value
            found = _lookup(data, name)
            return value if found is NOT_FOUND else copy.deepcopy(found)
        return _interpolate(value, data)
    if isinstance(value, list):
        rendered: list[Any] = []
        for element in value:
            if isinstance(element, str) and element.strip() in _ITEMS_MARKERS and items is not None:
                rendered.extend(copy.deepcopy(items))
            else:
                rendered.append(_render_value(element, data, items))
        return rendered
    if isinstance(value, Mapping):
        return {key: _render_value(item, data, items) for key, item in value.items()}
    return value


def render_template(
    template: Template,
    data: Mapping[str, Any],
    items: Sequence[Any] | None = None,
) -> Any:
    expanded = list(items) if items is not None else None
    if template.is_text:
        text = template.content
        if expanded is not None:
            joined = "\n".join(_as_text(item) for item in expanded)
            for marker in _ITEMS_MARKERS:
                text = text.replace(marker, joined)
        return _interpolate(text, data)
    return _render_value(template.content, data, expanded)


def render_output(
    container: Template,
    data: Mapping[str, Any],
    items: Sequence[Any] | None = None,
    items_template: Template | None = None,
) -> Any:
    """Render the container template, expanding items through ``items_template``."""

    rendered_items: list[Any] | None = None
    if items is not None:
        if items_template is None:
            rendered_items = list(items)
        else:
            rendered_items = [
                render_template(items_template, item if isinstance(item, Mapping) else {})
                for item in items
            ]
        LOGGER.debug("Rendered %d item(s) for %s", len(rendered_items), container.path)
    return render_template(container, data, rendered_items)
