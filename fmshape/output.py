from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TextIO

import yaml

from .errors import ConfigError

__all__ = ["OUTPUT_FORMATS", "serialize", "to_markdown", "to_xml", "write_output"]

OUTPUT_FORMATS = ("json", "yaml", "xml", "markdown")

_XML_ROOT = "root"
_MAX_HEADING = 6
_MARKDOWN_SPECIALS = str.maketrans({char: f"\\{char}" for char in "*_[]`"})


def serialize(payload: Any, output_format: str = "json") -> str:
    """Serialise ``payload``; strings (rendered text templates) pass through."""

    if isinstance(payload, str):
        return payload if payload.endswith("\n") else payload + "\n"
    if output_format == "json":
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    if output_format == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
    if output_format == "xml":
        return to_xml(payload)
    if output_format == "markdown":
        return to_markdown(payload)
    raise ConfigError(f"Unsupported output format: {output_format}", output_format=output_format)


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _xml_element(parent: ET.Element | None, tag: str, value: Any) -> ET.Element:
    element = ET.Element(tag) if parent is None else ET.SubElement(parent, tag)
    if isinstance(value, Mapping):
        for key, child in value.items():
            _xml_element(element, str(key), child)
    elif isinstance(value, list):
        for index, child in enumerate(value):
            _xml_element(element, "item", child).set("index", str(index))
    else:
        element.text = _scalar_text(value)
    return element


def to_xml(payload: Any) -> str:
    """Render ``payload`` under a ``<root>`` element.

    Mapping keys become child elements and list entries become ``<item>``
    elements carrying their position in an ``index`` attribute.
    """

    tree = _xml_element(None, _XML_ROOT, payload)
    ET.indent(tree, space="  ")
    body = ET.tostring(tree, encoding="unicode", short_empty_elements=False)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def _markdown_scalar(value: Any) -> str:
    if value is None:
        return "_null_"
    if isinstance(value, str) and "\n" in value:
        return f"\n```\n{value}\n```"
    return _scalar_text(value).translate(_MARKDOWN_SPECIALS)


def _markdown_lines(value: Any, depth: int) -> list[str]:
    if isinstance(value, Mapping):
        if not value:
            return ["_empty object_"]
        heading = "#" * min(depth, _MAX_HEADING)
        lines: list[str] = []
        for key, child in value.items():
            if isinstance(child, (Mapping, list)):
                lines.extend([f"{heading} {key}", ""])
                lines.extend(_markdown_lines(child, depth + 1))
            else:
                lines.append(f"**{key}**: {_markdown_scalar(child)}")
        return lines
    if isinstance(value, list):
        if not value:
            return ["_empty array_"]
        lines = []
        for index, item in enumerate(value):
            if isinstance(item, Mapping):
                lines.append(f"- Item {index}:")
                lines.extend(f"  **{key}**: {_markdown_scalar(field)}" for key, field in item.items())
            else:
                lines.append(f"- {_markdown_scalar(item)}")
        return lines
    return [_markdown_scalar(value)]


def to_markdown(payload: Any) -> str:
    """Render ``payload`` as headed sections, bold fields and bullet lists."""

    return "\n".join(_markdown_lines(payload, 1)) + "\n"


def write_output(
    payload: Any,
    output_format: str = "json",
    *,
    path: Path | None = None,
    stream: TextIO | None = None,
) -> str:
    text = serialize(payload, output_format)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    elif stream is not None:
        stream.write(text)
    return text
