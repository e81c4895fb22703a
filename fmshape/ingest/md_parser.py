from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..errors import ParseError, ReadError

_FENCE = "---"
_CLOSING_FENCES = {"---", "..."}


def parse_markdown(path: Path) -> tuple[str, dict[str, Any]]:
    """Parse a Markdown document returning its body and front matter.

    The front matter is the YAML block between a first line that only
    contains ``---`` and the next ``---`` (or ``...``) line.  Documents
    without such a block yield an empty mapping.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ReadError(str(path), str(exc)) from exc
    return parse_markdown_text(raw, str(path))


def parse_markdown_text(raw: str, source: str = "<string>") -> tuple[str, dict[str, Any]]:
    front_matter_text, body_lines = _split_front_matter(raw)
    body_text = "\n".join(body_lines).lstrip("\n")
    if front_matter_text is None:
        return body_text, {}
    return body_text, _parse_front_matter(front_matter_text, source)


def _split_front_matter(raw: str) -> tuple[str | None, list[str]]:
    lines = raw.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != _FENCE:
        return None, lines
    for index in range(1, len(lines)):
        if lines[index].strip() in _CLOSING_FENCES:
            return "\n".join(lines[1:index]), lines[index + 1 :]
    return None, lines


def _parse_front_matter(front_text: str, source: str) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(front_text) or {}
    except yaml.YAMLError as exc:
        raise ParseError(source, f"invalid front matter: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ParseError(
            source, f"front matter must yield a mapping, got {type(loaded).__name__}"
        )
    return loaded
