"""Collect front matter from Markdown files."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .md_parser import parse_markdown

LOGGER = logging.getLogger(__name__)

DEFAULT_PATTERNS = ("*.md", "*.markdown")


@dataclass(frozen=True)
class SourceDocument:
    path: Path
    body: str
    frontmatter: dict[str, Any]


def scan_documents(
    source_dir: Path,
    patterns: Sequence[str] | None = None,
) -> list[SourceDocument]:
    """Parse every matching file below ``source_dir`` in sorted path order."""

    if not source_dir.exists():
        raise FileNotFoundError(f"Source directory does not exist: {source_dir}")

    documents: list[SourceDocument] = []
    for file_path in _iter_files(source_dir, patterns or DEFAULT_PATTERNS):
        body, frontmatter = parse_markdown(file_path)
        documents.append(SourceDocument(path=file_path, body=body, frontmatter=frontmatter))

    documents.sort(key=lambda doc: doc.path.relative_to(source_dir).as_posix())
    LOGGER.debug("Scanned %d document(s) under %s", len(documents), source_dir)
    return documents


def load_documents(paths: Iterable[Path], patterns: Sequence[str] | None = None) -> list[SourceDocument]:
    """Expand directories and read individual files, keeping argument order."""

    documents: list[SourceDocument] = []
    for path in paths:
        if path.is_dir():
            documents.extend(scan_documents(path, patterns))
        elif path.is_file():
            body, frontmatter = parse_markdown(path)
            documents.append(SourceDocument(path=path, body=body, frontmatter=frontmatter))
        else:
            raise FileNotFoundError(f"Input does not exist: {path}")
    return documents


def _iter_files(source_dir: Path, patterns: Sequence[str]) -> Iterator[Path]:
    seen: set[Path] = set()
    for pattern in patterns:
        for path in source_dir.rglob(pattern):
            if path.is_file():
                seen.add(path)
    yield from sorted(seen)
