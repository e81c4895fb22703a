from __future__ import annotations

from pathlib import Path

import pytest

from fmshape.errors import ParseError, ReadError
from fmshape.ingest.md_parser import parse_markdown, parse_markdown_text
from fmshape.ingest.scanner import load_documents, scan_documents


def test_front_matter_and_body(write_markdown, tmp_path: Path) -> None:
    path = write_markdown(
        tmp_path / "cmd.md",
        """
        ---
        c1: git
        c2: clone
        tags: [vcs]
        ---

        # Clone

        Body text.
        """,
    )
    body, frontmatter = parse_markdown(path)
    assert frontmatter == {"c1": "git", "c2": "clone", "tags": ["vcs"]}
    assert body.startswith("# Clone")


def test_dots_close_the_block() -> None:
    body, frontmatter = parse_markdown_text("---\na: 1\n...\ntext\n")
    assert frontmatter == {"a": 1}
    assert body == "text"


def test_byte_order_mark_is_ignored() -> None:
    _, frontmatter = parse_markdown_text("\ufeff---\na: 1\n---\n")
    assert frontmatter == {"a": 1}


@pytest.mark.parametrize("raw", ["# Title only\n", "---\nunterminated: true\n", "", "---\n---\n"])
def test_missing_or_empty_block_is_empty_mapping(raw: str) -> None:
    assert parse_markdown_text(raw)[1] == {}


def test_invalid_yaml_is_parse_error() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_markdown_text("---\na: [1\n---\n", "doc.md")
    assert excinfo.value.path == "doc.md"


def test_scalar_front_matter_is_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_markdown_text("---\n- a\n- b\n---\n")


def test_unreadable_path_is_read_error(tmp_path: Path) -> None:
    with pytest.raises(ReadError):
        parse_markdown(tmp_path / "missing.md")


def test_scan_is_sorted_and_filtered(write_markdown, tmp_path: Path) -> None:
    write_markdown(tmp_path / "b" / "two.md", "---\nn: 2\n---\n")
    write_markdown(tmp_path / "a.md", "---\nn: 1\n---\n")
    write_markdown(tmp_path / "c.markdown", "---\nn: 3\n---\n")
    (tmp_path / "notes.txt").write_text("---\nn: 9\n---\n", encoding="utf-8")

    documents = scan_documents(tmp_path)
    assert [doc.frontmatter["n"] for doc in documents] == [1, 2, 3]

    only_md = scan_documents(tmp_path, ["*.md"])
    assert [doc.path.name for doc in only_md] == ["a.md", "two.md"]


def test_scan_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        scan_documents(tmp_path / "nope")


def test_load_documents_mixes_files_and_directories(write_markdown, tmp_path: Path) -> None:
    single = write_markdown(tmp_path / "single.md", "---\nn: 0\n---\n")
    write_markdown(tmp_path / "dir" / "x.md", "---\nn: 1\n---\n")
    documents = load_documents([single, tmp_path / "dir"])
    assert [doc.frontmatter["n"] for doc in documents] == [0, 1]

    with pytest.raises(FileNotFoundError):
        load_documents([tmp_path / "ghost.md"])
