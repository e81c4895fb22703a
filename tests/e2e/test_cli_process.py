from __future__ import annotations

import json
from pathlib import Path
from xml.etree import ElementTree

import pytest
import yaml

from fmshape.cli import main


@pytest.fixture()
def project(tmp_path: Path, write_json, write_markdown) -> Path:
    write_json(
        tmp_path / "schema.json",
        {
            "type": "object",
            "x-template": "template.json",
            "properties": {
                "books": {
                    "type": "array",
                    "x-frontmatter-part": True,
                    "default": [],
                    "items": {
                        "type": "object",
                        "properties": {"title": {"type": "string"}, "tags": {"type": "array"}},
                    },
                },
                "tags": {
                    "type": "array",
                    "x-derived-from": "books[].tags",
                    "x-derived-unique": True,
                },
                "count": {"type": "number", "x-jmespath-filter": "length(books)"},
            },
        },
    )
    write_json(tmp_path / "template.json", {"total": "{count}", "tags": "{tags}"})
    write_markdown(
        tmp_path / "docs" / "a.md",
        """
        ---
        title: Alpha
        tags: [python, yaml]
        ---
        Alpha body.
        """,
    )
    write_markdown(
        tmp_path / "docs" / "b.md",
        """
        ---
        title: Beta
        tags: [python, jmespath]
        ---
        Beta body.
        """,
    )
    return tmp_path


def test_process_writes_rendered_json(project: Path, capsys) -> None:
    exit_code = main(["process", "--schema", str(project / "schema.json"), str(project / "docs")])
    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"total": 2, "tags": ["python", "yaml", "jmespath"]}


def test_process_to_yaml_file(project: Path) -> None:
    out = project / "out" / "result.yaml"
    exit_code = main(
        [
            "process",
            "--schema",
            str(project / "schema.json"),
            "--format",
            "yaml",
            "--unique-order",
            "sorted",
            "-o",
            str(out),
            str(project / "docs"),
        ]
    )
    assert exit_code == 0
    assert yaml.safe_load(out.read_text(encoding="utf-8")) == {
        "total": 2,
        "tags": ["jmespath", "python", "yaml"],
    }


def test_process_to_xml(project: Path, capsys) -> None:
    exit_code = main(
        ["process", "--schema", str(project / "schema.json"), "--format", "xml", str(project / "docs")]
    )
    assert exit_code == 0

    root = ElementTree.fromstring(capsys.readouterr().out.split("\n", 1)[1])
    assert root.tag == "root"
    assert root.findtext("total") == "2"
    assert [item.text for item in root.find("tags")] == ["python", "yaml", "jmespath"]


def test_process_emits_trace(project: Path, capsys) -> None:
    exit_code = main(
        ["process", "--trace", "--schema", str(project / "schema.json"), str(project / "docs")]
    )
    assert exit_code == 0
    lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line.startswith("{")]
    events = [line["event"] for line in lines]
    assert events[0] == "phase_start"
    assert events[-1] == "defaults_applied"
    assert "directive_applied" in events


def test_plan_command(project: Path, capsys) -> None:
    assert main(["plan", "--schema", str(project / "schema.json")]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [phase["description"] for phase in payload["phases"]] == [
        "Data Structure Foundation",
        "Field Derivation",
        "Uniqueness Processing",
        "JMESPath Filtering",
        "Template Processing",
    ]
    assert payload["phases"][1]["directives"] == [
        {"directive": "x-derived-from", "path": "tags", "value": ["books[].tags"]}
    ]


def test_resolve_command_inlines_refs(tmp_path: Path, write_json, capsys) -> None:
    write_json(tmp_path / "defs" / "tag.json", {"type": "string"})
    schema = write_json(
        tmp_path / "schema.json",
        {"type": "object", "properties": {"tag": {"$ref": "defs/tag.json"}}},
    )
    assert main(["resolve", "--schema", str(schema)]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == {"type": "object", "properties": {"tag": {"type": "string"}}}


def test_engine_errors_are_reported_as_json(tmp_path: Path, write_json, capsys) -> None:
    schema = write_json(
        tmp_path / "schema.json",
        {"properties": {"a": {"$ref": "schema.json"}}},
    )
    assert main(["plan", "--schema", str(schema)]) == 1
    error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])["error"]
    assert error["kind"] == "CircularReference"


def test_missing_input_is_reported(project: Path, capsys) -> None:
    exit_code = main(
        ["process", "--schema", str(project / "schema.json"), str(project / "missing")]
    )
    assert exit_code == 1
    error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])["error"]
    assert error["kind"] == "ReadError"


def test_invalid_config_is_reported(tmp_path: Path, write_yaml, capsys) -> None:
    config = write_yaml(tmp_path / "cfg.yaml", {"max_ref_depth": 0})
    assert main(["--config", str(config), "plan", "--schema", "x.json"]) == 1
    error = json.loads(capsys.readouterr().err)["error"]
    assert error["kind"] == "ConfigError"
