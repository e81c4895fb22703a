from __future__ import annotations

import json
import pathlib
import sys
import textwrap
from collections.abc import Callable
from typing import Any

import pytest
import yaml

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture()
def write_json() -> Callable[[pathlib.Path, Any], pathlib.Path]:
    def _write(path: pathlib.Path, payload: Any) -> pathlib.Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def write_yaml() -> Callable[[pathlib.Path, Any], pathlib.Path]:
    def _write(path: pathlib.Path, payload: Any) -> pathlib.Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def write_markdown() -> Callable[[pathlib.Path, str], pathlib.Path]:
    def _write(path: pathlib.Path, content: str) -> pathlib.Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write
