"""Engine settings loaded from YAML files and command-line overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator, ValidationError

from .errors import ConfigError
from .output import OUTPUT_FORMATS

__all__ = ["CONFIG_ENV_VAR", "CONFIG_SCHEMA", "EngineConfig", "load_config"]

CONFIG_ENV_VAR = "FMSHAPE_CONFIG"

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "max_ref_depth": {"type": "integer", "minimum": 1, "maximum": 100},
        "unique_order": {"enum": ["first", "sorted"]},
        "output_format": {"enum": list(OUTPUT_FORMATS)},
        "log_level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
    },
}

_VALIDATOR = Draft202012Validator(CONFIG_SCHEMA)


@dataclass(frozen=True, slots=True)
class EngineConfig:
    max_ref_depth: int = 32
    unique_order: str = "first"
    output_format: str = "json"
    log_level: str = "WARNING"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, *, source: str = "<mapping>") -> EngineConfig:
        payload = dict(data or {})
        if isinstance(payload.get("log_level"), str):
            payload["log_level"] = payload["log_level"].upper()
        try:
            _VALIDATOR.validate(payload)
        except ValidationError as exc:
            location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
            raise ConfigError(
                f"Invalid configuration in {source} at {location}: {exc.message}",
                source=source,
                location=location,
            ) from exc
        return cls(**payload)

    def with_overrides(self, **overrides: Any) -> EngineConfig:
        """Return a copy with every non-``None`` override applied and revalidated."""

        known = {item.name for item in fields(self)}
        changes = {key: value for key, value in overrides.items() if key in known and value is not None}
        if not changes:
            return self
        merged = self.as_dict()
        merged.update(changes)
        return EngineConfig.from_mapping(merged, source="overrides")

    def as_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


def load_config(path: Path | str | None = None) -> EngineConfig:
    """Read settings from ``path`` (or ``$FMSHAPE_CONFIG``); defaults when neither is set."""

    if path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if not env_path:
            return EngineConfig()
        path = env_path

    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}", source=str(config_path))
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Failed to parse configuration {config_path}: {exc}", source=str(config_path)
        ) from exc
    if not isinstance(data, Mapping):
        raise ConfigError(
            f"Configuration {config_path} must be a mapping, got {type(data).__name__}",
            source=str(config_path),
        )
    return EngineConfig.from_mapping(data, source=str(config_path))
