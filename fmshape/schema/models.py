"""Immutable schema and processing-plan data structures."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..errors import InvalidType

__all__ = [
    "NO_DEFAULT",
    "SchemaKind",
    "SchemaNode",
    "DirectiveKind",
    "Directive",
    "DependencyNode",
    "Phase",
    "ProcessingPlan",
    "ResolvedSchema",
    "DIRECTIVE_PREFIX",
]

DIRECTIVE_PREFIX = "x-"

# Keywords that SchemaNode models as first-class fields.
_STRUCTURAL_KEYS = frozenset(
    {"properties", "items", "default", "definitions", "$defs", "required", "$ref"}
)


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __copy__(self) -> _NoDefault:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _NoDefault:
        return self


NO_DEFAULT: Any = _NoDefault()


class SchemaKind(str, Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    NULL = "null"
    REF = "ref"
    ANY = "any"


def _infer_kind(raw: Mapping[str, Any]) -> SchemaKind:
    if "$ref" in raw:
        return SchemaKind.REF
    declared = raw.get("type")
    if isinstance(declared, list):
        declared = next((item for item in declared if item != "null"), "null")
    if isinstance(declared, str):
        try:
            return SchemaKind(declared)
        except ValueError:
            return SchemaKind.ANY
    if "properties" in raw:
        return SchemaKind.OBJECT
    if "items" in raw:
        return SchemaKind.ARRAY
    return SchemaKind.ANY


def _proxy(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True, slots=True)
class SchemaNode:
    """A node of the annotated schema tree.

    ``directives`` holds every ``x-*`` keyword found on the node, ``extras``
    every other keyword that is not modelled as a field (``type``, ``title``
    and so on) so the node can be rendered back into a mapping.
    """

    kind: SchemaKind
    properties: Mapping[str, SchemaNode] = field(default_factory=lambda: MappingProxyType({}))
    items: SchemaNode | None = None
    directives: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    default: Any = NO_DEFAULT
    definitions: Mapping[str, SchemaNode] = field(default_factory=lambda: MappingProxyType({}))
    defs: Mapping[str, SchemaNode] = field(default_factory=lambda: MappingProxyType({}))
    required: tuple[str, ...] = ()
    target: str | None = None
    extras: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], *, path: str = "#") -> SchemaNode:
        if not isinstance(raw, Mapping):
            raise InvalidType("schema object", raw, path=path)

        kind = _infer_kind(raw)
        target = raw.get("$ref")
        if target is not None and not isinstance(target, str):
            raise InvalidType("string $ref", target, path=path)

        properties_raw = raw.get("properties", {})
        if not isinstance(properties_raw, Mapping):
            raise InvalidType("properties object", properties_raw, path=path)
        properties = {
            name: cls.from_mapping(child, path=f"{path}/properties/{name}")
            for name, child in properties_raw.items()
        }

        items_raw = raw.get("items")
        items = None
        if isinstance(items_raw, Mapping):
            items = cls.from_mapping(items_raw, path=f"{path}/items")

        required_raw = raw.get("required", ())
        required = tuple(required_raw) if isinstance(required_raw, list) else ()

        directives: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in raw.items():
            if key.startswith(DIRECTIVE_PREFIX):
                directives[key] = copy.deepcopy(value)
            elif key not in _STRUCTURAL_KEYS:
                extras[key] = copy.deepcopy(value)
        # Non-object ``items`` (tuple validation) is carried through untouched.
        if items_raw is not None and items is None:
            extras["items"] = copy.deepcopy(items_raw)

        return cls(
            kind=kind,
            properties=_proxy(properties),
            items=items,
            directives=_proxy(directives),
            default=copy.deepcopy(raw["default"]) if "default" in raw else NO_DEFAULT,
            definitions=_proxy(_parse_definitions(cls, raw, "definitions", path)),
            defs=_proxy(_parse_definitions(cls, raw, "$defs", path)),
            required=required,
            target=target,
            extras=_proxy(extras),
        )

    def to_mapping(self) -> dict[str, Any]:
        rendered: dict[str, Any] = {}
        if self.target is not None:
            rendered["$ref"] = self.target
        rendered.update(copy.deepcopy(dict(self.extras)))
        if self.properties:
            rendered["properties"] = {
                name: child.to_mapping() for name, child in self.properties.items()
            }
        if self.items is not None:
            rendered["items"] = self.items.to_mapping()
        if self.required:
            rendered["required"] = list(self.required)
        if self.has_default:
            rendered["default"] = copy.deepcopy(self.default)
        if self.definitions:
            rendered["definitions"] = {
                name: child.to_mapping() for name, child in self.definitions.items()
            }
        if self.defs:
            rendered["$defs"] = {name: child.to_mapping() for name, child in self.defs.items()}
        rendered.update(copy.deepcopy(dict(self.directives)))
        return rendered

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    def default_value(self) -> Any:
        return copy.deepcopy(self.default)

    def directive(self, name: str, fallback: Any = None) -> Any:
        return self.directives.get(name, fallback)

    def evolve(self, **changes: Any) -> SchemaNode:
        for name in ("properties", "directives", "definitions", "defs", "extras"):
            if name in changes:
                changes[name] = _proxy(changes[name])
        return replace(self, **changes)


def _parse_definitions(
    cls: type[SchemaNode], raw: Mapping[str, Any], keyword: str, path: str
) -> dict[str, SchemaNode]:
    container = raw.get(keyword)
    if container is None:
        return {}
    if not isinstance(container, Mapping):
        raise InvalidType(f"{keyword} object", container, path=path)
    return {
        name: cls.from_mapping(child, path=f"{path}/{keyword}/{name}")
        for name, child in container.items()
    }


class DirectiveKind(str, Enum):
    """Closed set of directives the engine understands.

    Declaration order is the tie-break order used by the scheduler.
    """

    FRONTMATTER_PART = "x-frontmatter-part"
    EXTRACT_FROM = "x-extract-from"
    DERIVED_FROM = "x-derived-from"
    DERIVED_UNIQUE = "x-derived-unique"
    FLATTEN_ARRAYS = "x-flatten-arrays"
    JMESPATH_FILTER = "x-jmespath-filter"
    TEMPLATE = "x-template"
    TEMPLATE_ITEMS = "x-template-items"
    TEMPLATE_FORMAT = "x-template-format"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def rank(self) -> int:
        return list(DirectiveKind).index(self)

    @classmethod
    def lookup(cls, name: str) -> DirectiveKind | None:
        try:
            return cls(name)
        except ValueError:
            return None


_DESCRIPTIONS = {
    DirectiveKind.FRONTMATTER_PART: "Data Structure Foundation",
    DirectiveKind.EXTRACT_FROM: "Data Extraction",
    DirectiveKind.DERIVED_FROM: "Field Derivation",
    DirectiveKind.DERIVED_UNIQUE: "Uniqueness Processing",
    DirectiveKind.FLATTEN_ARRAYS: "Array Flattening",
    DirectiveKind.JMESPATH_FILTER: "JMESPath Filtering",
    DirectiveKind.TEMPLATE: "Template Processing",
    DirectiveKind.TEMPLATE_ITEMS: "Items Template Processing",
    DirectiveKind.TEMPLATE_FORMAT: "Format Processing",
}


@dataclass(frozen=True, slots=True)
class Directive:
    """One validated directive occurrence.

    ``path`` locates the owning schema node as data-path segments; array item
    schemas are marked by a ``[]`` suffix on the array's own segment.
    """

    kind: DirectiveKind
    value: bool | str | tuple[str, ...]
    path: tuple[str, ...]
    node: SchemaNode | None = field(default=None, compare=False, repr=False)

    @property
    def data_path(self) -> str:
        return ".".join(self.path)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.kind.rank, self.data_path)

    def describe(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"directive": self.kind.value, "path": self.data_path, "value": value}


@dataclass(frozen=True, slots=True)
class DependencyNode:
    id: DirectiveKind
    is_present: bool
    depends_on: frozenset[DirectiveKind] = frozenset()


@dataclass(frozen=True, slots=True)
class Phase:
    number: int
    description: str
    directives: tuple[Directive, ...]

    def describe(self) -> dict[str, Any]:
        return {
            "phase": self.number,
            "description": self.description,
            "directives": [directive.describe() for directive in self.directives],
        }


@dataclass(frozen=True, slots=True)
class ProcessingPlan:
    """Ordered phases plus the schema they were discovered on.

    When ``schema`` is set the executor also fills static ``default`` values
    once every phase has run.
    """

    phases: tuple[Phase, ...] = ()
    schema: SchemaNode | None = field(default=None, compare=False, repr=False)

    @classmethod
    def empty(cls) -> ProcessingPlan:
        return cls()

    def directives(self) -> tuple[Directive, ...]:
        return tuple(directive for phase in self.phases for directive in phase.directives)

    def phase_of(self, kind: DirectiveKind) -> int | None:
        for phase in self.phases:
            if any(directive.kind is kind for directive in phase.directives):
                return phase.number
        return None

    def find(self, kind: DirectiveKind) -> tuple[Directive, ...]:
        return tuple(directive for directive in self.directives() if directive.kind is kind)

    def describe(self) -> list[dict[str, Any]]:
        return [phase.describe() for phase in self.phases]


@dataclass(frozen=True, slots=True)
class ResolvedSchema:
    """A ref-free schema tree with its processing plan."""

    root: SchemaNode
    plan: ProcessingPlan
    location: str = ""
