"""Directive discovery and phase scheduling.

Directive kinds follow a fixed partial order: structural anchors, then
extraction, derivation, uniqueness and flattening, filtering and finally the
template directives.  Kinds are layered with Kahn's algorithm; every layer
that holds at least one directive present in the schema becomes a phase.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from ..errors import CircularDependency, ConflictingDirectives, InvalidSchema
from .directives import parse_directive
from .models import (
    DependencyNode,
    Directive,
    DirectiveKind,
    Phase,
    ProcessingPlan,
    SchemaKind,
    SchemaNode,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_DEPENDENCIES",
    "DirectiveScheduler",
    "build_dependency_graph",
    "discover_directives",
    "resolve_processing_order",
]

_K = DirectiveKind

DEFAULT_DEPENDENCIES: Mapping[DirectiveKind, frozenset[DirectiveKind]] = MappingProxyType(
    {
        _K.FRONTMATTER_PART: frozenset(),
        _K.EXTRACT_FROM: frozenset({_K.FRONTMATTER_PART}),
        _K.DERIVED_FROM: frozenset({_K.EXTRACT_FROM}),
        _K.DERIVED_UNIQUE: frozenset({_K.DERIVED_FROM}),
        _K.FLATTEN_ARRAYS: frozenset({_K.DERIVED_FROM}),
        _K.JMESPATH_FILTER: frozenset({_K.DERIVED_UNIQUE, _K.FLATTEN_ARRAYS}),
        _K.TEMPLATE: frozenset({_K.JMESPATH_FILTER}),
        _K.TEMPLATE_ITEMS: frozenset({_K.JMESPATH_FILTER}),
        _K.TEMPLATE_FORMAT: frozenset({_K.JMESPATH_FILTER}),
    }
)


def discover_directives(schema: SchemaNode) -> tuple[Directive, ...]:
    """Collect every recognised directive of a ref-free schema tree.

    The walk follows ``properties`` and ``items``; definitions are only
    reachable through references, which must already be inlined.
    """

    found: list[Directive] = []
    _collect(schema, (), found)
    return tuple(found)


def _collect(node: SchemaNode, path: tuple[str, ...], found: list[Directive]) -> None:
    where = ".".join(path)
    if node.kind is SchemaKind.REF:
        raise InvalidSchema(f"unresolved $ref '{node.target}'", property=where)

    local: dict[DirectiveKind, Directive] = {}
    for name, value in node.directives.items():
        directive = parse_directive(name, value, path, node)
        if directive is not None:
            local[directive.kind] = directive

    anchor = local.get(DirectiveKind.FRONTMATTER_PART)
    if anchor is not None and anchor.value is True and DirectiveKind.DERIVED_FROM in local:
        raise ConflictingDirectives(
            (DirectiveKind.FRONTMATTER_PART.value, DirectiveKind.DERIVED_FROM.value), where
        )
    unique = local.get(DirectiveKind.DERIVED_UNIQUE)
    if unique is not None and unique.value and DirectiveKind.DERIVED_FROM not in local:
        LOGGER.warning("x-derived-unique at '%s' has no x-derived-from and is ignored", where)

    found.extend(local.values())

    for name, child in node.properties.items():
        _collect(child, path + (name,), found)
    if node.items is not None:
        _collect(node.items, _items_path(path), found)


def _items_path(path: tuple[str, ...]) -> tuple[str, ...]:
    if not path or path[-1].endswith("[]"):
        return path
    return path[:-1] + (f"{path[-1]}[]",)


def build_dependency_graph(
    present: Iterable[DirectiveKind],
    dependencies: Mapping[DirectiveKind, Iterable[DirectiveKind]] = DEFAULT_DEPENDENCIES,
) -> dict[DirectiveKind, DependencyNode]:
    """Return one node per directive kind.

    Every kind named by ``dependencies`` gets a node, present in the schema or
    not, so ordering stays defined for partial schemas.
    """

    present_kinds = set(present)
    kinds: set[DirectiveKind] = set(present_kinds) | set(dependencies)
    for requirements in dependencies.values():
        kinds.update(requirements)

    graph: dict[DirectiveKind, DependencyNode] = {}
    for kind in sorted(kinds, key=lambda item: item.rank):
        graph[kind] = DependencyNode(
            id=kind,
            is_present=kind in present_kinds,
            depends_on=frozenset(dependencies.get(kind, ())),
        )
    return graph


class DirectiveScheduler:
    """Turn a ref-free schema into a :class:`ProcessingPlan`."""

    def __init__(
        self,
        dependencies: Mapping[DirectiveKind, Iterable[DirectiveKind]] | None = None,
    ) -> None:
        self._dependencies = (
            DEFAULT_DEPENDENCIES if dependencies is None else MappingProxyType(dict(dependencies))
        )

    def plan(self, schema: SchemaNode) -> ProcessingPlan:
        directives = discover_directives(schema)
        graph = build_dependency_graph(
            (directive.kind for directive in directives), self._dependencies
        )
        layers = _layer(graph)

        by_kind: dict[DirectiveKind, list[Directive]] = {}
        for directive in sorted(directives, key=lambda item: item.sort_key):
            by_kind.setdefault(directive.kind, []).append(directive)

        phases: list[Phase] = []
        for layer in layers:
            members = [kind for kind in layer if graph[kind].is_present]
            if not members:
                continue
            phase = Phase(
                number=len(phases) + 1,
                description=" / ".join(kind.description for kind in members),
                directives=tuple(
                    directive for kind in members for directive in by_kind[kind]
                ),
            )
            LOGGER.debug(
                "Scheduled phase %d (%s) with %d directive(s)",
                phase.number,
                phase.description,
                len(phase.directives),
            )
            phases.append(phase)
        return ProcessingPlan(phases=tuple(phases), schema=schema)


def _layer(graph: Mapping[DirectiveKind, DependencyNode]) -> list[list[DirectiveKind]]:
    remaining = {
        kind: {dependency for dependency in node.depends_on if dependency in graph}
        for kind, node in graph.items()
    }
    layers: list[list[DirectiveKind]] = []
    while remaining:
        ready = sorted(
            (kind for kind, pending in remaining.items() if not pending),
            key=lambda item: item.rank,
        )
        if not ready:
            cycle = tuple(kind.value for kind in sorted(remaining, key=lambda item: item.rank))
            raise CircularDependency(cycle)
        layers.append(ready)
        for kind in ready:
            del remaining[kind]
        for pending in remaining.values():
            pending.difference_update(ready)
    return layers


def resolve_processing_order(schema: SchemaNode) -> ProcessingPlan:
    return DirectiveScheduler().plan(schema)
