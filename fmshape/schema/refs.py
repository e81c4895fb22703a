"""Inline ``$ref`` pointers into a self-contained schema tree.

References are ``path#fragment`` strings.  The path part is loaded through a
:class:`~fmshape.schema.loader.SchemaLoader` after being normalized against the
directory of the referencing document; an empty path part points back into the
referencing document.  The fragment is a ``/``-separated pointer through
``definitions``/``$defs``, ``properties`` and ``items``.

The resolver keeps no state between calls.  The chain of references that are
currently being expanded travels down the recursion, so two resolutions of the
same schema never interfere with each other.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Mapping
from typing import Any

from ..errors import (
    CircularReference,
    ConfigError,
    EngineError,
    FragmentNotFound,
    MaxDepthExceeded,
    RefResolutionFailed,
    SchemaNotFound,
)
from .loader import SchemaLoader
from .models import SchemaKind, SchemaNode

LOGGER = logging.getLogger(__name__)

__all__ = ["DEFAULT_MAX_DEPTH", "RefResolver", "resolve_refs", "contains_ref"]

DEFAULT_MAX_DEPTH = 32
MIN_DEPTH = 1
MAX_DEPTH = 100


def resolve_refs(
    schema: SchemaNode | Mapping[str, Any],
    base_path: str,
    loader: SchemaLoader,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> SchemaNode:
    """Return ``schema`` with every ``$ref`` replaced by its target subtree."""

    return RefResolver(loader, max_depth=max_depth).resolve(schema, base_path)


def contains_ref(node: SchemaNode) -> bool:
    if node.kind is SchemaKind.REF:
        return True
    if node.items is not None and contains_ref(node.items):
        return True
    return any(contains_ref(child) for child in node.properties.values())


class RefResolver:
    def __init__(self, loader: SchemaLoader, *, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if not isinstance(max_depth, int) or not MIN_DEPTH <= max_depth <= MAX_DEPTH:
            raise ConfigError(
                f"max_depth must be an integer between {MIN_DEPTH} and {MAX_DEPTH}",
                max_depth=max_depth,
            )
        self._loader = loader
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def resolve(self, schema: SchemaNode | Mapping[str, Any], base_path: str) -> SchemaNode:
        root = schema if isinstance(schema, SchemaNode) else SchemaNode.from_mapping(schema)
        return self._walk(root, base_path, root, ())

    def _walk(
        self,
        node: SchemaNode,
        document: str,
        document_root: SchemaNode,
        chain: tuple[str, ...],
    ) -> SchemaNode:
        if node.kind is SchemaKind.REF:
            return self._expand(node, document, document_root, chain)
        if not contains_ref(node):
            return node

        properties = {
            name: self._walk(child, document, document_root, chain)
            for name, child in node.properties.items()
        }
        items = node.items
        if items is not None:
            items = self._walk(items, document, document_root, chain)
        # Definitions that still hold pointers are only reachable through the
        # refs that were just inlined.
        definitions = {k: v for k, v in node.definitions.items() if not contains_ref(v)}
        defs = {k: v for k, v in node.defs.items() if not contains_ref(v)}
        return node.evolve(
            properties=properties,
            items=items,
            definitions=definitions,
            defs=defs,
        )

    def _expand(
        self,
        node: SchemaNode,
        document: str,
        document_root: SchemaNode,
        chain: tuple[str, ...],
    ) -> SchemaNode:
        reference = node.target or ""
        path_part, fragment = _split_reference(reference)
        target_document = _join(document, path_part) if path_part else document
        key = f"{target_document}#{fragment or ''}"

        if key in chain:
            start = chain.index(key)
            raise CircularReference(chain[start:] + (key,))
        if len(chain) >= self._max_depth:
            cycle = self._find_cycle(key, document, document_root, chain)
            if cycle is not None:
                raise CircularReference(cycle)
            raise MaxDepthExceeded(self._max_depth, reference)

        if path_part:
            loaded_root = self._load(target_document, reference)
        else:
            loaded_root = document_root
        target = _navigate(loaded_root, fragment, reference)
        LOGGER.debug("Resolved $ref %s (depth %d)", key, len(chain) + 1)

        resolved = self._walk(target, target_document, loaded_root, chain + (key,))
        if node.properties or node.items is not None:
            # Sibling subschemas belong to the referencing document.
            node = node.evolve(
                properties={
                    name: self._walk(child, document, document_root, chain)
                    for name, child in node.properties.items()
                },
                items=(
                    self._walk(node.items, document, document_root, chain)
                    if node.items is not None
                    else None
                ),
            )
        return _overlay_siblings(resolved, node)

    def _find_cycle(
        self,
        key: str,
        document: str,
        document_root: SchemaNode,
        chain: tuple[str, ...],
    ) -> tuple[str, ...] | None:
        """Follow ``$ref`` targets from ``key`` without expanding anything.

        Returns the reference cycle when one leads back to ``key`` or into
        ``chain``, so cycles longer than the depth limit are still reported
        as cycles.
        """

        roots = {document: document_root}
        pending = [(key, (key,))]
        visited: set[str] = set()
        while pending:
            current, trail = pending.pop()
            if current in visited:
                continue
            visited.add(current)
            current_document, _, fragment = current.partition("#")
            try:
                if current_document not in roots:
                    roots[current_document] = self._loader.load(current_document)
                target = _navigate(roots[current_document], fragment or None, current)
            except (EngineError, OSError):
                # Broken targets beyond the limit do not form a cycle.
                continue
            for reference in _references_below(target):
                path_part, next_fragment = _split_reference(reference)
                next_document = _join(current_document, path_part) if path_part else current_document
                next_key = f"{next_document}#{next_fragment or ''}"
                if next_key == key:
                    return trail + (next_key,)
                if next_key in chain:
                    return chain[chain.index(next_key) :] + trail + (next_key,)
                pending.append((next_key, trail + (next_key,)))
        return None

    def _load(self, path: str, reference: str) -> SchemaNode:
        try:
            return self._loader.load(path)
        except SchemaNotFound:
            raise
        except (EngineError, OSError) as exc:
            raise RefResolutionFailed(reference, exc) from exc


def _split_reference(reference: str) -> tuple[str, str | None]:
    if "#" not in reference:
        return reference, None
    path_part, fragment = reference.split("#", 1)
    if not fragment:
        return path_part, None
    if not fragment.startswith("/"):
        fragment = "/" + fragment
    return path_part, fragment


def _join(document: str, path_part: str) -> str:
    if posixpath.isabs(path_part) or "://" in path_part:
        return path_part
    base_dir = posixpath.dirname(document)
    return posixpath.normpath(posixpath.join(base_dir, path_part))


def _navigate(root: SchemaNode, fragment: str | None, reference: str) -> SchemaNode:
    if not fragment or fragment == "/":
        return root

    parts = [part.replace("~1", "/").replace("~0", "~") for part in fragment.lstrip("/").split("/")]
    if len(parts) == 1:
        # Bare names such as ``#Command`` address a definition directly.
        name = parts[0]
        if name in root.definitions:
            return root.definitions[name]
        if name in root.defs:
            return root.defs[name]

    current = root
    index = 0
    while index < len(parts):
        part = parts[index]
        if part == "items":
            if current.items is None:
                raise FragmentNotFound(fragment, reference)
            current = current.items
            index += 1
            continue
        containers = {
            "definitions": current.definitions,
            "$defs": current.defs,
            "properties": current.properties,
        }
        container = containers.get(part)
        if container is None or index + 1 >= len(parts) or parts[index + 1] not in container:
            raise FragmentNotFound(fragment, reference)
        current = container[parts[index + 1]]
        index += 2
    return current


def _references_below(node: SchemaNode) -> list[str]:
    found = [node.target] if node.kind is SchemaKind.REF and node.target else []
    if node.items is not None:
        found.extend(_references_below(node.items))
    for child in node.properties.values():
        found.extend(_references_below(child))
    return found


def _overlay_siblings(resolved: SchemaNode, ref_node: SchemaNode) -> SchemaNode:
    """Keywords written next to ``$ref`` take precedence over the target's.

    Sibling ``properties`` are merged by name, a sibling ``items`` replaces
    the target's and ``required`` names are added to the target's list.
    """

    structural = bool(ref_node.properties or ref_node.items is not None or ref_node.required)
    if not (ref_node.directives or ref_node.extras or ref_node.has_default or structural):
        return resolved
    directives = dict(resolved.directives)
    directives.update(ref_node.directives)
    extras = dict(resolved.extras)
    extras.update(ref_node.extras)
    changes: dict[str, Any] = {"directives": directives, "extras": extras}
    if ref_node.has_default:
        changes["default"] = ref_node.default
    if "type" in ref_node.extras:
        changes["kind"] = SchemaNode.from_mapping({"type": ref_node.extras["type"]}).kind
    if ref_node.properties:
        properties = dict(resolved.properties)
        properties.update(ref_node.properties)
        changes["properties"] = properties
        if "kind" not in changes and resolved.kind is SchemaKind.ANY:
            changes["kind"] = SchemaKind.OBJECT
    if ref_node.items is not None:
        changes["items"] = ref_node.items
    if ref_node.required:
        changes["required"] = tuple(dict.fromkeys(resolved.required + ref_node.required))
    if structural:
        LOGGER.debug("Merged subschemas written next to $ref %s", ref_node.target)
    return resolved.evolve(**changes)
