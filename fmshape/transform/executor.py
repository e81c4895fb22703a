"""Apply a :class:`ProcessingPlan` to one document's front matter.

Phases run in ascending order.  Every directive reads from the document root
and writes to the data path of the schema node that declares it.  The input is
never modified; any directive failure aborts the whole call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..data import FrontmatterData
from ..errors import ExtractionFailed, InvalidType
from ..paths import NOT_FOUND, has_projection
from ..schema.models import Directive, DirectiveKind, ProcessingPlan, SchemaKind
from ..trace import TraceEventEmitter
from .defaults import populate_defaults
from .jmespath_filter import JMESPathEvaluator

LOGGER = logging.getLogger(__name__)

__all__ = ["DirectiveExecutor", "apply_plan", "flatten_deep", "unique_values", "UNIQUE_ORDERS"]

UNIQUE_ORDERS = ("first", "sorted")

Handler = Callable[["DirectiveExecutor", FrontmatterData, Directive], FrontmatterData]


class DirectiveExecutor:
    def __init__(
        self,
        *,
        evaluator: JMESPathEvaluator | None = None,
        unique_order: str = "first",
        tracer: TraceEventEmitter | None = None,
    ) -> None:
        if unique_order not in UNIQUE_ORDERS:
            raise ValueError(f"unique_order must be one of {UNIQUE_ORDERS}, got {unique_order!r}")
        self._evaluator = evaluator or JMESPathEvaluator()
        self._unique_order = unique_order
        self._tracer = tracer

    def apply(
        self, data: FrontmatterData | Mapping[str, Any], plan: ProcessingPlan
    ) -> FrontmatterData:
        current = data if isinstance(data, FrontmatterData) else FrontmatterData(data)

        for phase in sorted(plan.phases, key=lambda item: item.number):
            LOGGER.debug("Phase %d: %s", phase.number, phase.description)
            self._emit(
                "phase_start",
                scope="phase",
                target=str(phase.number),
                payload={"description": phase.description, "directives": len(phase.directives)},
            )
            for directive in phase.directives:
                current = _HANDLERS[directive.kind](self, current, directive)
                self._emit(
                    "directive_applied",
                    scope="directive",
                    target=directive.data_path,
                    payload={"directive": directive.kind.value, "phase": phase.number},
                )

        if plan.schema is not None:
            filled: list[str] = []
            current = FrontmatterData(populate_defaults(current.to_dict(), plan.schema, filled))
            self._emit("defaults_applied", scope="document", target="", payload={"filled": filled})
        return current

    def _emit(self, event: str, *, scope: str, target: str, payload: Mapping[str, Any]) -> None:
        if self._tracer is not None:
            self._tracer.emit(event, scope=scope, target=target, payload=payload)

    # -- handlers ---------------------------------------------------------

    def _frontmatter_part(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        path = directive.data_path
        if directive.value is not True or not path or has_projection(path):
            return data
        value = data.get(path)
        if value is NOT_FOUND or isinstance(value, list):
            return data
        return data.set(path, [] if value is None else [value])

    def _extract_from(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        source = str(directive.value)
        target = directive.data_path
        value = data.get(source)
        if value is NOT_FOUND:
            LOGGER.debug("x-extract-from %s: source missing, '%s' left as is", source, target)
            return data
        if not target:
            raise InvalidType("named property", value, path=source)
        if has_projection(target) and isinstance(value, Mapping):
            raise ExtractionFailed(source, f"cannot distribute an object over '{target}'")
        if _is_array_node(directive):
            value = _as_list(value)
        return data.set(target, value)

    def _derived_from(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        sources = directive.value if isinstance(directive.value, tuple) else (str(directive.value),)
        target = directive.data_path
        collected: list[Any] = []
        found: list[Any] = []
        for source in sources:
            value = data.get(source)
            if value is NOT_FOUND:
                continue
            found.append(value)
            for item in _as_list(value):
                if isinstance(item, list):
                    collected.extend(element for element in item if element is not None)
                elif item is not None:
                    collected.append(item)

        if not found:
            if _is_array_node(directive):
                return data.set(target, [])
            return data
        single_scalar = (
            len(sources) == 1 and not isinstance(found[0], list) and not _is_array_node(directive)
        )
        if single_scalar:
            return data.set(target, found[0])
        return data.set(target, collected)

    def _derived_unique(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        node = directive.node
        if directive.value is not True:
            return data
        if node is not None and DirectiveKind.DERIVED_FROM.value not in node.directives:
            return data
        value = data.get(directive.data_path)
        if not isinstance(value, list):
            return data
        return data.set(directive.data_path, unique_values(value, self._unique_order))

    def _flatten_arrays(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        if directive.value is False:
            return data
        target = directive.data_path
        source = target if directive.value is True else str(directive.value)
        value = data.get(source)
        if value is NOT_FOUND or value is None:
            flattened: list[Any] = []
        else:
            flattened = flatten_deep(_as_list(value))
        if _wants_unique(directive):
            # Nested duplicates only surface once flattened.
            flattened = unique_values(flattened, self._unique_order)
        return data.set(target, flattened)

    def _jmespath_filter(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        expression = str(directive.value)
        compiled = self._evaluator.compile(expression)
        result = self._evaluator.evaluate(compiled, data.to_dict())
        target = directive.data_path
        if target:
            return data.set(target, result)
        if result is None:
            return data
        if not isinstance(result, Mapping):
            raise InvalidType("mapping", result, path="<root>")
        return data.replace(result)

    def _passthrough(self, data: FrontmatterData, directive: Directive) -> FrontmatterData:
        # Template directives are consumed when shaping output.
        return data


_HANDLERS: dict[DirectiveKind, Handler] = {
    DirectiveKind.FRONTMATTER_PART: DirectiveExecutor._frontmatter_part,
    DirectiveKind.EXTRACT_FROM: DirectiveExecutor._extract_from,
    DirectiveKind.DERIVED_FROM: DirectiveExecutor._derived_from,
    DirectiveKind.DERIVED_UNIQUE: DirectiveExecutor._derived_unique,
    DirectiveKind.FLATTEN_ARRAYS: DirectiveExecutor._flatten_arrays,
    DirectiveKind.JMESPATH_FILTER: DirectiveExecutor._jmespath_filter,
    DirectiveKind.TEMPLATE: DirectiveExecutor._passthrough,
    DirectiveKind.TEMPLATE_ITEMS: DirectiveExecutor._passthrough,
    DirectiveKind.TEMPLATE_FORMAT: DirectiveExecutor._passthrough,
}


def apply_plan(
    data: FrontmatterData | Mapping[str, Any],
    plan: ProcessingPlan,
    **options: Any,
) -> FrontmatterData:
    return DirectiveExecutor(**options).apply(data, plan)


def _is_array_node(directive: Directive) -> bool:
    return directive.node is not None and directive.node.kind is SchemaKind.ARRAY


def _wants_unique(directive: Directive) -> bool:
    node = directive.node
    if node is None:
        return False
    return (
        node.directives.get(DirectiveKind.DERIVED_UNIQUE.value) is True
        and DirectiveKind.DERIVED_FROM.value in node.directives
    )


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def flatten_deep(values: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for value in values:
        if isinstance(value, list):
            flat.extend(flatten_deep(value))
        else:
            flat.append(value)
    return flat


def _identity(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, _identity(value))


def unique_values(values: Iterable[Any], order: str = "first") -> list[Any]:
    """Drop duplicates, keeping first occurrences (or sorting with ``"sorted"``)."""

    seen: set[str] = set()
    unique: list[Any] = []
    for value in values:
        key = _identity(value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(value)
    if order == "sorted":
        unique.sort(key=_sort_key)
    return unique
