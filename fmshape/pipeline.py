"""End-to-end processing: schema loading, transformation and rendering."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .config import EngineConfig
from .output import OUTPUT_FORMATS
from .paths import write_path
from .schema.loader import FileSchemaLoader, SchemaLoader
from .schema.models import (
    Directive,
    DirectiveKind,
    Phase,
    ProcessingPlan,
    ResolvedSchema,
    SchemaNode,
)
from .schema.refs import RefResolver
from .schema.scheduler import DirectiveScheduler
from .template.render import load_template, render_output
from .template.resolver import resolve_template_context
from .template.structure import find_frontmatter_part_path, shape_output
from .trace import TraceEventEmitter
from .transform.executor import DirectiveExecutor

LOGGER = logging.getLogger(__name__)

__all__ = ["PipelineResult", "FrontmatterPipeline", "aggregate_documents", "split_item_extractions"]


def aggregate_documents(
    frontmatters: Sequence[Mapping[str, Any]], schema: SchemaNode
) -> list[dict[str, Any]]:
    """Group per-document front matter into processing inputs.

    With an ``x-frontmatter-part`` array every document becomes one element
    of that array in a single input; otherwise each document is its own input.
    """

    anchor = find_frontmatter_part_path(schema)
    if anchor is None:
        return [dict(frontmatter) for frontmatter in frontmatters]
    return [write_path({}, anchor, [dict(frontmatter) for frontmatter in frontmatters])]


def split_item_extractions(
    plan: ProcessingPlan, anchor: str | None
) -> tuple[ProcessingPlan, ProcessingPlan]:
    """Separate ``x-extract-from`` directives declared in the anchor's item schema.

    Those sources are relative to one document, so they must run on each
    document before it is placed under the anchor.  Returns the per-document
    plan, with paths relative to an item, and ``plan`` without them.
    """

    if anchor is None:
        return ProcessingPlan.empty(), plan
    head = tuple(anchor.split("."))
    prefix = head[:-1] + (f"{head[-1]}[]",)

    per_document: list[Directive] = []
    phases: list[Phase] = []
    for phase in plan.phases:
        kept: list[Directive] = []
        for directive in phase.directives:
            under_anchor = (
                directive.kind is DirectiveKind.EXTRACT_FROM
                and len(directive.path) > len(prefix)
                and directive.path[: len(prefix)] == prefix
            )
            if under_anchor:
                per_document.append(replace(directive, path=directive.path[len(prefix) :]))
            else:
                kept.append(directive)
        if kept:
            phases.append(replace(phase, directives=tuple(kept)))

    if not per_document:
        return ProcessingPlan.empty(), plan
    LOGGER.debug("%d extraction(s) run per document under '%s'", len(per_document), anchor)
    document_plan = ProcessingPlan(
        phases=(Phase(1, DirectiveKind.EXTRACT_FROM.description, tuple(per_document)),)
    )
    return document_plan, replace(plan, phases=tuple(phases))


@dataclass(frozen=True, slots=True)
class PipelineResult:
    schema: ResolvedSchema
    outputs: tuple[Any, ...]
    output_format: str

    @property
    def payload(self) -> Any:
        """Single output as is; several outputs as a list."""

        if len(self.outputs) == 1:
            return self.outputs[0]
        return list(self.outputs)


class FrontmatterPipeline:
    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        loader: SchemaLoader | None = None,
        tracer: TraceEventEmitter | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._loader = loader or FileSchemaLoader()
        self._tracer = tracer

    @property
    def config(self) -> EngineConfig:
        return self._config

    def load_schema(self, location: Path | str) -> ResolvedSchema:
        location_text = str(location)
        root = self._loader.load(location_text)
        resolver = RefResolver(self._loader, max_depth=self._config.max_ref_depth)
        resolved = resolver.resolve(root, location_text)
        plan = DirectiveScheduler().plan(resolved)
        LOGGER.info(
            "Schema %s resolved into %d phase(s)", location_text, len(plan.phases)
        )
        return ResolvedSchema(root=resolved, plan=plan, location=location_text)

    def transform(
        self, schema: ResolvedSchema, frontmatters: Sequence[Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        executor = DirectiveExecutor(unique_order=self._config.unique_order, tracer=self._tracer)
        anchor = find_frontmatter_part_path(schema.root)
        document_plan, plan = split_item_extractions(schema.plan, anchor)
        if document_plan.phases:
            frontmatters = [
                executor.apply(frontmatter, document_plan).to_dict() for frontmatter in frontmatters
            ]
        return [
            executor.apply(document, plan).to_dict()
            for document in aggregate_documents(frontmatters, schema.root)
        ]

    def render(
        self,
        schema: ResolvedSchema,
        data: Mapping[str, Any],
        template: str | None = None,
    ) -> Any:
        """Fill the schema's templates with ``data``; data passes through without one."""

        if template is None and DirectiveKind.TEMPLATE.value not in schema.root.directives:
            return dict(data)
        context = resolve_template_context(schema.root, schema.location, template)
        shaped = shape_output(data, schema.root, context)
        container = load_template(context.container_template.path)
        items_template = (
            load_template(context.items_template.path) if context.items_template else None
        )
        return render_output(container, shaped.container, shaped.items, items_template)

    def output_format(self, schema: ResolvedSchema, requested: str | None = None) -> str:
        if requested:
            return requested
        declared = schema.root.directive(DirectiveKind.TEMPLATE_FORMAT.value)
        if declared in OUTPUT_FORMATS:
            return declared
        return self._config.output_format

    def run(
        self,
        schema_location: Path | str,
        frontmatters: Sequence[Mapping[str, Any]],
        *,
        template: str | None = None,
        output_format: str | None = None,
    ) -> PipelineResult:
        schema = self.load_schema(schema_location)
        transformed = self.transform(schema, frontmatters)
        outputs = tuple(self.render(schema, data, template) for data in transformed)
        return PipelineResult(
            schema=schema,
            outputs=outputs,
            output_format=self.output_format(schema, output_format),
        )
