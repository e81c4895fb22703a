"""Template path resolution, output shaping and rendering."""

from .render import Template, load_template, render_output, render_template  # noqa: F401
from .resolver import (  # noqa: F401
    TemplateContext,
    TemplateRef,
    resolve_items_template_path,
    resolve_template_context,
    resolve_template_path,
)
from .structure import (  # noqa: F401
    ShapedOutput,
    StructureInfo,
    StructureType,
    detect_structure,
    shape_output,
)

__all__ = [
    "Template",
    "load_template",
    "render_output",
    "render_template",
    "TemplateContext",
    "TemplateRef",
    "resolve_items_template_path",
    "resolve_template_context",
    "resolve_template_path",
    "ShapedOutput",
    "StructureInfo",
    "StructureType",
    "detect_structure",
    "shape_output",
]
