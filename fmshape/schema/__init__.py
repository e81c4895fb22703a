"""Schema loading, reference resolution and directive scheduling."""

from .directives import parse_directive  # noqa: F401
from .loader import (  # noqa: F401
    FileSchemaLoader,
    InMemorySchemaLoader,
    SchemaLoader,
)
from .models import (  # noqa: F401
    Directive,
    DirectiveKind,
    DependencyNode,
    Phase,
    ProcessingPlan,
    ResolvedSchema,
    SchemaKind,
    SchemaNode,
)
from .refs import RefResolver, resolve_refs  # noqa: F401
from .scheduler import (  # noqa: F401
    DirectiveScheduler,
    build_dependency_graph,
    discover_directives,
    resolve_processing_order,
)

__all__ = [
    "parse_directive",
    "FileSchemaLoader",
    "InMemorySchemaLoader",
    "SchemaLoader",
    "Directive",
    "DirectiveKind",
    "DependencyNode",
    "Phase",
    "ProcessingPlan",
    "ResolvedSchema",
    "SchemaKind",
    "SchemaNode",
    "RefResolver",
    "resolve_refs",
    "DirectiveScheduler",
    "build_dependency_graph",
    "discover_directives",
    "resolve_processing_order",
]
