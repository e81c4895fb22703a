"""Schema-driven reshaping of document front matter."""

from .data import FrontmatterData  # noqa: F401
from .errors import EngineError, Outcome, capture  # noqa: F401
from .paths import NOT_FOUND, read_path, write_path  # noqa: F401
from .pipeline import FrontmatterPipeline  # noqa: F401
from .schema import resolve_processing_order, resolve_refs  # noqa: F401
from .transform import DirectiveExecutor, apply_plan  # noqa: F401

__all__ = [
    "FrontmatterData",
    "EngineError",
    "Outcome",
    "capture",
    "NOT_FOUND",
    "read_path",
    "write_path",
    "FrontmatterPipeline",
    "resolve_processing_order",
    "resolve_refs",
    "DirectiveExecutor",
    "apply_plan",
]
