"""Directive transforms applied to front-matter data."""

from .defaults import populate_defaults  # noqa: F401
from .executor import DirectiveExecutor, apply_plan  # noqa: F401
from .jmespath_filter import JMESPathEvaluator  # noqa: F401

__all__ = ["DirectiveExecutor", "JMESPathEvaluator", "apply_plan", "populate_defaults"]
