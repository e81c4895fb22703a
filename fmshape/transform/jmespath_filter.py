from __future__ import annotations

import logging
from typing import Any

import jmespath
from jmespath.exceptions import JMESPathError
from jmespath.parser import ParsedResult

from ..errors import JMESPathCompilationFailed, JMESPathExecutionFailed

LOGGER = logging.getLogger(__name__)

__all__ = ["JMESPathEvaluator"]


class JMESPathEvaluator:
    """Thin adapter over the ``jmespath`` library.

    Compilation and evaluation failures are reported as engine errors that
    carry the offending expression.  Paths that do not exist evaluate to
    ``None``.
    """

    def compile(self, expression: str) -> ParsedResult:
        if not isinstance(expression, str) or not expression.strip():
            raise JMESPathCompilationFailed(str(expression), "expression is empty")
        try:
            return jmespath.compile(expression)
        except JMESPathError as exc:
            raise JMESPathCompilationFailed(expression, str(exc)) from exc

    def evaluate(self, compiled: ParsedResult, data: Any) -> Any:
        try:
            return compiled.search(data)
        except JMESPathError as exc:
            raise JMESPathExecutionFailed(compiled.expression, str(exc)) from exc

    def search(self, expression: str, data: Any) -> Any:
        result = self.evaluate(self.compile(expression), data)
        LOGGER.debug("JMESPath %r produced %s", expression, type(result).__name__)
        return result
