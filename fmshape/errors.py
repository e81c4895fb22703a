"""Error taxonomy shared by every stage of the directive engine.

Each failure carries a stable ``kind`` string so that callers (and the CLI)
can report errors without matching on exception classes.  Expected absences
such as a missing optional directive are never modelled as errors; they are
returned as ``None`` or empty values by the component that encounters them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, TypeVar

T = TypeVar("T")

__all__ = [
    "EngineError",
    "SchemaLoadError",
    "SchemaNotFound",
    "ReadError",
    "ParseError",
    "RefError",
    "CircularReference",
    "MaxDepthExceeded",
    "FragmentNotFound",
    "RefResolutionFailed",
    "DirectiveValidationError",
    "InvalidDirectiveValue",
    "ConflictingDirectives",
    "InvalidSchema",
    "CircularDependency",
    "DirectiveExecutionError",
    "ExtractionFailed",
    "JMESPathCompilationFailed",
    "JMESPathExecutionFailed",
    "DataShapeError",
    "EmptyInput",
    "InvalidType",
    "InvalidPath",
    "FrontmatterPartNotFound",
    "TemplateError",
    "MissingContainerTemplate",
    "InvalidState",
    "ConfigError",
    "Outcome",
    "capture",
]


class EngineError(RuntimeError):
    """Base class for all engine failures."""

    kind = "EngineError"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Mapping[str, Any] = MappingProxyType(dict(context))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        for key, value in self.context.items():
            if isinstance(value, EngineError):
                payload[key] = value.to_payload()
            elif isinstance(value, BaseException):
                payload[key] = str(value)
            else:
                payload[key] = value
        return payload


# ---------------------------------------------------------------------------
# Schema loading
# ---------------------------------------------------------------------------


class SchemaLoadError(EngineError):
    kind = "SchemaLoadError"


class SchemaNotFound(SchemaLoadError):
    kind = "SchemaNotFound"

    def __init__(self, path: str) -> None:
        super().__init__(f"Schema not found: {path}", path=path)
        self.path = path


class ReadError(SchemaLoadError):
    kind = "ReadError"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to read {path}: {reason}", path=path, reason=reason)
        self.path = path


class ParseError(SchemaLoadError):
    kind = "ParseError"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to parse {path}: {reason}", path=path, reason=reason)
        self.path = path


# ---------------------------------------------------------------------------
# $ref resolution
# ---------------------------------------------------------------------------


class RefError(EngineError):
    kind = "RefError"


class CircularReference(RefError):
    kind = "CircularReference"

    def __init__(self, chain: tuple[str, ...]) -> None:
        super().__init__(
            f"Circular $ref detected: {' -> '.join(chain)}",
            chain=list(chain),
        )
        self.chain = chain


class MaxDepthExceeded(RefError):
    kind = "MaxDepthExceeded"

    def __init__(self, depth: int, ref: str) -> None:
        super().__init__(
            f"$ref resolution exceeded maximum depth {depth} at '{ref}'",
            depth=depth,
            ref=ref,
        )
        self.depth = depth


class FragmentNotFound(RefError):
    kind = "FragmentNotFound"

    def __init__(self, fragment: str, ref: str) -> None:
        super().__init__(
            f"Fragment '{fragment}' not found while resolving '{ref}'",
            fragment=fragment,
            ref=ref,
        )
        self.fragment = fragment


class RefResolutionFailed(RefError):
    kind = "RefResolutionFailed"

    def __init__(self, ref: str, cause: EngineError | Exception) -> None:
        super().__init__(f"Failed to resolve $ref '{ref}': {cause}", ref=ref, cause=cause)
        self.cause = cause


# ---------------------------------------------------------------------------
# Directive validation and scheduling
# ---------------------------------------------------------------------------


class DirectiveValidationError(EngineError):
    kind = "DirectiveValidationError"


class InvalidDirectiveValue(DirectiveValidationError):
    kind = "InvalidDirectiveValue"

    def __init__(self, directive: str, value: Any, expected: str, path: str = "") -> None:
        location = f" at '{path}'" if path else ""
        super().__init__(
            f"Directive {directive}{location} has invalid value {value!r} (expected {expected})",
            directive=directive,
            value=value,
            expected=expected,
            path=path,
        )
        self.directive = directive
        self.value = value
        self.expected = expected


class ConflictingDirectives(DirectiveValidationError):
    kind = "ConflictingDirectives"

    def __init__(self, directives: tuple[str, ...], path: str) -> None:
        super().__init__(
            f"Directives {', '.join(directives)} cannot be combined on '{path or '<root>'}'",
            directives=list(directives),
            path=path,
        )
        self.directives = directives


class InvalidSchema(DirectiveValidationError):
    kind = "InvalidSchema"

    def __init__(self, reason: str, *, property: str = "") -> None:
        target = f" for property '{property}'" if property else ""
        super().__init__(f"Invalid schema{target}: {reason}", reason=reason, property=property)
        self.reason = reason
        self.property = property


class CircularDependency(DirectiveValidationError):
    kind = "CircularDependency"

    def __init__(self, cycle: tuple[str, ...]) -> None:
        super().__init__(
            f"Directive dependencies cannot be satisfied: {' -> '.join(cycle)}",
            cycle=list(cycle),
        )
        self.cycle = cycle


# ---------------------------------------------------------------------------
# Directive execution
# ---------------------------------------------------------------------------


class DirectiveExecutionError(EngineError):
    kind = "DirectiveExecutionError"


class ExtractionFailed(DirectiveExecutionError):
    kind = "ExtractionFailed"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Extraction from '{path}' failed: {reason}", path=path, reason=reason)
        self.path = path


class JMESPathCompilationFailed(DirectiveExecutionError):
    kind = "JMESPathCompilationFailed"

    def __init__(self, expression: str, message: str) -> None:
        super().__init__(
            f"JMESPath expression {expression!r} failed to compile: {message}",
            expression=expression,
        )
        self.expression = expression


class JMESPathExecutionFailed(DirectiveExecutionError):
    kind = "JMESPathExecutionFailed"

    def __init__(self, expression: str, message: str) -> None:
        super().__init__(
            f"JMESPath expression {expression!r} failed to evaluate: {message}",
            expression=expression,
        )
        self.expression = expression


# ---------------------------------------------------------------------------
# Path / data shape
# ---------------------------------------------------------------------------


class DataShapeError(EngineError):
    kind = "DataShapeError"


class EmptyInput(DataShapeError):
    kind = "EmptyInput"


class InvalidType(DataShapeError):
    kind = "InvalidType"

    def __init__(self, expected: str, actual: Any, *, path: str = "") -> None:
        location = f" at '{path}'" if path else ""
        actual_name = type(actual).__name__
        super().__init__(
            f"Expected {expected}{location}, got {actual_name}",
            expected=expected,
            actual=actual_name,
            path=path,
        )


class InvalidPath(DataShapeError):
    kind = "InvalidPath"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Invalid path expression {path!r}: {reason}", path=path, reason=reason)
        self.path = path


class FrontmatterPartNotFound(DataShapeError):
    kind = "FrontmatterPartNotFound"

    def __init__(self, message: str = "Schema declares no x-frontmatter-part array") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Template resolution
# ---------------------------------------------------------------------------


class TemplateError(EngineError):
    kind = "TemplateError"


class MissingContainerTemplate(TemplateError):
    kind = "MissingContainerTemplate"

    def __init__(self, schema_location: str = "") -> None:
        where = f" in {schema_location}" if schema_location else ""
        super().__init__(
            f"Schema{where} does not declare x-template",
            schema_location=schema_location,
        )


class InvalidState(TemplateError):
    kind = "InvalidState"


class ConfigError(EngineError):
    kind = "ConfigError"


# ---------------------------------------------------------------------------
# Result adapter
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Success-or-error value for callers that prefer not to use ``try``."""

    value: T | None = None
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    """Run ``fn`` and fold any :class:`EngineError` into an :class:`Outcome`."""

    try:
        return Outcome(value=fn(*args, **kwargs))
    except EngineError as exc:
        return Outcome(error=exc)
