"""Processing trace recorded while a plan is applied."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

__all__ = ["TraceEvent", "TraceEventEmitter"]


def _freeze_value(value: Any) -> Any:
    """Recursively convert mappings/sequences into immutable counterparts."""

    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze_value(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_value(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze_value(item) for item in value)
    return value


@dataclass(frozen=True, slots=True)
class TraceEvent:
    """One step of plan execution.

    ``scope`` is ``"phase"``, ``"directive"`` or ``"document"``; ``target`` is
    the phase number or data path the event refers to.
    """

    event: str
    scope: str
    target: str
    payload: Mapping[str, Any]


class TraceEventEmitter:
    """Collect trace events and forward them to an optional sink."""

    def __init__(self, sink: Callable[[TraceEvent], None] | None = None) -> None:
        self._events: list[TraceEvent] = []
        self._sink = sink

    def attach_sink(self, sink: Callable[[TraceEvent], None] | None) -> None:
        self._sink = sink

    def emit(
        self,
        event: str,
        *,
        scope: str,
        target: str,
        payload: Mapping[str, Any] | None = None,
    ) -> TraceEvent:
        record = TraceEvent(
            event=event,
            scope=scope,
            target=target,
            payload=_freeze_value(payload or {}),
        )
        self._events.append(record)
        if self._sink is not None:
            self._sink(record)
        return record

    @property
    def events(self) -> tuple[TraceEvent, ...]:
        return tuple(self._events)

    def names(self) -> list[str]:
        return [record.event for record in self._events]

    def clear(self) -> None:
        self._events.clear()
