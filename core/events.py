"""
Change-notification event bus and payloads.

Axes, dimension structures and matrix containers publish state changes
through this module; dependants subscribe with plain callables or observer
objects exposing ``on_event``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol
import time


@dataclass(frozen=True)
class ChangeEvent:
    """Immutable change payload."""

    source: Any
    kind: str  # "index" | "scale" | "name" | "unit" | "tag" | "active_index" | "dimensions"
    old: Any = None
    new: Any = None
    detail: Optional[Any] = None
    timestamp: float = field(default_factory=time.time)


class ChangeObserver(Protocol):
    """Observer protocol for change events."""

    def on_event(self, event: ChangeEvent) -> None:
        ...


class EventBus:
    """
    Simple observer-style event bus.

    Publishers only call :meth:`emit` after a value has actually changed;
    the bus itself does no deduplication.
    """

    def __init__(self, kind: str = "") -> None:
        self.kind = kind
        self._observers: list[Callable[[ChangeEvent], None] | ChangeObserver] = []

    def subscribe(self, observer: Callable[[ChangeEvent], None] | ChangeObserver) -> "EventBus":
        self._observers.append(observer)
        return self

    def unsubscribe(self, observer: Callable[[ChangeEvent], None] | ChangeObserver) -> "EventBus":
        try:
            self._observers.remove(observer)
        except ValueError:
            pass
        return self

    def clear(self) -> None:
        self._observers.clear()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def emit(self, event: ChangeEvent) -> None:
        for observer in tuple(self._observers):
            if hasattr(observer, "on_event"):
                observer.on_event(event)  # type: ignore[attr-defined]
            else:
                observer(event)  # type: ignore[misc]

    def fire(self, source: Any, old: Any = None, new: Any = None, detail: Any = None) -> None:
        """Build a :class:`ChangeEvent` of this bus's kind and emit it."""
        if not self._observers:
            return
        self.emit(ChangeEvent(source=source, kind=self.kind, old=old, new=new, detail=detail))


class EventRecorder:
    """
    Observer that keeps every received event; handy in tests and the CLI.
    """

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    def on_event(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    def clear(self) -> None:
        self.events.clear()


__all__ = [
    "ChangeEvent",
    "ChangeObserver",
    "EventBus",
    "EventRecorder",
]
