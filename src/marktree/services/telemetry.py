"""Typed in-process events describing editor activity."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Callable, ClassVar, TypeVar, Union

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ContentChanged:
    """The coordinator published new markup for a content change."""

    name: ClassVar[str] = "content_changed"

    version_id: int
    content_hash: str
    length: int

    def to_payload(self) -> dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(slots=True, frozen=True)
class TransientSuppressed:
    """A transient change was swallowed by a suppression token."""

    name: ClassVar[str] = "transient_suppressed"

    reason: str
    version_id: int

    def to_payload(self) -> dict[str, Any]:
        return {"event": self.name, **asdict(self)}


EditorEvent = Union[ContentChanged, TransientSuppressed]
EventT = TypeVar("EventT", ContentChanged, TransientSuppressed)
EventListener = Callable[[Any], None]

_EVENT_LISTENERS: dict[type, list[EventListener]] = {}


def register_event_listener(event_type: type[EventT], callback: Callable[[EventT], None]) -> None:
    """Register ``callback`` for every emitted event of ``event_type``."""

    if event_type is None or callback is None:
        return
    listeners = _EVENT_LISTENERS.setdefault(event_type, [])
    if callback not in listeners:
        listeners.append(callback)


def unregister_event_listener(event_type: type[EventT], callback: Callable[[EventT], None]) -> None:
    listeners = _EVENT_LISTENERS.get(event_type)
    if not listeners:
        return
    try:
        listeners.remove(callback)
    except ValueError:
        return
    if not listeners:
        _EVENT_LISTENERS.pop(event_type, None)


def clear_event_listeners() -> None:
    """Drop every registered listener (used by tests)."""

    _EVENT_LISTENERS.clear()


def emit(event: EditorEvent) -> None:
    """Deliver ``event`` to the listeners registered for its type.

    A failing listener is logged and skipped; the emitter never sees it.
    """

    for callback in list(_EVENT_LISTENERS.get(type(event), ())):
        try:
            callback(event)
        except Exception:  # listeners must not break emitters
            LOGGER.debug("Telemetry listener %s failed for %s", callback, event.name, exc_info=True)
    LOGGER.debug("Telemetry emit %s: %s", event.name, event.to_payload())


class InMemoryEventSink:
    """Ring buffer of recent editor events for inspection and tests."""

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = max(10, capacity)
        self._buffer: deque[EditorEvent] = deque(maxlen=self._capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def attach(self, *event_types: type) -> InMemoryEventSink:
        """Subscribe to ``event_types`` (every event type when none given)."""

        for event_type in event_types or (ContentChanged, TransientSuppressed):
            register_event_listener(event_type, self.record)
        return self

    def detach(self) -> None:
        for event_type in (ContentChanged, TransientSuppressed):
            unregister_event_listener(event_type, self.record)

    def record(self, event: EditorEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def tail(self, limit: int | None = None) -> list[EditorEvent]:
        with self._lock:
            events = list(self._buffer)
        if limit is None or limit >= len(events):
            return events
        return events[-limit:]

    def payloads(self) -> list[dict[str, Any]]:
        return [event.to_payload() for event in self.tail()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


__all__ = [
    "ContentChanged",
    "EditorEvent",
    "EventListener",
    "InMemoryEventSink",
    "TransientSuppressed",
    "clear_event_listeners",
    "emit",
    "register_event_listener",
    "unregister_event_listener",
]
