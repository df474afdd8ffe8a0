"""Tests for the typed editor events."""

from __future__ import annotations

import logging

import pytest

from marktree.services import telemetry
from marktree.services.telemetry import ContentChanged, InMemoryEventSink, TransientSuppressed


def test_emit_delivers_events_by_type() -> None:
    received: list[ContentChanged] = []
    telemetry.register_event_listener(ContentChanged, received.append)
    telemetry.register_event_listener(ContentChanged, received.append)

    event = ContentChanged(version_id=2, content_hash="abc", length=3)
    telemetry.emit(event)
    telemetry.emit(TransientSuppressed(reason="soft_break", version_id=2))

    assert received == [event]


def test_payload_names_the_event() -> None:
    event = TransientSuppressed(reason="soft_break", version_id=4)

    assert event.to_payload() == {"event": "transient_suppressed", "reason": "soft_break", "version_id": 4}
    assert ContentChanged.name == "content_changed"


def test_events_are_immutable() -> None:
    event = ContentChanged(version_id=1, content_hash="", length=0)

    with pytest.raises(AttributeError):
        event.length = 5  # type: ignore[misc]


def test_unregister_stops_delivery() -> None:
    received: list[ContentChanged] = []
    telemetry.register_event_listener(ContentChanged, received.append)
    telemetry.unregister_event_listener(ContentChanged, received.append)
    telemetry.unregister_event_listener(ContentChanged, received.append)

    telemetry.emit(ContentChanged(version_id=1, content_hash="", length=0))

    assert received == []


def test_listener_failures_are_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    received: list[ContentChanged] = []

    def broken(_event: ContentChanged) -> None:
        raise RuntimeError("boom")

    telemetry.register_event_listener(ContentChanged, broken)
    telemetry.register_event_listener(ContentChanged, received.append)

    with caplog.at_level(logging.DEBUG, logger="marktree.services.telemetry"):
        telemetry.emit(ContentChanged(version_id=2, content_hash="x", length=1))

    assert [event.version_id for event in received] == [2]
    assert "failed for content_changed" in caplog.text


def test_in_memory_sink_keeps_recent_events() -> None:
    sink = InMemoryEventSink(capacity=10).attach()

    for version in range(12):
        telemetry.emit(ContentChanged(version_id=version, content_hash="", length=version))
    telemetry.emit(TransientSuppressed(reason="soft_break", version_id=12))

    assert len(sink) == 10
    assert sink.capacity == 10
    assert [event.version_id for event in sink.tail(2)] == [11, 12]
    assert sink.payloads()[-1]["event"] == "transient_suppressed"

    sink.detach()
    telemetry.emit(ContentChanged(version_id=99, content_hash="", length=0))
    assert sink.tail(1)[0].version_id == 12
