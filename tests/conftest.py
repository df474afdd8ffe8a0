"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from marktree.codec import MarkupCodec
from marktree.core.ranges import Point, Selection
from marktree.editor.document_model import EditorState, initialize
from marktree.services.telemetry import clear_event_listeners

PLUGINS = [
    {"id": "youtube", "node_type": "block"},
    {"id": "mention", "node_type": "inline"},
]


@pytest.fixture(autouse=True)
def _reset_telemetry():
    clear_event_listeners()
    yield
    clear_event_listeners()


@pytest.fixture
def codec() -> MarkupCodec:
    return MarkupCodec()


@pytest.fixture
def plugin_codec() -> MarkupCodec:
    return MarkupCodec(PLUGINS)


@pytest.fixture
def make_state() -> Callable[..., EditorState]:
    """Build a state from markup with the selection between two points.

    Points are ``(path, offset)`` pairs; ``focus`` defaults to ``anchor``.
    """

    def factory(markup: str | None, anchor: Any = ((0,), 0), focus: Any = None, *, focused: bool = True) -> EditorState:
        state = initialize(markup, PLUGINS)
        start = Point.from_value(anchor)
        end = start if focus is None else Point.from_value(focus)
        return state.evolve(selection=Selection(start, end, focused))

    return factory
