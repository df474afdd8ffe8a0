"""Edited documents must survive a serialize/parse cycle."""

from __future__ import annotations

from typing import Callable

import pytest

from marktree.codec import MarkupCodec
from marktree.core.nodes import equivalent
from marktree.core.schema import ORDERED_LIST, UNORDERED_LIST
from marktree.editor import transforms
from marktree.editor.document_model import EditorState
from marktree.services.settings import Settings

Edit = Callable[[EditorState], EditorState]


def _marks(*steps: tuple[tuple, tuple, str]) -> Edit:
    def apply(state: EditorState) -> EditorState:
        for anchor, focus, mark_type in steps:
            state = transforms.toggle_mark(transforms.select(state, anchor, focus), mark_type)
        return state

    return apply


def _block_type(node_type: str, is_active: bool = False) -> Edit:
    return lambda state: transforms.set_block_type(state, node_type, is_active)


def _typed(value: str) -> Edit:
    return lambda state: transforms.insert_text(state, value)


def _soft_break(state: EditorState) -> EditorState:
    return transforms.insert_soft_break(state)[0]


EDITS = [
    # overlapping marks
    pytest.param("xyz", ((0,), 0), _marks((((0,), 0), ((0,), 2), "italic"), (((0,), 1), ((0,), 3), "bold")), id="overlap"),
    pytest.param("abcd", ((0,), 0), _marks((((0,), 0), ((0,), 3), "bold"), (((0,), 1), ((0,), 4), "italic")), id="overlap-reversed"),
    pytest.param(
        "abcdef",
        ((0,), 0),
        _marks(
            (((0,), 0), ((0,), 4), "bold"),
            (((0,), 2), ((0,), 6), "italic"),
            (((0,), 1), ((0,), 5), "strikethrough"),
        ),
        id="three-marks",
    ),
    pytest.param("ab", ((0,), 0), _marks((((0,), 0), ((0,), 1), "bold"), (((0,), 1), ((0,), 2), "italic")), id="adjacent"),
    # punctuation next to words
    pytest.param("foo.bar", ((0,), 0), _marks((((0,), 3), ((0,), 4), "bold")), id="bold-period"),
    pytest.param("a(b)c", ((0,), 0), _marks((((0,), 1), ((0,), 4), "italic")), id="italic-parens"),
    pytest.param("x-y", ((0,), 0), _marks((((0,), 1), ((0,), 2), "strikethrough")), id="strike-dash"),
    pytest.param("say hi!", ((0,), 0), _marks((((0,), 4), ((0,), 6), "bold")), id="before-bang"),
    pytest.param("foo_bar_baz", ((0,), 0), _marks((((0,), 4), ((0,), 7), "italic")), id="underscores"),
    pytest.param("snake", ((0,), 0), _marks((((0,), 1), ((0,), 4), "italic")), id="intraword"),
    # block types on nested lists
    pytest.param("- a\n  1. b", ((0, 0, 1, 0), 0), _block_type(UNORDERED_LIST, True), id="exit-outer-list"),
    pytest.param("- a\n  1. b", ((0, 0, 1, 0), 0), _block_type(ORDERED_LIST, True), id="exit-inner-list"),
    pytest.param("- a\n  1. b", ((0, 0, 1, 0), 0), _block_type(UNORDERED_LIST), id="switch-inner-list"),
    pytest.param("1. a\n   - b\n2. c", ((0, 0, 1, 0), 0), _block_type("heading-three"), id="heading-in-nested"),
    pytest.param("- a\n- b", ((0, 1), 0), _block_type(ORDERED_LIST), id="switch-list"),
    # typing into headings
    pytest.param("# foo", ((0,), 3), _typed(" #"), id="heading-hash"),
    pytest.param("## C", ((0,), 1), _typed("#"), id="heading-sharp"),
    pytest.param("# a", ((0,), 1), _typed(" ###"), id="heading-hashes"),
    pytest.param("# a", ((0,), 0), _typed("*b* "), id="heading-stars"),
    # soft breaks
    pytest.param("ab", ((0,), 1), _soft_break, id="soft-break"),
    pytest.param("**ab**", ((0,), 1), _soft_break, id="soft-break-bold"),
    pytest.param("- ab", ((0, 0), 1), _soft_break, id="soft-break-item"),
    pytest.param("a", ((0,), 1), lambda state: _typed("- b")(_soft_break(state)), id="soft-break-then-bullet"),
    pytest.param("a", ((0,), 1), lambda state: _typed("# b")(_soft_break(state)), id="soft-break-then-hash"),
]


@pytest.mark.parametrize("markup, caret, edit", EDITS)
def test_edited_document_round_trips(make_state, codec: MarkupCodec, markup: str, caret: tuple, edit: Edit) -> None:
    updated = edit(make_state(markup, caret))

    assert equivalent(codec.parse(codec.serialize(updated.document)), updated.document)


@pytest.mark.parametrize("markup, caret, edit", EDITS)
def test_edited_document_round_trips_with_underscore_markers(make_state, markup: str, caret: tuple, edit: Edit) -> None:
    codec = MarkupCodec(settings=Settings(emphasis_marker="_", strong_marker="__"))
    updated = edit(make_state(markup, caret))

    assert equivalent(codec.parse(codec.serialize(updated.document)), updated.document)
