"""Tests for the pure editing transforms."""

from __future__ import annotations

from marktree.codec import MarkupCodec
from marktree.core.nodes import Block, Inline, Text, text
from marktree.core.ranges import Point, Selection
from marktree.core.schema import (
    DEFAULT_NODE,
    HORIZONTAL_RULE,
    LINK,
    LIST_ITEM,
    MEDIAPROXY,
    ORDERED_LIST,
    UNORDERED_LIST,
)
from marktree.editor import transforms
from marktree.editor.media import MediaProxy


def _types(state) -> list[str]:
    return [node.type for node in state.document.children]


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------
def test_toggle_mark_twice_restores_state(make_state) -> None:
    state = make_state("hello world", ((0,), 0), ((0,), 5))

    bolded = transforms.toggle_mark(state, "bold")

    assert bolded.document.children[0].children == (text("hello", "bold"), Text(" world"))
    assert transforms.toggle_mark(bolded, "bold") == state


def test_toggle_mark_removes_mark_when_whole_selection_has_it(make_state) -> None:
    state = make_state("**hello** world", ((0,), 0), ((0,), 5))

    updated = transforms.toggle_mark(state, "bold")

    assert updated.document.children[0].children == (Text("hello world"),)


def test_toggle_mark_adds_mark_over_mixed_selection(make_state) -> None:
    state = make_state("**he**llo", ((0,), 0), ((0,), 5))

    updated = transforms.toggle_mark(state, "bold")

    assert updated.document.children[0].children == (text("hello", "bold"),)


def test_toggle_mark_spans_blocks(make_state) -> None:
    state = make_state("one\n\ntwo", ((0,), 1), ((1,), 2))

    updated = transforms.toggle_mark(state, "italic")

    assert updated.document.children[0].children == (Text("o"), text("ne", "italic"))
    assert updated.document.children[1].children == (text("tw", "italic"), Text("o"))


def test_toggle_mark_ignores_collapsed_and_unknown(make_state) -> None:
    state = make_state("hello", ((0,), 2))

    assert transforms.toggle_mark(state, "bold") is state
    expanded = make_state("hello", ((0,), 0), ((0,), 5))
    assert transforms.toggle_mark(expanded, "underline") is expanded


# ---------------------------------------------------------------------------
# Block types
# ---------------------------------------------------------------------------
def test_switching_ordered_list_to_unordered_replaces_wrapper(make_state) -> None:
    state = make_state("1. a\n2. b", ((0, 0), 0), ((0, 1), 1))

    updated = transforms.set_block_type(state, UNORDERED_LIST, False, True)

    assert _types(updated) == [UNORDERED_LIST]
    items = updated.document.children[0].children
    assert [item.type for item in items] == [LIST_ITEM, LIST_ITEM]
    assert [item.children for item in items] == [(Text("a"),), (Text("b"),)]
    assert updated.selection.anchor == Point((0, 0), 0)
    assert updated.selection.focus == Point((0, 1), 1)


def test_active_list_type_exits_the_list(make_state) -> None:
    state = make_state("- a\n- b", ((0, 0), 0), ((0, 1), 1))

    updated = transforms.set_block_type(state, UNORDERED_LIST, True, True)

    assert _types(updated) == [DEFAULT_NODE, DEFAULT_NODE]
    assert updated.selection.focus == Point((1,), 1)


def test_list_detection_does_not_need_hint(make_state) -> None:
    state = make_state("- a", ((0, 0), 0))

    updated = transforms.set_block_type(state, ORDERED_LIST)

    assert _types(updated) == [ORDERED_LIST]
    assert updated.document.children[0].children[0] == Block(LIST_ITEM, (Text("a"),))


def test_wrapping_paragraphs_in_a_list(make_state) -> None:
    state = make_state("a\n\nb", ((0,), 0), ((1,), 1))

    updated = transforms.set_block_type(state, ORDERED_LIST)

    assert _types(updated) == [ORDERED_LIST]
    assert len(updated.document.children[0].children) == 2
    assert updated.selection.anchor == Point((0, 0), 0)


def test_heading_toggle_and_reset(make_state) -> None:
    state = make_state("title", ((0,), 2))

    heading = transforms.set_block_type(state, "heading-one")
    reset = transforms.set_block_type(heading, "heading-one", True)

    assert _types(heading) == ["heading-one"]
    assert _types(reset) == [DEFAULT_NODE]
    assert reset.document.children[0].children == (Text("title"),)


def test_non_list_type_lifts_block_out_of_list(make_state) -> None:
    state = make_state("- a\n- b", ((0, 1), 0))

    updated = transforms.set_block_type(state, "heading-two", False, True)

    assert _types(updated) == [UNORDERED_LIST, "heading-two"]
    assert updated.selection.anchor == Point((1,), 0)


def test_exiting_outer_list_from_nested_list_of_other_kind(make_state) -> None:
    state = make_state("- a\n  1. b", ((0, 0, 1, 0), 0))

    updated = transforms.set_block_type(state, UNORDERED_LIST, True, True)

    assert _types(updated) == [DEFAULT_NODE, DEFAULT_NODE]
    assert updated.document.validate() is updated.document
    assert updated.selection.anchor == Point((1,), 0)


def test_heading_on_nested_item_leaves_every_list(make_state) -> None:
    state = make_state("- a\n  1. b", ((0, 0, 1, 0), 0))

    updated = transforms.set_block_type(state, "heading-two", False, True)

    assert _types(updated) == [DEFAULT_NODE, "heading-two"]
    assert updated.document.children[1].children == (Text("b"),)
    assert updated.selection.anchor == Point((1,), 0)


def test_set_block_type_ignores_list_item(make_state) -> None:
    state = make_state("a")

    assert transforms.set_block_type(state, LIST_ITEM) is state


# ---------------------------------------------------------------------------
# Inline annotations
# ---------------------------------------------------------------------------
def test_toggle_link_wraps_selection_and_collapses_to_end(make_state) -> None:
    state = make_state("hello world", ((0,), 0), ((0,), 5))
    prompts: list[tuple[str, str]] = []

    def request(prompt: str, default: str) -> str:
        prompts.append((prompt, default))
        return "http://example.com"

    updated = transforms.toggle_inline(state, LINK, False, request)

    link = updated.document.children[0].children[0]
    assert isinstance(link, Inline)
    assert link.type == LINK
    assert dict(link.data) == {"href": "http://example.com"}
    assert link.children == (Text("hello"),)
    assert updated.selection == Selection(Point((0,), 5), Point((0,), 5), True)
    assert prompts == [(transforms.LINK_PROMPT, transforms.LINK_PROMPT_DEFAULT)]


def test_cancelled_link_input_leaves_state_unchanged(make_state) -> None:
    state = make_state("hello world", ((0,), 0), ((0,), 5))

    assert transforms.toggle_inline(state, LINK, False, lambda prompt, default: None) is state
    assert transforms.toggle_inline(state, LINK, False, None) is state


def test_empty_inline_input_leaves_state_unchanged(make_state) -> None:
    state = make_state("hello world", ((0,), 0), ((0,), 5))

    assert transforms.toggle_inline(state, LINK, False, lambda prompt, default: "") is state


def test_active_link_toggle_unwraps(make_state) -> None:
    state = make_state("hello world", ((0,), 0), ((0,), 5))
    linked = transforms.toggle_inline(state, LINK, False, lambda prompt, default: "http://a.b")

    unlinked = transforms.toggle_inline(transforms.select(linked, ((0,), 0), ((0,), 3)), LINK, True)

    assert unlinked.document == state.document


def test_non_link_inline_stores_value(make_state) -> None:
    state = make_state("abc", ((0,), 0), ((0,), 3))

    updated = transforms.toggle_inline(state, "abbr", False, lambda prompt, default: "Alphabet")

    assert dict(updated.document.children[0].children[0].data) == {"value": "Alphabet"}


# ---------------------------------------------------------------------------
# Insertions
# ---------------------------------------------------------------------------
def test_void_block_insert_ends_with_editable_paragraph(make_state) -> None:
    state = make_state(None)

    updated = transforms.insert_void_block(state, HORIZONTAL_RULE)

    assert _types(updated) == [HORIZONTAL_RULE, DEFAULT_NODE]
    last = updated.document.children[-1]
    assert not last.is_void
    assert updated.selection == Selection.caret((1,), 0, is_focused=True)


def test_void_block_insert_splits_text(make_state) -> None:
    state = make_state("hello world", ((0,), 5))

    updated = transforms.insert_void_block(state, HORIZONTAL_RULE)

    assert _types(updated) == [DEFAULT_NODE, HORIZONTAL_RULE, DEFAULT_NODE, DEFAULT_NODE]
    assert updated.document.children[0].children == (Text("hello"),)
    assert updated.document.children[2].children == (Text(" world"),)
    assert updated.selection.anchor == Point((3,), 0)


def test_void_block_insert_inside_list_splits_the_list(make_state) -> None:
    state = make_state("- a\n- b", ((0, 0), 1))

    updated = transforms.insert_void_block(state, HORIZONTAL_RULE)

    assert _types(updated) == [UNORDERED_LIST, HORIZONTAL_RULE, UNORDERED_LIST, DEFAULT_NODE]
    assert updated.document.children[-1].children == (Text(),)


def test_focus_and_add_paragraph_lifts_trailing_block_out_of_list(make_state) -> None:
    state = make_state("- a\n- b", ((0, 0), 0), focused=False)

    updated = transforms.focus_and_add_paragraph(state)

    assert _types(updated) == [UNORDERED_LIST, DEFAULT_NODE]
    assert len(updated.document.children[0].children) == 2
    assert updated.document.children[1].children == (Text(),)
    assert updated.selection == Selection.caret((1,), 0, is_focused=True)


def test_insert_media_embeds_proxy_data(make_state) -> None:
    state = make_state("intro", ((0,), 5))
    proxy = MediaProxy.for_file("photos/cat.png")

    updated = transforms.insert_media(state, proxy)

    media = updated.document.children[1]
    assert media.type == MEDIAPROXY
    assert dict(media.data) == {"src": "/uploads/cat.png", "alt": "cat.png"}
    assert MarkupCodec().serialize(updated.document) == "intro\n\n![cat.png](/uploads/cat.png)"


def test_void_inline_insert_splits_block(make_state) -> None:
    state = make_state("ab", ((0,), 1))

    updated = transforms.insert_void_inline(state, "mention", {"user": "ann"})

    first, fresh, rest = updated.document.children
    assert first.children[0] == Text("a")
    assert first.children[1].type == "mention"
    assert fresh.children == (Text(),)
    assert rest.children == (Text("b"),)
    assert updated.selection.anchor == Point((1,), 0)


def test_void_inline_at_end_adds_block_after(make_state) -> None:
    state = make_state("ab", ((0,), 2))

    updated = transforms.insert_void_inline(state, "mention", {"user": "ann"})

    assert _types(updated) == [DEFAULT_NODE, DEFAULT_NODE]
    assert updated.document.children[0].children[0] == Text("ab")
    assert updated.selection.anchor == Point((1,), 0)


def test_soft_break_inserts_newline_and_token(make_state) -> None:
    state = make_state("ab", ((0,), 1))

    updated, token = transforms.insert_soft_break(state)

    assert updated.document.children[0].children == (Text("a\nb"),)
    assert updated.selection.anchor == Point((0,), 2)
    assert token is not None
    assert token.consume() is True
    assert token.consume() is False


def test_insert_text_inherits_marks_of_preceding_text(make_state) -> None:
    state = make_state("**ab**", ((0,), 2))

    updated = transforms.insert_text(state, "c")

    assert updated.document.children[0].children == (text("abc", "bold"),)


def test_split_block_moves_caret(make_state) -> None:
    state = make_state("abcd", ((0,), 2))

    updated = transforms.split_block(state)

    assert [block.children for block in updated.document.children] == [(Text("ab"),), (Text("cd"),)]
    assert updated.selection.anchor == Point((1,), 0)


# ---------------------------------------------------------------------------
# Selection helpers
# ---------------------------------------------------------------------------
def test_select_clamps_offsets_and_ignores_invalid_targets(make_state) -> None:
    state = make_state("- a\n- b", ((0, 0), 0))

    moved = transforms.select(state, ((0, 1), 10))
    assert moved.selection.anchor == Point((0, 1), 1)
    assert transforms.select(state, ((0,), 0)) is state
    assert transforms.select(state, ((5,), 0)) is state
    assert transforms.select(state, "nonsense") is state


def test_focus_blur_and_collapse(make_state) -> None:
    state = make_state("abc", ((0,), 0), ((0,), 2), focused=False)

    focused = transforms.focus(state)
    collapsed = transforms.collapse_to_end(focused)

    assert focused.is_focused
    assert collapsed.selection == Selection.caret((0,), 2, is_focused=True)
    assert not transforms.blur(collapsed).is_focused
    assert collapsed.version_id == state.version_id
