"""Tests for the persistent tree editing helpers."""

from __future__ import annotations

from marktree.core.nodes import Text, block, document, inline, text
from marktree.core.schema import BLOCK_QUOTE, DEFAULT_NODE, HORIZONTAL_RULE, LINK, LIST_ITEM, UNORDERED_LIST
from marktree.editor import tree_ops
from marktree.editor.media import MediaProxy, mediaproxy_block


def test_replace_node_shares_untouched_siblings() -> None:
    first, second = block(DEFAULT_NODE, ["a"]), block(DEFAULT_NODE, ["b"])
    doc = document(first, second)

    updated = tree_ops.replace_node(doc, (1,), block(DEFAULT_NODE, ["c"]))

    assert updated.children[0] is first
    assert doc.children[1] is second


def test_split_inline_children_splits_links_in_two() -> None:
    link = inline(LINK, ["abcd"], data={"href": "x"})

    left, right = tree_ops.split_inline_children((Text("1"), link), 3)

    assert left == (Text("1"), inline(LINK, ["ab"], data={"href": "x"}))
    assert right == (inline(LINK, ["cd"], data={"href": "x"}),)


def test_map_text_range_reaches_into_inlines() -> None:
    children = (Text("go "), inline(LINK, ["here"], data={"href": "x"}))

    mapped = tree_ops.map_text_range(children, 1, 5, lambda leaf: leaf.add_mark("code"))

    assert mapped[0] == Text("g")
    assert mapped[1] == text("o ", "code")
    assert mapped[2].children == (text("he", "code"), Text("re"))


def test_set_block_switches_between_void_and_text() -> None:
    doc = document(block(DEFAULT_NODE, ["x"], data={"keep": 1}))

    voided = tree_ops.set_block(doc, (0,), HORIZONTAL_RULE)
    restored = tree_ops.set_block(voided, (0,), DEFAULT_NODE)

    assert voided.children[0].is_void
    assert restored.children[0] == block(DEFAULT_NODE)
    assert tree_ops.set_block(doc, (0,), "heading-one").children[0].data == {}


def test_wrap_and_unwrap_blocks() -> None:
    doc = document(block(DEFAULT_NODE, ["a"]), block(DEFAULT_NODE, ["b"]), block(DEFAULT_NODE, ["c"]))

    wrapped = tree_ops.wrap_blocks(doc, [(0,), (1,)], BLOCK_QUOTE)
    assert [node.type for node in wrapped.children] == [BLOCK_QUOTE, DEFAULT_NODE]

    unwrapped = tree_ops.unwrap_blocks(wrapped, [(0, 1)], BLOCK_QUOTE)
    assert [node.type for node in unwrapped.children] == [BLOCK_QUOTE, DEFAULT_NODE, DEFAULT_NODE]
    assert unwrapped.children[0].children == (block(DEFAULT_NODE, ["a"]),)


def test_unwrapping_list_items_turns_them_into_paragraphs() -> None:
    doc = document(block(UNORDERED_LIST, [block(LIST_ITEM, ["a"]), block(LIST_ITEM, ["b"]), block(LIST_ITEM, ["c"])]))

    updated = tree_ops.unwrap_blocks(doc, [(0, 1)], UNORDERED_LIST)

    assert [node.type for node in updated.children] == [UNORDERED_LIST, DEFAULT_NODE, UNORDERED_LIST]
    assert updated.children[1].children == (Text("b"),)


def test_lift_to_top_splits_every_container() -> None:
    inner = block(UNORDERED_LIST, [block(LIST_ITEM, ["a"]), block(DEFAULT_NODE, ["b"])])
    doc = document(block(BLOCK_QUOTE, [block(DEFAULT_NODE, ["q"]), inner]))

    lifted, path = tree_ops.lift_to_top(doc, (0, 1, 1))

    assert path == (1,)
    assert lifted.children[1] == block(DEFAULT_NODE, ["b"])
    assert lifted.children[0].type == BLOCK_QUOTE


def test_split_block_on_void_adds_default_sibling() -> None:
    doc = document(mediaproxy_block(MediaProxy.for_file("a.png")))

    updated, path = tree_ops.split_block(doc, (0,), 0)

    assert path == (1,)
    assert updated.children[1] == block(DEFAULT_NODE)


def test_insert_text_at_start_of_empty_block() -> None:
    assert tree_ops.insert_text_at((Text(),), 0, "hi") == (Text("hi"),)
