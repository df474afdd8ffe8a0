"""Pure editing operations over :class:`EditorState`.

Each public function takes a state (plus arguments) and returns a new state.
Invalid arguments leave the state unchanged; they are logged at DEBUG level
and never raise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from ..core.nodes import (
    Block,
    Document,
    Inline,
    Text,
    blocks_in_selection,
    get_closest_block_type,
    get_node,
    has_node,
    leaf_block_paths,
    normalize_children,
    selected_offsets,
    text_of,
)
from ..core.ranges import Path, Point, Selection
from ..core.schema import (
    DEFAULT_NODE,
    LINK,
    LIST_ITEM,
    LIST_TYPES,
    MARK_TYPES,
    other_list_type,
)
from . import tree_ops
from .document_model import EditorState, SuppressionToken
from .media import MediaProxy, mediaproxy_block

LOGGER = logging.getLogger(__name__)

LINK_PROMPT = "Enter the URL of the link:"
LINK_PROMPT_DEFAULT = "http://www."

RequestInput = Callable[[str, str], "str | None"]

_INPUT_KEYS = {LINK: "href"}


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------
def toggle_mark(state: EditorState, mark_type: str) -> EditorState:
    """Toggle ``mark_type`` over the selected text.

    When every selected text leaf already carries the mark it is removed
    from all of them, otherwise it is added to all of them.
    """

    if mark_type not in MARK_TYPES:
        LOGGER.debug("Ignoring toggle of unknown mark %r", mark_type)
        return state
    selection = state.selection
    if selection.is_collapsed:
        LOGGER.debug("Ignoring mark toggle on a collapsed selection")
        return state

    document = state.document
    targets: list[tuple[Path, Block, int, int]] = []
    leaves: list[Text] = []
    for path in blocks_in_selection(document, selection):
        node = get_node(document, path)
        if not isinstance(node, Block) or node.is_void:
            continue
        start, end = selected_offsets(document, selection, path)
        if start >= end:
            continue
        targets.append((path, node, start, end))
        leaves.extend(tree_ops.leaves_in_range(node.children, start, end))  # type: ignore[arg-type]
    if not leaves:
        return state

    remove = all(leaf.has_mark(mark_type) for leaf in leaves)

    def restyle(leaf: Text) -> Text:
        return leaf.remove_mark(mark_type) if remove else leaf.add_mark(mark_type)

    for path, node, start, end in targets:
        children = tree_ops.map_text_range(node.children, start, end, restyle)  # type: ignore[arg-type]
        document = tree_ops.replace_node(document, path, replace(node, children=children))
    return state.evolve(document=document)


# ---------------------------------------------------------------------------
# Block types and lists
# ---------------------------------------------------------------------------
def set_block_type(
    state: EditorState,
    node_type: str,
    is_active: bool = False,
    is_list: bool | None = None,
) -> EditorState:
    """Change the type of the selected blocks.

    ``is_list`` tells whether the selection currently sits inside a list;
    when omitted it is detected from the document. Non-list types are set
    directly (or reset to the default type when ``is_active``), lifting the
    blocks out of any list. List types enter, leave or switch lists so that
    a block never ends up inside both list kinds.
    """

    if not node_type or node_type == LIST_ITEM:
        LOGGER.debug("Ignoring block type change to %r", node_type)
        return state
    document = state.document
    paths = blocks_in_selection(document, state.selection)
    if not paths:
        return state
    detected = any(tree_ops.enclosing_list(document, path) for path in paths)
    in_list = bool(is_list) or detected
    ordinals = tree_ops.leaf_ordinals(document, paths)

    if node_type not in LIST_TYPES:
        if in_list:
            document = _unwrap_lists(document, ordinals)
            paths = tree_ops.paths_for_ordinals(document, ordinals)
        document = _set_blocks(document, paths, DEFAULT_NODE if is_active else node_type)
    else:
        is_type = any(get_closest_block_type(document, path, node_type) for path in paths)
        if in_list and is_type:
            document = _unwrap_lists(document, ordinals, until=node_type)
            paths = tree_ops.paths_for_ordinals(document, ordinals)
            document = _set_blocks(document, [path for path in paths if not _in_list(document, path)], DEFAULT_NODE)
        else:
            if in_list:
                document = tree_ops.unwrap_blocks(document, paths, other_list_type(node_type))
                paths = tree_ops.paths_for_ordinals(document, ordinals)
            document = _set_blocks(document, paths, LIST_ITEM)
            for run in reversed(_sibling_runs(paths)):
                document = tree_ops.wrap_blocks(document, run, node_type)

    selection = _remap_selection(state.document, document, state.selection)
    return state.evolve(document=document, selection=selection)


def _set_blocks(document: Document, paths: list[Path], node_type: str) -> Document:
    for path in paths:
        document = tree_ops.set_block(document, path, node_type)
    return document


def _in_list(document: Document, path: Path) -> bool:
    parent = get_node(document, path[:-1]) if len(path) > 1 else None
    return isinstance(parent, Block) and parent.type in LIST_TYPES


def _list_depth(document: Document, path: Path) -> int:
    return sum(1 for size in range(1, len(path)) if get_node(document, path[:size]).type in LIST_TYPES)  # type: ignore[union-attr]


def _unwrap_lists(document: Document, ordinals: list[int], until: str | None = None) -> Document:
    """Lift the leaf blocks at ``ordinals`` out of their enclosing lists.

    Without ``until`` every list is left. Otherwise each block leaves the
    lists up to and including its closest ``until`` list, so an item nested
    in a list of the other kind is lifted out of that list as well. Blocks
    outside any ``until`` list stay where they are.
    """

    targets: dict[int, int] = {}
    for ordinal, path in zip(ordinals, tree_ops.paths_for_ordinals(document, ordinals)):
        if until is None:
            targets[ordinal] = 0
            continue
        found = get_closest_block_type(document, path, until)
        if found is not None:
            targets[ordinal] = _list_depth(document, found)

    while True:
        pending: dict[str, list[Path]] = {}
        for ordinal, path in zip(ordinals, tree_ops.paths_for_ordinals(document, ordinals)):
            if ordinal not in targets or _list_depth(document, path) <= targets[ordinal]:
                continue
            closest = tree_ops.enclosing_list(document, path)
            if closest is not None:
                pending.setdefault(get_node(document, closest).type, []).append(path)  # type: ignore[union-attr]
        if not pending:
            return document
        list_type, paths = next(iter(pending.items()))
        updated = tree_ops.unwrap_blocks(document, paths, list_type)
        if updated is document:
            return document
        document = updated


def _sibling_runs(paths: list[Path]) -> list[list[Path]]:
    runs: list[list[Path]] = []
    for path in paths:
        previous = runs[-1][-1] if runs else None
        if previous is not None and previous[:-1] == path[:-1] and previous[-1] + 1 == path[-1]:
            runs[-1].append(path)
        else:
            runs.append([path])
    return runs


def _remap_selection(before: Document, after: Document, selection: Selection) -> Selection:
    """Carry ``selection`` over a change that keeps the leaf-block sequence."""

    old_leaves = leaf_block_paths(before)
    new_leaves = leaf_block_paths(after)
    if len(old_leaves) != len(new_leaves):
        first = new_leaves[0]
        return Selection.caret(first, 0, is_focused=selection.is_focused)
    mapping = dict(zip(old_leaves, new_leaves))

    def remap(point: Point) -> Point:
        path = mapping.get(point.path, point.path)
        return Point(path, min(point.offset, len(text_of(get_node(after, path)))))

    return Selection(remap(selection.anchor), remap(selection.focus), selection.is_focused)


# ---------------------------------------------------------------------------
# Inline annotations
# ---------------------------------------------------------------------------
def toggle_inline(
    state: EditorState,
    node_type: str,
    is_active: bool = False,
    request_input: RequestInput | None = None,
    *,
    prompt: str = LINK_PROMPT,
    default: str = LINK_PROMPT_DEFAULT,
) -> EditorState:
    """Wrap or unwrap the selected text in an inline of ``node_type``.

    Wrapping asks ``request_input(prompt, default)`` for the inline's data;
    a ``None`` or empty answer cancels the operation and returns ``state``
    unchanged.
    """

    selection = state.selection
    if not node_type or selection.is_collapsed:
        LOGGER.debug("Ignoring inline toggle without an expanded selection")
        return state
    document = state.document
    targets: list[tuple[Path, Block, int, int]] = []
    for path in blocks_in_selection(document, selection):
        node = get_node(document, path)
        if isinstance(node, Block) and not node.is_void:
            start, end = selected_offsets(document, selection, path)
            targets.append((path, node, start, end))

    if is_active:
        for path, node, start, end in targets:
            children = tree_ops.unwrap_inline_children(node.children, node_type, start, end)  # type: ignore[arg-type]
            if children != node.children:
                document = tree_ops.replace_node(document, path, replace(node, children=children))
        if document is state.document:
            return state
        return state.evolve(document=document)

    if request_input is None:
        LOGGER.debug("No input provider for %r inline", node_type)
        return state
    value = request_input(prompt, default)
    if not value:
        LOGGER.debug("Input for %r inline was cancelled", node_type)
        return state
    data = {_INPUT_KEYS.get(node_type, "value"): value}

    end_point: Point | None = None
    for path, node, start, end in targets:
        if start >= end:
            continue
        left, rest = tree_ops.split_inline_children(node.children, start)  # type: ignore[arg-type]
        middle, right = tree_ops.split_inline_children(rest, end - start)
        content = tree_ops.unwrap_inline_children(middle, node_type)
        wrapped = Inline(node_type, content, data)
        children = normalize_children((*left, wrapped, *right))
        document = tree_ops.replace_node(document, path, replace(node, children=children))
        end_point = Point(path, end)
    if end_point is None:
        return state
    collapsed = Selection(end_point, end_point, selection.is_focused)
    return state.evolve(document=document, selection=collapsed)


# ---------------------------------------------------------------------------
# Insertions
# ---------------------------------------------------------------------------
def insert_void_block(state: EditorState, node_type: str, data: Mapping[str, Any] | None = None) -> EditorState:
    """Insert a void block at the selection and add a trailing paragraph."""

    if not node_type or not isinstance(node_type, str):
        LOGGER.debug("Ignoring void block insert of %r", node_type)
        return state
    return _insert_void(state, Block(node_type, (), data or {}, True))


def insert_media(state: EditorState, proxy: MediaProxy) -> EditorState:
    """Insert a ``mediaproxy`` block for ``proxy`` followed by a paragraph."""

    return _insert_void(state, mediaproxy_block(proxy))


def _insert_void(state: EditorState, node: Block) -> EditorState:
    selection = state.selection.collapse_to_start()
    document = state.document
    path, offset = selection.start.path, selection.start.offset
    target = get_node(document, path)
    parent_path = path[:-1]

    if target.is_void:
        index = path[-1] + 1
        document = tree_ops.insert_nodes(document, parent_path, index, (node,))
    elif target.is_empty:  # type: ignore[union-attr]
        index = path[-1]
        document = tree_ops.replace_node(document, path, node)
    elif offset <= 0:
        index = path[-1]
        document = tree_ops.insert_nodes(document, parent_path, index, (node,))
    elif offset >= len(text_of(target)):
        index = path[-1] + 1
        document = tree_ops.insert_nodes(document, parent_path, index, (node,))
    else:
        document, _ = tree_ops.split_block(document, path, offset)
        index = path[-1] + 1
        document = tree_ops.insert_nodes(document, parent_path, index, (node,))

    new_path = parent_path + (index,)
    if parent_path and get_node(document, parent_path).type in LIST_TYPES:  # type: ignore[union-attr]
        # Void blocks never become list items; split the list around them.
        document, new_path = tree_ops.lift_out(document, new_path)
    inserted = state.evolve(document=document, selection=Selection.caret(new_path, 0, is_focused=selection.is_focused))
    LOGGER.debug("Inserted void block %r at %s", node.type, new_path)
    return focus_and_add_paragraph(inserted)


def focus_and_add_paragraph(state: EditorState) -> EditorState:
    """Focus the end of the document and open a fresh trailing paragraph.

    The last leaf block is split at its end (a void block gets a new sibling
    instead) and the new block is coerced to the default type. A trailing
    block nested inside a list or another container is lifted to the top
    level.
    """

    document = state.document
    last = leaf_block_paths(document)[-1]
    node = get_node(document, last)
    document, new_path = tree_ops.split_block(document, last, len(text_of(node)))
    document = tree_ops.set_block(document, new_path, DEFAULT_NODE, {})
    if tree_ops.enclosing_list(document, new_path) is not None or len(new_path) > 1:
        document, new_path = tree_ops.lift_to_top(document, new_path)
    return state.evolve(document=document, selection=Selection.caret(new_path, 0, is_focused=True))


def insert_void_inline(state: EditorState, node_type: str, data: Mapping[str, Any] | None = None) -> EditorState:
    """Insert a void inline at the caret, then a default block after it."""

    if not node_type or not isinstance(node_type, str):
        LOGGER.debug("Ignoring void inline insert of %r", node_type)
        return state
    selection = state.selection.collapse_to_start()
    document = state.document
    path, offset = selection.start.path, selection.start.offset
    target = get_node(document, path)
    if not isinstance(target, Block) or target.is_void:
        LOGGER.debug("Cannot insert inline %r into void block at %s", node_type, path)
        return state

    left, right = tree_ops.split_inline_children(target.children, offset)  # type: ignore[arg-type]
    embedded = Inline(node_type, (), data or {}, True)
    document = tree_ops.replace_node(document, path, replace(target, children=normalize_children((*left, embedded, *right))))

    parent_path = path[:-1]
    in_list = bool(parent_path) and get_node(document, parent_path).type in LIST_TYPES  # type: ignore[union-attr]
    fresh = Block(LIST_ITEM if in_list else DEFAULT_NODE, (Text(),))
    if offset >= len(text_of(target)):
        document = tree_ops.insert_nodes(document, parent_path, path[-1] + 1, (fresh,))
        new_path = parent_path + (path[-1] + 1,)
    else:
        document, tail_path = tree_ops.split_block(document, path, offset)
        document = tree_ops.insert_nodes(document, parent_path, tail_path[-1], (fresh,))
        new_path = tail_path
    return state.evolve(document=document, selection=Selection.caret(new_path, 0, is_focused=True))


def insert_soft_break(state: EditorState) -> tuple[EditorState, SuppressionToken | None]:
    """Insert ``"\\n"`` at the caret without splitting the block.

    Returns the new state and the token that swallows the next transient
    notification caused by this edit.
    """

    updated = insert_text(state, "\n")
    if updated is state:
        return state, None
    return updated, SuppressionToken(reason="soft_break")


def insert_text(state: EditorState, value: str) -> EditorState:
    """Insert ``value`` at the caret (or the start of an expanded selection)."""

    if not value:
        return state
    selection = state.selection.collapse_to_start()
    path, offset = selection.start.path, selection.start.offset
    target = get_node(state.document, path)
    if not isinstance(target, Block) or target.is_void:
        LOGGER.debug("Cannot insert text into void block at %s", path)
        return state
    offset = min(offset, len(text_of(target)))
    children = tree_ops.insert_text_at(target.children, offset, value)  # type: ignore[arg-type]
    document = tree_ops.replace_node(state.document, path, replace(target, children=children))
    caret = Point(path, offset + len(value))
    return state.evolve(document=document, selection=Selection(caret, caret, selection.is_focused))


def split_block(state: EditorState) -> EditorState:
    """Split the block at the caret, moving the caret into the new block."""

    selection = state.selection.collapse_to_start()
    path, offset = selection.start.path, selection.start.offset
    document, new_path = tree_ops.split_block(state.document, path, offset)
    return state.evolve(document=document, selection=Selection.caret(new_path, 0, is_focused=selection.is_focused))


# ---------------------------------------------------------------------------
# Selection helpers
# ---------------------------------------------------------------------------
def select(state: EditorState, anchor: Any, focus: Any = None) -> EditorState:
    """Move the selection; points outside leaf blocks are ignored."""

    try:
        anchor_point = Point.from_value(anchor)
        focus_point = anchor_point if focus is None else Point.from_value(focus)
    except (TypeError, ValueError) as exc:
        LOGGER.debug("Ignoring invalid selection: %s", exc)
        return state
    clamped: list[Point] = []
    for point in (anchor_point, focus_point):
        if not has_node(state.document, point.path):
            LOGGER.debug("Ignoring selection outside the document: %s", point.path)
            return state
        node = get_node(state.document, point.path)
        if not isinstance(node, Block) or not node.is_leaf:
            LOGGER.debug("Ignoring selection on a non-leaf node: %s", point.path)
            return state
        clamped.append(point.move_to(min(point.offset, len(text_of(node)))))
    return state.evolve(selection=Selection(clamped[0], clamped[1], state.selection.is_focused))


def collapse_to_end(state: EditorState) -> EditorState:
    return state.evolve(selection=state.selection.collapse_to_end())


def focus(state: EditorState) -> EditorState:
    return state.evolve(selection=state.selection.focused())


def blur(state: EditorState) -> EditorState:
    return state.evolve(selection=state.selection.blurred())


__all__ = [
    "LINK_PROMPT",
    "LINK_PROMPT_DEFAULT",
    "blur",
    "collapse_to_end",
    "focus",
    "focus_and_add_paragraph",
    "insert_media",
    "insert_soft_break",
    "insert_text",
    "insert_void_block",
    "insert_void_inline",
    "select",
    "set_block_type",
    "split_block",
    "toggle_inline",
    "toggle_mark",
]
