"""Low-level persistent tree edits used by the transform functions.

Every helper takes a :class:`Document` and returns a new one; untouched
subtrees are shared with the input. Paths always address nodes in the
document that is passed in.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any, Mapping

from ..core.nodes import (
    Block,
    Document,
    Inline,
    Node,
    Text,
    block,
    get_closest,
    get_closest_block_type,
    get_node,
    leaf_block_paths,
    normalize_children,
    text_of,
)
from ..core.ranges import Path
from ..core.schema import DEFAULT_NODE, LIST_ITEM, LIST_TYPES, VOID_BLOCK_TYPES

InlineChildren = tuple[Inline | Text, ...]


# ---------------------------------------------------------------------------
# Path based rebuilding
# ---------------------------------------------------------------------------
def replace_children(root: Document, path: Sequence[int], children: Iterable[Node]) -> Document:
    """Return ``root`` with the children of the node at ``path`` replaced."""

    items = tuple(children)
    if not path:
        return root.with_children(items)  # type: ignore[arg-type]
    parent = get_node(root, path)
    return replace_node(root, path, replace(parent, children=items))  # type: ignore[arg-type]


def replace_node(root: Document, path: Sequence[int], node: Node) -> Document:
    """Return ``root`` with the node at ``path`` swapped for ``node``."""

    path = tuple(path)
    if not path:
        raise IndexError("Cannot replace the document root")
    parent_path = path[:-1]
    parent = get_node(root, parent_path)
    children = list(parent.children)  # type: ignore[union-attr]
    index = path[-1]
    if index >= len(children):
        raise IndexError(f"Path {path!r} does not exist")
    if children[index] is node:
        return root
    children[index] = node
    return replace_children(root, parent_path, children)


def insert_nodes(root: Document, parent_path: Sequence[int], index: int, nodes: Iterable[Node]) -> Document:
    parent = get_node(root, parent_path)
    children = list(parent.children)  # type: ignore[union-attr]
    children[index:index] = list(nodes)
    return replace_children(root, parent_path, children)


def common_ancestor(first: Path, last: Path) -> Path:
    shared: list[int] = []
    for left, right in zip(first, last):
        if left != right:
            break
        shared.append(left)
    return tuple(shared)


def leaf_ordinals(root: Document, paths: Iterable[Path]) -> list[int]:
    """Return the positions of ``paths`` in the document's leaf-block order."""

    order = {path: index for index, path in enumerate(leaf_block_paths(root))}
    return [order[path] for path in paths if path in order]


def paths_for_ordinals(root: Document, ordinals: Iterable[int]) -> list[Path]:
    leaves = leaf_block_paths(root)
    return [leaves[index] for index in ordinals if 0 <= index < len(leaves)]


def enclosing_list(root: Document, path: Sequence[int]) -> Path | None:
    return get_closest(root, path, lambda node: isinstance(node, Block) and node.type in LIST_TYPES)


# ---------------------------------------------------------------------------
# Inline content
# ---------------------------------------------------------------------------
def split_inline_children(children: Sequence[Inline | Text], offset: int) -> tuple[InlineChildren, InlineChildren]:
    """Split inline content at a character ``offset``.

    Non-void inlines straddling the offset are split into two nodes of the
    same type and data. Zero-width void inlines at the offset stay left.
    """

    left: list[Inline | Text] = []
    right: list[Inline | Text] = []
    cursor = 0
    for child in children:
        width = len(text_of(child))
        if cursor + width <= offset:
            left.append(child)
        elif cursor >= offset:
            right.append(child)
        else:
            local = offset - cursor
            if isinstance(child, Text):
                left.append(Text(child.text[:local], child.marks))
                right.append(Text(child.text[local:], child.marks))
            else:
                head, tail = split_inline_children(child.children, local)
                left.append(replace(child, children=normalize_children(head)))
                right.append(replace(child, children=normalize_children(tail)))
        cursor += width
    return tuple(left), tuple(right)


def map_text_range(children: Sequence[Inline | Text], start: int, end: int, fn: Any) -> InlineChildren:
    """Apply ``fn`` to the text leaves covering ``[start, end)``."""

    result: list[Inline | Text] = []
    cursor = 0
    for child in children:
        width = len(text_of(child))
        child_start, child_end = cursor, cursor + width
        cursor = child_end
        if child_end <= start or child_start >= end or width == 0:
            result.append(child)
            continue
        local_start = max(start, child_start) - child_start
        local_end = min(end, child_end) - child_start
        if isinstance(child, Text):
            if local_start:
                result.append(Text(child.text[:local_start], child.marks))
            result.append(fn(Text(child.text[local_start:local_end], child.marks)))
            if local_end < width:
                result.append(Text(child.text[local_end:], child.marks))
        else:
            mapped = map_text_range(child.children, local_start, local_end, fn)
            result.append(replace(child, children=mapped))
    return normalize_children(result)


def leaves_in_range(children: Sequence[Inline | Text], start: int, end: int) -> list[Text]:
    found: list[Text] = []
    cursor = 0
    for child in children:
        width = len(text_of(child))
        if width and cursor < end and cursor + width > start:
            if isinstance(child, Text):
                found.append(child)
            elif not child.is_void:
                found.extend(leaves_in_range(child.children, start - cursor, end - cursor))
        cursor += width
    return found


def insert_text_at(children: Sequence[Inline | Text], offset: int, value: str) -> InlineChildren:
    """Insert ``value`` at ``offset``, inheriting the marks of the leaf before it."""

    cursor = 0
    for index, child in enumerate(children):
        width = len(text_of(child))
        if isinstance(child, Text) and (cursor < offset <= cursor + width or offset == cursor == 0):
            local = offset - cursor
            updated = Text(child.text[:local] + value + child.text[local:], child.marks)
            return normalize_children((*children[:index], updated, *children[index + 1 :]))
        if isinstance(child, Inline) and not child.is_void and cursor < offset < cursor + width:
            nested = insert_text_at(child.children, offset - cursor, value)
            return normalize_children((*children[:index], replace(child, children=nested), *children[index + 1 :]))
        cursor += width
    left, right = split_inline_children(children, offset)
    return normalize_children((*left, Text(value), *right))


def unwrap_inline_children(
    children: Sequence[Inline | Text],
    node_type: str,
    start: int | None = None,
    end: int | None = None,
) -> InlineChildren:
    """Replace inlines of ``node_type`` touching ``[start, end)`` with their content."""

    result: list[Inline | Text] = []
    cursor = 0
    for child in children:
        width = len(text_of(child))
        touches = start is None or end is None or (cursor < end and cursor + width > start)
        if isinstance(child, Inline) and child.type == node_type and not child.is_void and touches:
            result.extend(unwrap_inline_children(child.children, node_type))
        else:
            result.append(child)
        cursor += width
    return normalize_children(result)


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------
def set_block(
    root: Document,
    path: Sequence[int],
    node_type: str,
    data: Mapping[str, Any] | None = None,
) -> Document:
    """Change the type of the block at ``path``.

    Switching to a void type drops the content, switching away from a void
    type yields an empty editable block, and a type change clears old data.
    """

    node = get_node(root, path)
    if not isinstance(node, Block):
        return root
    if node_type in VOID_BLOCK_TYPES:
        updated = Block(node_type, (), data if data is not None else node.data, True)
    elif node.is_void:
        updated = Block(node_type, (Text(),), data or {}, False)
    else:
        kept = node.data if node.type == node_type else {}
        updated = replace(node, type=node_type, data=data if data is not None else kept)
    if updated == node:
        return root
    return replace_node(root, path, updated)


def split_block(root: Document, path: Sequence[int], offset: int) -> tuple[Document, Path]:
    """Split the leaf block at ``path``; returns the document and the new block path."""

    path = tuple(path)
    node = get_node(root, path)
    new_path = path[:-1] + (path[-1] + 1,)
    if not isinstance(node, Block) or node.is_void:
        return insert_nodes(root, path[:-1], path[-1] + 1, (block(DEFAULT_NODE),)), new_path
    left, right = split_inline_children(node.children, offset)
    head = replace(node, children=normalize_children(left))
    tail = replace(node, children=normalize_children(right))
    parent_path = path[:-1]
    parent = get_node(root, parent_path)
    children = list(parent.children)  # type: ignore[union-attr]
    children[path[-1] : path[-1] + 1] = [head, tail]
    return replace_children(root, parent_path, children), new_path


def wrap_blocks(
    root: Document,
    paths: Sequence[Path],
    node_type: str,
    data: Mapping[str, Any] | None = None,
) -> Document:
    """Wrap the range spanned by ``paths`` in a new block of ``node_type``.

    The wrapped range is the run of children of the common ancestor that
    contains the first and last paths.
    """

    if not paths:
        return root
    first, last = paths[0], paths[-1]
    if first == last:
        parent_path, start, end = first[:-1], first[-1], first[-1]
    else:
        parent_path = common_ancestor(first, last)
        depth = len(parent_path)
        start, end = first[depth], last[depth]
    parent = get_node(root, parent_path)
    children = list(parent.children)  # type: ignore[union-attr]
    wrapper = Block(node_type, tuple(children[start : end + 1]), data or {})
    children[start : end + 1] = [wrapper]
    return replace_children(root, parent_path, children)


def unwrap_blocks(root: Document, paths: Sequence[Path], node_type: str) -> Document:
    """Lift the selected children out of their closest ``node_type`` wrappers.

    Each wrapper is split into the part before the selection, the selected
    children (moved up one level) and the part after; empty parts vanish.
    """

    wrappers = sorted(
        {wrapper for wrapper in (get_closest_block_type(root, path, node_type) for path in paths) if wrapper},
        reverse=True,
    )
    if not wrappers:
        return root
    ordinals = leaf_ordinals(root, paths)
    for wrapper_path in wrappers:
        selected = paths_for_ordinals(root, ordinals)
        depth = len(wrapper_path)
        indexes = sorted({path[depth] for path in selected if path[:depth] == wrapper_path and len(path) > depth})
        if not indexes:
            continue
        wrapper = get_node(root, wrapper_path)
        low, high = indexes[0], indexes[-1]
        before = wrapper.children[:low]  # type: ignore[union-attr]
        middle = wrapper.children[low : high + 1]  # type: ignore[union-attr]
        after = wrapper.children[high + 1 :]  # type: ignore[union-attr]
        lifted: list[Node] = []
        if before:
            lifted.append(replace(wrapper, children=before))  # type: ignore[arg-type]
        lifted.extend(_lift_list_items(middle) if node_type in LIST_TYPES else middle)
        if after:
            lifted.append(replace(wrapper, children=after))  # type: ignore[arg-type]
        parent_path = wrapper_path[:-1]
        parent = get_node(root, parent_path)
        children = list(parent.children)  # type: ignore[union-attr]
        children[wrapper_path[-1] : wrapper_path[-1] + 1] = lifted
        root = replace_children(root, parent_path, children)
    return root


def _lift_list_items(children: Iterable[Node]) -> list[Node]:
    # List items leaving their list become plain blocks.
    lifted: list[Node] = []
    for child in children:
        if isinstance(child, Block) and child.type == LIST_ITEM:
            if child.is_leaf:
                lifted.append(replace(child, type=DEFAULT_NODE))
            else:
                lifted.extend(child.children)
        else:
            lifted.append(child)
    return lifted


def lift_out(root: Document, path: Sequence[int]) -> tuple[Document, Path]:
    """Move the block at ``path`` up one level, splitting its parent around it."""

    path = tuple(path)
    wrapper_path = path[:-1]
    if not wrapper_path:
        return root, path
    wrapper = get_node(root, wrapper_path)
    index = path[-1]
    node = wrapper.children[index]  # type: ignore[union-attr]
    before = wrapper.children[:index]  # type: ignore[union-attr]
    after = wrapper.children[index + 1 :]  # type: ignore[union-attr]
    lifted: list[Node] = []
    if before:
        lifted.append(replace(wrapper, children=before))  # type: ignore[arg-type]
    lifted.append(node)
    if after:
        lifted.append(replace(wrapper, children=after))  # type: ignore[arg-type]
    parent_path = wrapper_path[:-1]
    parent = get_node(root, parent_path)
    children = list(parent.children)  # type: ignore[union-attr]
    children[wrapper_path[-1] : wrapper_path[-1] + 1] = lifted
    root = replace_children(root, parent_path, children)
    return root, parent_path + (wrapper_path[-1] + (1 if before else 0),)


def lift_to_top(root: Document, path: Sequence[int]) -> tuple[Document, Path]:
    """Lift the block at ``path`` until it sits at the top level."""

    path = tuple(path)
    while len(path) > 1:
        root, path = lift_out(root, path)
    return root, path


__all__ = [
    "common_ancestor",
    "enclosing_list",
    "insert_nodes",
    "insert_text_at",
    "leaf_ordinals",
    "leaves_in_range",
    "lift_out",
    "lift_to_top",
    "map_text_range",
    "paths_for_ordinals",
    "replace_children",
    "replace_node",
    "set_block",
    "split_block",
    "split_inline_children",
    "unwrap_blocks",
    "unwrap_inline_children",
    "wrap_blocks",
]
