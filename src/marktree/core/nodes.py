"""Immutable node model for rich-text documents.

Documents are trees of three closed variants: :class:`Block`, :class:`Inline`
and :class:`Text`. Character styling lives on text leaves as a set of
:class:`Mark` values. Nodes are frozen dataclasses; editing helpers always
build new nodes and share untouched siblings.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, ClassVar, Union

from .ranges import Path, Selection
from .schema import (
    BLOCK_QUOTE,
    CODE_BLOCK,
    DEFAULT_NODE,
    LIST_ITEM,
    LIST_TYPES,
    VOID_BLOCK_TYPES,
    VOID_INLINE_TYPES,
)

_WHITESPACE_SPLIT_RE = re.compile(r"(\s+)")
_SPACE = ("space",)
_PARAGRAPH_WRAPPERS = frozenset({LIST_ITEM, BLOCK_QUOTE})


class NodeValidationError(ValueError):
    """Raised when a node or document violates a structural invariant."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = "invalid_node",
        node_type: str | None = None,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.node_type = node_type
        self.path = path

    def details(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "node_type": self.node_type,
            "path": list(self.path) if self.path is not None else None,
        }


def _freeze_data(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if isinstance(value, MappingProxyType):
        return value
    return MappingProxyType(dict(value or {}))


@dataclass(slots=True, frozen=True)
class Mark:
    """Character-level style tag (bold, italic, code, ...)."""

    type: str
    kind: ClassVar[str] = "mark"

    def __post_init__(self) -> None:
        if not self.type or not isinstance(self.type, str):
            raise NodeValidationError("Mark type must be a non-empty string", reason="invalid_mark")


@dataclass(slots=True, frozen=True)
class Text:
    """Leaf holding a run of characters that share the same marks."""

    text: str = ""
    marks: frozenset[Mark] = frozenset()
    kind: ClassVar[str] = "text"
    is_void: ClassVar[bool] = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", str(self.text))
        object.__setattr__(self, "marks", _coerce_marks(self.marks))

    @property
    def mark_types(self) -> frozenset[str]:
        return frozenset(item.type for item in self.marks)

    def has_mark(self, mark_type: str) -> bool:
        return any(item.type == mark_type for item in self.marks)

    def add_mark(self, mark_type: str) -> Text:
        if self.has_mark(mark_type):
            return self
        return Text(self.text, self.marks | {Mark(mark_type)})

    def remove_mark(self, mark_type: str) -> Text:
        if not self.has_mark(mark_type):
            return self
        return Text(self.text, frozenset(item for item in self.marks if item.type != mark_type))


@dataclass(slots=True, frozen=True)
class Inline:
    """Span-level node nested in a block's content (links, void embeds)."""

    type: str
    children: tuple[Union["Inline", Text], ...] = ()
    data: Mapping[str, Any] = field(default_factory=dict)
    is_void: bool = False
    kind: ClassVar[str] = "inline"

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "data", _freeze_data(self.data))
        _validate_element(self)


@dataclass(slots=True, frozen=True)
class Block:
    """Paragraph-level node; contains either blocks or inline content."""

    type: str
    children: tuple[Union["Block", Inline, Text], ...] = ()
    data: Mapping[str, Any] = field(default_factory=dict)
    is_void: bool = False
    kind: ClassVar[str] = "block"

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "data", _freeze_data(self.data))
        _validate_element(self)

    @property
    def is_leaf(self) -> bool:
        """Return ``True`` when the block holds inline content (or is void)."""

        return self.is_void or not isinstance(self.children[0], Block)

    @property
    def is_empty(self) -> bool:
        return not self.is_void and text_of(self) == "" and not _has_void_descendant(self)


Node = Union[Block, Inline, Text]
Element = Union[Block, Inline]


@dataclass(slots=True, frozen=True)
class Document:
    """Root of the tree: top-level blocks plus plugin type annotations."""

    children: tuple[Block, ...] = ()
    plugin_types: frozenset[str] = frozenset()
    kind: ClassVar[str] = "document"

    def __post_init__(self) -> None:
        children = tuple(self.children)
        for index, child in enumerate(children):
            if not isinstance(child, Block):
                raise NodeValidationError(
                    "Documents may only contain blocks at the top level",
                    reason="invalid_child",
                    path=(index,),
                )
        if not children:
            raise NodeValidationError("Documents require at least one block", reason="empty_document")
        object.__setattr__(self, "children", children)
        object.__setattr__(self, "plugin_types", frozenset(self.plugin_types))

    @property
    def text(self) -> str:
        return "\n".join(text_of(child) for child in self.children)

    def with_children(self, children: Iterable[Block]) -> Document:
        return replace(self, children=tuple(children))

    def validate(self) -> Document:
        """Check document-level invariants, returning ``self`` when valid."""

        for path, node in iter_nodes(self):
            if isinstance(node, Block) and node.type in LIST_TYPES and not node.is_void:
                for index, child in enumerate(node.children):
                    if not isinstance(child, Block) or child.type != LIST_ITEM:
                        raise NodeValidationError(
                            f"{node.type} may only contain list-item children",
                            reason="invalid_list_child",
                            node_type=getattr(child, "type", None),
                            path=path + (index,),
                        )
            if isinstance(node, Block) and node.type == LIST_ITEM:
                parent = get_node(self, path[:-1]) if len(path) > 1 else None
                if not isinstance(parent, Block) or parent.type not in LIST_TYPES:
                    raise NodeValidationError(
                        "List items require an unordered-list or ordered-list parent",
                        reason="orphan_list_item",
                        node_type=node.type,
                        path=path,
                    )
        return self


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _coerce_marks(value: Iterable[Mark | str] | None) -> frozenset[Mark]:
    marks: set[Mark] = set()
    for item in value or ():
        marks.add(item if isinstance(item, Mark) else Mark(str(item)))
    return frozenset(marks)


def _validate_element(node: Element) -> None:
    if not node.type or not isinstance(node.type, str):
        raise NodeValidationError(f"{node.kind} type must be a non-empty string", reason="invalid_type")
    if node.is_void:
        if node.children:
            raise NodeValidationError(
                f"Void {node.kind} {node.type!r} cannot have children",
                reason="void_children",
                node_type=node.type,
            )
        return
    allowed: tuple[type, ...] = (Block, Inline, Text) if isinstance(node, Block) else (Inline, Text)
    for index, child in enumerate(node.children):
        if not isinstance(child, allowed):
            raise NodeValidationError(
                f"{type(child).__name__} is not a valid child of {node.kind} {node.type!r}",
                reason="invalid_child",
                node_type=node.type,
                path=(index,),
            )
    if isinstance(node, Block):
        block_children = sum(1 for child in node.children if isinstance(child, Block))
        if block_children and block_children != len(node.children):
            raise NodeValidationError(
                f"Block {node.type!r} mixes block and inline children",
                reason="mixed_children",
                node_type=node.type,
            )
    if not any(isinstance(child, Text) or not child.is_void for child in node.children):
        raise NodeValidationError(
            f"Non-void {node.kind} {node.type!r} must contain a text leaf",
            reason="missing_text",
            node_type=node.type,
        )


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------
def mark(mark_type: str) -> Mark:
    return Mark(mark_type)


def text(value: str = "", *marks: str | Mark) -> Text:
    return Text(value, frozenset(item if isinstance(item, Mark) else Mark(item) for item in marks))


def _coerce_children(children: Iterable[Node | str] | None) -> tuple[Node, ...]:
    return tuple(Text(child) if isinstance(child, str) else child for child in children or ())


def block(
    node_type: str,
    children: Iterable[Node | str] | None = None,
    *,
    data: Mapping[str, Any] | None = None,
    is_void: bool | None = None,
) -> Block:
    """Build a block; non-void blocks default to a single empty text leaf."""

    void = node_type in VOID_BLOCK_TYPES if is_void is None else is_void
    if void:
        return Block(node_type, (), data or {}, True)
    nodes = _coerce_children(children) or (Text(),)
    return Block(node_type, nodes, data or {}, False)


def inline(
    node_type: str,
    children: Iterable[Inline | Text | str] | None = None,
    *,
    data: Mapping[str, Any] | None = None,
    is_void: bool | None = None,
) -> Inline:
    void = node_type in VOID_INLINE_TYPES if is_void is None else is_void
    if void:
        return Inline(node_type, (), data or {}, True)
    nodes = _coerce_children(children) or (Text(),)
    return Inline(node_type, nodes, data or {}, False)  # type: ignore[arg-type]


def document(*blocks: Block, plugin_types: Iterable[str] = ()) -> Document:
    return Document(tuple(blocks) or (block(DEFAULT_NODE),), frozenset(plugin_types))


def empty_document() -> Document:
    """Return a document holding one empty default-type block."""

    return Document((block(DEFAULT_NODE),))


# ---------------------------------------------------------------------------
# Structural queries
# ---------------------------------------------------------------------------
def get_node(root: Document | Node, path: Sequence[int]) -> Document | Node:
    """Return the node at ``path`` below ``root``; raises ``IndexError``."""

    node: Document | Node = root
    for index in path:
        children = getattr(node, "children", ())
        if index < 0 or index >= len(children):
            raise IndexError(f"Path {tuple(path)!r} does not exist")
        node = children[index]
    return node


def has_node(root: Document | Node, path: Sequence[int]) -> bool:
    try:
        get_node(root, path)
    except IndexError:
        return False
    return True


def iter_nodes(root: Document | Node, path: Path = ()) -> Iterator[tuple[Path, Node]]:
    """Yield ``(path, node)`` pairs for every descendant in document order."""

    for index, child in enumerate(getattr(root, "children", ())):
        child_path = path + (index,)
        yield child_path, child
        yield from iter_nodes(child, child_path)


def iter_texts(root: Document | Node, path: Path = ()) -> Iterator[tuple[Path, Text]]:
    for node_path, node in iter_nodes(root, path):
        if isinstance(node, Text):
            yield node_path, node


def text_of(node: Document | Node) -> str:
    """Return the concatenated text of ``node`` (void nodes contribute nothing)."""

    if isinstance(node, Text):
        return node.text
    if isinstance(node, Document):
        return node.text
    if node.is_void:
        return ""
    return "".join(text_of(child) for child in node.children)


def _has_void_descendant(node: Node) -> bool:
    if isinstance(node, Text):
        return False
    return any(not isinstance(child, Text) and (child.is_void or _has_void_descendant(child)) for child in node.children)


def is_leaf_block(node: Document | Node) -> bool:
    return isinstance(node, Block) and node.is_leaf


def leaf_block_paths(root: Document | Node) -> list[Path]:
    """Return the paths of all leaf blocks in document order."""

    return [path for path, node in iter_nodes(root) if is_leaf_block(node)]


def get_closest(
    root: Document,
    path: Sequence[int],
    predicate: Callable[[Node], bool],
) -> Path | None:
    """Return the path of the closest ancestor of ``path`` matching ``predicate``."""

    current = tuple(path)[:-1]
    while current:
        node = get_node(root, current)
        if predicate(node):  # type: ignore[arg-type]
            return current
        current = current[:-1]
    return None


def get_closest_block_type(root: Document, path: Sequence[int], node_type: str) -> Path | None:
    return get_closest(root, path, lambda node: isinstance(node, Block) and node.type == node_type)


def blocks_in_selection(root: Document, selection: Selection) -> list[Path]:
    """Return the leaf-block paths intersecting ``selection`` in document order."""

    start, end = selection.start.path, selection.end.path
    return [path for path in leaf_block_paths(root) if start <= path <= end]


def has_mark(node: Text, mark_type: str) -> bool:
    return node.has_mark(mark_type)


def text_spans(node: Node, offset: int = 0, path: Path = ()) -> Iterator[tuple[Path, Text, int, int]]:
    """Yield ``(path, text, start, end)`` for leaves below ``node`` with block offsets."""

    cursor = offset
    for index, child in enumerate(getattr(node, "children", ())):
        child_path = path + (index,)
        if isinstance(child, Text):
            yield child_path, child, cursor, cursor + len(child.text)
            cursor += len(child.text)
        elif not child.is_void:
            yield from text_spans(child, cursor, child_path)
            cursor += len(text_of(child))


def selected_offsets(root: Document, selection: Selection, path: Path) -> tuple[int, int]:
    """Return the selected ``[start, end)`` character span within leaf block ``path``."""

    node = get_node(root, path)
    length = len(text_of(node))
    start = selection.start.offset if path == selection.start.path else 0
    end = selection.end.offset if path == selection.end.path else length
    start = max(0, min(start, length))
    end = max(start, min(end, length))
    return start, end


def marks_in_selection(root: Document, selection: Selection) -> frozenset[str]:
    """Return mark types carried by text intersecting the selection."""

    found: set[str] = set()
    for path in blocks_in_selection(root, selection):
        node = get_node(root, path)
        start, end = selected_offsets(root, selection, path)
        for _leaf_path, leaf, leaf_start, leaf_end in text_spans(node):
            if selection.is_collapsed:
                if leaf_start < start <= leaf_end or (start == 0 and leaf_start == 0):
                    found.update(leaf.mark_types)
                    break
            elif leaf_start < end and leaf_end > start:
                found.update(leaf.mark_types)
    return frozenset(found)


def inlines_in_selection(root: Document, selection: Selection) -> tuple[Inline, ...]:
    """Return the inline nodes intersecting the selection."""

    found: list[Inline] = []
    for path in blocks_in_selection(root, selection):
        node = get_node(root, path)
        start, end = selected_offsets(root, selection, path)
        cursor = 0
        for child in getattr(node, "children", ()):
            width = len(text_of(child))
            if isinstance(child, Inline):
                if selection.is_collapsed or width == 0:
                    touches = cursor <= start <= cursor + width if selection.is_collapsed else start <= cursor <= end
                else:
                    touches = cursor < end and cursor + width > start
                if touches:
                    found.append(child)
            cursor += width
    return tuple(found)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------
def normalize_children(children: Iterable[Inline | Text]) -> tuple[Inline | Text, ...]:
    """Canonicalize inline content.

    Adjacent text leaves with equal marks merge, empty leaves and empty
    non-void inlines drop, and at least one direct text leaf remains.
    """

    merged: list[Inline | Text] = []
    for child in children:
        if isinstance(child, Text):
            if not child.text:
                continue
            previous = merged[-1] if merged else None
            if isinstance(previous, Text) and previous.marks == child.marks:
                merged[-1] = Text(previous.text + child.text, child.marks)
                continue
        elif not child.is_void and not text_of(child) and not _has_void_descendant(child):
            continue
        merged.append(child)
    if not any(isinstance(child, Text) for child in merged):
        merged.append(Text())
    return tuple(merged)


def normalize_node(node: Node) -> Node:
    """Recursively normalize inline content below ``node``."""

    if isinstance(node, Text) or node.is_void:
        return node
    if isinstance(node, Block) and isinstance(node.children[0], Block):
        children = tuple(normalize_node(child) for child in node.children)
        if children == node.children:
            return node
        return replace(node, children=children)
    normalized = normalize_children(normalize_node(child) for child in node.children)  # type: ignore[misc]
    if normalized == node.children:
        return node
    return replace(node, children=normalized)


def normalize_document(root: Document) -> Document:
    children = tuple(normalize_node(child) for child in root.children)
    if children == root.children:
        return root
    return root.with_children(children)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Structural equivalence
# ---------------------------------------------------------------------------
def _is_blank_default(node: Node) -> bool:
    return (
        isinstance(node, Block)
        and node.type == DEFAULT_NODE
        and not node.is_void
        and not text_of(node).strip()
        and not _has_void_descendant(node)
    )


def _canonical_inline_run(children: Sequence[Node]) -> tuple[Any, ...]:
    # Whitespace is mark-neutral: runs collapse to a single separator token.
    items: list[Any] = []
    for child in children:
        if not isinstance(child, Text):
            items.append(canonical(child))
            continue
        marks = child.mark_types
        for part in _WHITESPACE_SPLIT_RE.split(child.text):
            if not part:
                continue
            if part.isspace():
                if not items or items[-1] != _SPACE:
                    items.append(_SPACE)
            elif items and items[-1][0] == "text" and items[-1][2] == marks:
                items[-1] = ("text", items[-1][1] + part, marks)
            else:
                items.append(("text", part, marks))
    while items and items[0] == _SPACE:
        items.pop(0)
    while items and items[-1] == _SPACE:
        items.pop()
    return tuple(items)


def _single_paragraph(node: Block) -> Block | None:
    children = [child for child in node.children if not _is_blank_default(child)]
    if len(children) == 1 and isinstance(children[0], Block) and children[0].type == DEFAULT_NODE:
        child = children[0]
        if not child.is_void and child.is_leaf:
            return child
    return None


def canonical(node: Document | Node) -> Any:
    """Return a comparable form of ``node`` over type/void/data/marks/text."""

    if isinstance(node, Document):
        return ("document", tuple(canonical(child) for child in node.children if not _is_blank_default(child)))
    if isinstance(node, Text):
        return _canonical_inline_run((node,))
    data = tuple(sorted(((key, str(value)) for key, value in node.data.items()), key=lambda item: item[0]))
    if node.is_void:
        children: tuple[Any, ...] = ()
    elif isinstance(node, Block) and node.type == CODE_BLOCK:
        children = (("code", text_of(node).rstrip()),)
    elif isinstance(node, Block) and isinstance(node.children[0], Block):
        paragraph = _single_paragraph(node) if node.type in _PARAGRAPH_WRAPPERS else None
        if paragraph is not None:
            children = _canonical_inline_run(paragraph.children)
        else:
            children = tuple(canonical(child) for child in node.children if not _is_blank_default(child))
    else:
        children = _canonical_inline_run(node.children)
    return (node.kind, node.type, node.is_void, data, children)


def equivalent(left: Document | Node, right: Document | Node) -> bool:
    """Return ``True`` when both trees are structurally equivalent."""

    return canonical(left) == canonical(right)


__all__ = [
    "Block",
    "Document",
    "Element",
    "Inline",
    "Mark",
    "Node",
    "NodeValidationError",
    "Text",
    "block",
    "blocks_in_selection",
    "canonical",
    "document",
    "empty_document",
    "equivalent",
    "get_closest",
    "get_closest_block_type",
    "get_node",
    "has_mark",
    "has_node",
    "inline",
    "inlines_in_selection",
    "is_leaf_block",
    "iter_nodes",
    "iter_texts",
    "leaf_block_paths",
    "mark",
    "marks_in_selection",
    "normalize_children",
    "normalize_document",
    "normalize_node",
    "selected_offsets",
    "text",
    "text_of",
    "text_spans",
]
