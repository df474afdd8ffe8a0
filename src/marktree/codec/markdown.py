"""Markdown reader and writer for the node model.

Parsing goes through ``markdown-it-py``'s CommonMark preset (plus
strikethrough and plugin shortcodes) and walks the resulting
``SyntaxTreeNode`` tree. Writing is done by hand so that marks, lists and
escaping come out in a predictable, re-parsable form.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from markdown_it import MarkdownIt
from markdown_it.common.utils import isMdAsciiPunct, isPunctChar, isValidEntityCode, isWhiteSpace
from markdown_it.tree import SyntaxTreeNode

from ..core.nodes import (
    Block,
    Document,
    Inline,
    Mark,
    NodeValidationError,
    Text,
    block,
    normalize_children,
    text_of,
)
from ..core.schema import (
    BLOCK_QUOTE,
    BOLD,
    CODE,
    CODE_BLOCK,
    DEFAULT_NODE,
    HORIZONTAL_RULE,
    IMAGE,
    ITALIC,
    LINK,
    LIST_ITEM,
    LIST_TYPES,
    MEDIAPROXY,
    ORDERED_LIST,
    STRIKETHROUGH,
    UNORDERED_LIST,
    PluginRegistry,
    heading_level,
    heading_type,
)
from ..utils.logging import error_details
from .rules import format_shortcode, shortcode_plugin

LOGGER = logging.getLogger(__name__)

_MARK_NODES = {"strong": BOLD, "em": ITALIC, "s": STRIKETHROUGH}
_DELIMITED_MARKS: tuple[str, ...] = (BOLD, ITALIC, STRIKETHROUGH)
_CONVERSION_ERRORS = (NodeValidationError, ValueError, TypeError, KeyError, IndexError)

_INLINE_ESCAPE_RE = re.compile(r"[\\`*_\[\]~<]")
_ENTITY_RE = re.compile(r"&(?=#\d+;|#[xX][0-9a-fA-F]+;|[A-Za-z][A-Za-z0-9]*;)")
_ORDERED_MARKER_RE = re.compile(r"(\d{1,9})([.)])")
_BACKTICK_RUN_RE = re.compile(r"`+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n")
_UNSAFE_DESTINATION_RE = re.compile(r"[\s()<>]")
_LINE_START_CHARS = ("#", ">", "-", "+", "=")
_ATX_CLOSING_RE = re.compile(r"(^|[ \t])(#+)$")

_CHAR_SPACE = "space"
_CHAR_PUNCT = "punct"
_CHAR_WORD = "word"


def build_parser(registry: PluginRegistry | None = None) -> MarkdownIt:
    """Return a CommonMark parser with strikethrough and plugin shortcodes."""

    plugins = PluginRegistry.coerce(registry)
    md = MarkdownIt("commonmark", {"html": False}).enable("strikethrough")
    md.use(shortcode_plugin, block_ids=plugins.block_ids(), inline_ids=plugins.inline_ids())
    return md


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------
class MarkdownReader:
    """Convert Markdown text into a :class:`Document`.

    Every top-level fragment is converted on its own; a fragment that cannot
    be mapped onto the node model is kept as a paragraph holding its literal
    source so that no input is ever rejected.
    """

    def __init__(self, registry: PluginRegistry | None = None) -> None:
        self.registry = PluginRegistry.coerce(registry)
        self._md = build_parser(self.registry)

    def read(self, text: str | None) -> Document:
        source = (text or "").lstrip("\ufeff")
        if not source.strip():
            return Document((block(DEFAULT_NODE),))
        try:
            tree = SyntaxTreeNode(self._md.parse(source))
        except Exception:  # pragma: no cover - markdown-it does not raise on text input
            LOGGER.warning("Markdown parsing failed; keeping literal text", exc_info=True)
            return Document(tuple(_literal_blocks(source)))

        lines = source.splitlines()
        blocks: list[Block] = []
        for node in tree.children:
            try:
                blocks.extend(self._convert_block(node))
            except _CONVERSION_ERRORS as exc:
                LOGGER.warning(
                    "Keeping markdown fragment %s as literal text: %s", node.map, exc, extra=error_details(exc)
                )
                blocks.extend(_literal_blocks(_source_of(node, lines)))
        return Document(tuple(blocks) or (block(DEFAULT_NODE),))

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def _convert_blocks(self, nodes: Iterable[SyntaxTreeNode]) -> list[Block]:
        blocks: list[Block] = []
        for node in nodes:
            blocks.extend(self._convert_block(node))
        return blocks

    def _convert_block(self, node: SyntaxTreeNode) -> list[Block]:
        kind = node.type
        if kind == "paragraph":
            return [self._paragraph(node)]
        if kind == "heading":
            level = int(node.tag[1:] or 1)
            return [Block(heading_type(level), self._inline_children(node))]
        if kind == "blockquote":
            return [_wrap_blocks(BLOCK_QUOTE, self._convert_blocks(node.children))]
        if kind in ("bullet_list", "ordered_list"):
            return [self._list(node)]
        if kind in ("fence", "code_block"):
            content = node.content[:-1] if node.content.endswith("\n") else node.content
            lang = (node.info or "").strip().split(" ")[0] if kind == "fence" else ""
            return [Block(CODE_BLOCK, (Text(content),), {"lang": lang} if lang else {})]
        if kind == "hr":
            return [block(HORIZONTAL_RULE)]
        if kind == "plugin_block":
            meta = node.meta or {}
            return [Block(str(meta["id"]), (), dict(meta.get("data") or {}), True)]
        raise ValueError(f"Unsupported markdown node: {kind}")

    def _paragraph(self, node: SyntaxTreeNode) -> Block:
        inline_node = _inline_node(node)
        children = inline_node.children if inline_node is not None else []
        if len(children) == 1 and children[0].type == "image":
            return Block(MEDIAPROXY, (), _image_data(children[0]), True)
        return Block(DEFAULT_NODE, self._inline_children(node))

    def _list(self, node: SyntaxTreeNode) -> Block:
        ordered = node.type == "ordered_list"
        items = tuple(_wrap_blocks(LIST_ITEM, self._convert_blocks(item.children)) for item in node.children)
        data: dict[str, Any] = {}
        if ordered:
            start = node.attrs.get("start")
            if start is not None and int(start) != 1:
                data["start"] = int(start)
        return Block(ORDERED_LIST if ordered else UNORDERED_LIST, items, data)

    # ------------------------------------------------------------------
    # Inline content
    # ------------------------------------------------------------------
    def _inline_children(self, node: SyntaxTreeNode) -> tuple[Inline | Text, ...]:
        inline_node = _inline_node(node)
        items: list[Inline | Text] = []
        for child in inline_node.children if inline_node is not None else ():
            items.extend(self._convert_inline(child, frozenset()))
        return normalize_children(items)

    def _convert_inline(self, node: SyntaxTreeNode, marks: frozenset[Mark]) -> list[Inline | Text]:
        kind = node.type
        if kind == "text":
            return [Text(node.content, marks)]
        if kind in ("softbreak", "hardbreak"):
            return [Text("\n", marks)]
        if kind == "code_inline":
            return [Text(node.content, marks | {Mark(CODE)})]
        if kind in _MARK_NODES:
            inner = marks | {Mark(_MARK_NODES[kind])}
            items: list[Inline | Text] = []
            for child in node.children:
                items.extend(self._convert_inline(child, inner))
            return items
        if kind == "link":
            items = []
            for child in node.children:
                items.extend(self._convert_inline(child, marks))
            data = {"href": str(node.attrs.get("href", ""))}
            if node.attrs.get("title"):
                data["title"] = str(node.attrs["title"])
            return [Inline(LINK, normalize_children(items), data)]
        if kind == "image":
            return [Inline(IMAGE, (), _image_data(node), True)]
        if kind == "plugin_inline":
            meta = node.meta or {}
            return [Inline(str(meta["id"]), (), dict(meta.get("data") or {}), True)]
        return [Text(node.content, marks)] if node.content else []


def _inline_node(node: SyntaxTreeNode) -> SyntaxTreeNode | None:
    for child in node.children:
        if child.type == "inline":
            return child
    return None


def _plain_text(node: SyntaxTreeNode) -> str:
    if node.type in ("text", "code_inline"):
        return node.content
    if node.type in ("softbreak", "hardbreak"):
        return "\n"
    return "".join(_plain_text(child) for child in node.children)


def _image_data(node: SyntaxTreeNode) -> dict[str, Any]:
    alt = _plain_text(node) if node.children else node.content
    data = {"src": str(node.attrs.get("src", "")), "alt": alt}
    if node.attrs.get("title"):
        data["title"] = str(node.attrs["title"])
    return data


def _wrap_blocks(node_type: str, children: Sequence[Block]) -> Block:
    """Build a container; a lone paragraph collapses into leaf content."""

    if not children:
        return block(node_type)
    if len(children) == 1:
        only = children[0]
        if only.type == DEFAULT_NODE and not only.is_void and only.is_leaf:
            return Block(node_type, only.children)
    return Block(node_type, tuple(children))


def _source_of(node: SyntaxTreeNode, lines: Sequence[str]) -> str:
    if node.map:
        start, end = node.map
        return "\n".join(lines[start:end])
    return node.content


def _literal_blocks(source: str) -> list[Block]:
    chunks = [chunk.strip("\n") for chunk in _BLANK_LINES_RE.split(source)]
    blocks = [Block(DEFAULT_NODE, (Text(chunk),)) for chunk in chunks if chunk.strip()]
    return blocks or [block(DEFAULT_NODE)]


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------
class MarkdownWriter:
    """Render a :class:`Document` as Markdown text."""

    def __init__(
        self,
        *,
        bullet_marker: str = "-",
        ordered_delimiter: str = ".",
        emphasis_marker: str = "*",
        strong_marker: str = "**",
    ) -> None:
        alternate_bullet = "*" if bullet_marker != "*" else "-"
        alternate_delimiter = ")" if ordered_delimiter != ")" else "."
        self.bullets = (bullet_marker, alternate_bullet)
        self.delimiters = (ordered_delimiter, alternate_delimiter)
        self.delimiter_for = {BOLD: strong_marker, ITALIC: emphasis_marker, STRIKETHROUGH: "~~"}

    def write(self, document: Document) -> str:
        return self._write_blocks(document.children)

    def _write_blocks(self, blocks: Sequence[Block]) -> str:
        parts: list[str] = []
        previous_list: str | None = None
        variant = 0
        for node in blocks:
            if node.type in LIST_TYPES and not node.is_void:
                # Adjacent lists of one type would merge; alternate their markers.
                variant = variant + 1 if previous_list == node.type else 0
                rendered = self._write_list(node, variant % 2)
                previous_list = node.type
            else:
                rendered = self._write_block(node)
                if rendered:
                    previous_list = None
            if rendered:
                parts.append(rendered)
        return "\n\n".join(parts)

    def _write_block(self, node: Block) -> str:
        if node.is_void:
            return self._write_void(node)
        if node.type in LIST_TYPES:
            return self._write_list(node, 0)
        if node.type == CODE_BLOCK:
            return _code_fence(text_of(node), str(node.data.get("lang") or ""))
        if node.type == BLOCK_QUOTE:
            body = self._write_container(node)
            if not body:
                return ">"
            return "\n".join(f"> {line}" if line else ">" for line in body.split("\n"))
        level = heading_level(node.type)
        if level is not None:
            content = self._write_inline(node.children if node.is_leaf else (Text(text_of(node)),), single_line=True)
            # A trailing run of ``#`` would read as the closing sequence.
            content = _ATX_CLOSING_RE.sub(r"\1\\\2", content)
            return f"{'#' * level} {content}".rstrip()
        return self._write_container(node)

    def _write_container(self, node: Block) -> str:
        if node.is_leaf:
            return self._write_inline(node.children)
        return self._write_blocks(node.children)  # type: ignore[arg-type]

    def _write_void(self, node: Block) -> str:
        if node.type == HORIZONTAL_RULE:
            return "---"
        if node.type == MEDIAPROXY:
            return _image_markup(node.data)
        return format_shortcode(node.type, node.data)

    def _write_list(self, node: Block, variant: int) -> str:
        ordered = node.type == ORDERED_LIST
        start = _list_start(node) if ordered else 1
        rendered: list[str] = []
        for index, item in enumerate(node.children):
            if ordered:
                marker = f"{start + index}{self.delimiters[variant]}"
            else:
                marker = self.bullets[variant]
            body = self._write_container(item) if isinstance(item, Block) and not item.is_void else ""
            if isinstance(item, Block) and item.is_void:
                body = self._write_void(item)
            rendered.append(_list_item(marker, body))
        return "\n".join(rendered)

    def _write_inline(self, children: Sequence[Inline | Text], *, single_line: bool = False) -> str:
        writer = _InlineWriter(self.delimiter_for, single_line=single_line)
        writer.write_children(children)
        return writer.getvalue().strip()


@dataclass(slots=True, eq=False)
class _Span:
    """One opening and closing delimiter pair of a mark inside a text run."""

    mark: str
    start: int
    end: int = -1
    root: _Span | None = None
    parity: int = 0
    delimiter: str = ""

    def attach(self, partner: _Span | None) -> None:
        # Spans whose delimiters can touch alternate between ``*`` and ``_``.
        self.root = partner.root if partner is not None else self
        self.parity = partner.parity ^ 1 if partner is not None else 0


class _InlineWriter:
    """Accumulates the inline markup of one paragraph, heading or link label.

    Text leaves between inline elements form runs. Within a run every mark
    becomes a pair of delimiter runs that markdown-it pairs back up: each
    delimiter stands alone, bold and italic delimiters that can touch use
    different characters, and a word character next to a delimiter that
    would not flank is written as a numeric character reference.
    """

    def __init__(
        self,
        delimiter_for: dict[str, str],
        *,
        single_line: bool = False,
        at_line_start: bool = True,
        before: str = " ",
        after: str = " ",
    ) -> None:
        self.delimiter_for = delimiter_for
        self.single_line = single_line
        self.at_line_start = at_line_start
        self.before = before
        self.after = after
        self.parts: list[str] = []

    def getvalue(self) -> str:
        return "".join(self.parts)

    def write_children(self, children: Iterable[Inline | Text]) -> None:
        items = list(_flatten_inlines(children))
        rendered = {index: self._render_element(item) for index, item in enumerate(items) if isinstance(item, Inline)}
        index = 0
        while index < len(items):
            if index in rendered:
                self._emit_raw(rendered[index])
                index += 1
                continue
            end = index
            while end < len(items) and end not in rendered:
                end += 1
            following = rendered[end][:1] if end < len(items) else ""
            self._write_run(items[index:end], following or self.after)  # type: ignore[arg-type]
            index = end

    def _render_element(self, node: Inline) -> str:
        if node.type == LINK and not node.is_void:
            label = _InlineWriter(
                self.delimiter_for,
                single_line=self.single_line,
                at_line_start=False,
                before="[",
                after="]",
            )
            label.write_children(node.children)
            href = _destination(str(node.data.get("href", "")))
            return f"[{label.getvalue().strip()}]({href}{_title(node.data)})"
        if node.type == IMAGE:
            return _image_markup(node.data)
        return format_shortcode(node.type, node.data)

    def _write_run(self, leaves: Sequence[Text], after: str) -> None:
        # ``gaps[i]`` is the mark-neutral whitespace in front of ``pieces[i]``;
        # the last gap trails the run.
        gaps = [""]
        pieces: list[Text] = []
        for leaf in leaves:
            if self.single_line:
                value = leaf.text.replace("\n", " ")
            else:
                value = _BLANK_LINES_RE.sub("\n", leaf.text)
            core = value.strip()
            if not core:
                gaps[-1] += value
                continue
            gaps[-1] += value[: len(value) - len(value.lstrip())]
            pieces.append(Text(core, leaf.marks))
            gaps.append(value[len(value.rstrip()) :])
        if not pieces:
            self._emit_whitespace(gaps[0])
            return

        before = self.parts[-1][-1] if self.parts and self.parts[-1] else self.before
        spans = _plan_spans(pieces, gaps)
        count = len(pieces)
        closers: list[list[_Span]] = [[] for _ in range(count + 1)]
        openers: list[list[_Span]] = [[] for _ in range(count + 1)]
        for span in spans:
            openers[span.start].append(span)
        for span in reversed(spans):
            closers[span.end].append(span)

        texts = self._render_pieces(pieces, gaps, closers, openers)
        boundaries = _Boundaries(gaps, closers, openers, before, after)
        self._assign_delimiters(spans, texts, boundaries)
        texts = boundaries.add_references(texts)

        for index in range(count + 1):
            for span in closers[index]:
                self._emit_raw(span.delimiter)
            self._emit_whitespace(gaps[index])
            for span in openers[index]:
                self._emit_raw(span.delimiter)
            if index < count:
                self._emit_raw(texts[index])

    def _render_pieces(
        self,
        pieces: Sequence[Text],
        gaps: Sequence[str],
        closers: Sequence[Sequence[_Span]],
        openers: Sequence[Sequence[_Span]],
    ) -> list[str]:
        texts: list[str] = []
        line_start = self.at_line_start
        for index, piece in enumerate(pieces):
            if closers[index]:
                line_start = False
            if "\n" in gaps[index]:
                line_start = True
            if openers[index]:
                line_start = False
            if piece.has_mark(CODE):
                texts.append(_code_span(piece.text.replace("\n", " ")))
            else:
                texts.append(escape_text(piece.text, at_line_start=line_start))
            line_start = False
        return texts

    def _assign_delimiters(self, spans: Sequence[_Span], texts: Sequence[str], boundaries: _Boundaries) -> None:
        """Pick ``*`` or ``_`` for every bold and italic span.

        Linked spans alternate characters, so each linked group has two
        possible assignments. The winner puts ``*`` on the most spans that
        sit alone between two word characters (where ``_`` never flanks),
        then matches the configured markers on the most spans.
        """

        groups: dict[int, list[_Span]] = {}
        for span in spans:
            if span.mark == STRIKETHROUGH:
                span.delimiter = self.delimiter_for[STRIKETHROUGH]
            else:
                groups.setdefault(id(span.root), []).append(span)
        for members in groups.values():
            inside_words = [boundaries.lone_in_word(span.start, texts) or boundaries.lone_in_word(span.end, texts) for span in members]
            preferred = [self.delimiter_for[span.mark][0] for span in members]
            root_char = max(
                (preferred[0], _other_marker(preferred[0])),
                key=lambda char: _assignment_score(members, char, inside_words, preferred),
            )
            for span in members:
                width = 2 if span.mark == BOLD else 1
                span.delimiter = _marker_for(root_char, span.parity) * width

    def _emit_raw(self, value: str) -> None:
        if value:
            self.parts.append(value)
            self.at_line_start = False

    def _emit_whitespace(self, value: str) -> None:
        if not value:
            return
        self.parts.append(value)
        if "\n" in value:
            self.at_line_start = True


class _Boundaries:
    """The delimiter boundaries of one text run.

    Boundary ``i`` sits in front of piece ``i``: closing delimiters, the
    whitespace gap, then opening delimiters.
    """

    def __init__(
        self,
        gaps: Sequence[str],
        closers: Sequence[Sequence[_Span]],
        openers: Sequence[Sequence[_Span]],
        before: str,
        after: str,
    ) -> None:
        self.gaps = gaps
        self.closers = closers
        self.openers = openers
        self.before = before
        self.after = after

    def edges(self, index: int, texts: Sequence[str]) -> tuple[str, str]:
        left = texts[index - 1][-1] if index > 0 else self.before
        right = texts[index][0] if index < len(texts) else self.after
        return left, right

    def tokens(self, index: int) -> list[tuple[str, str]]:
        tokens = [("close", span.delimiter) for span in self.closers[index]]
        tokens.append(("gap", self.gaps[index]))
        tokens.extend(("open", span.delimiter) for span in self.openers[index])
        return tokens

    def lone_in_word(self, index: int, texts: Sequence[str]) -> bool:
        if self.gaps[index] or len(self.closers[index]) + len(self.openers[index]) != 1:
            return False
        return all(_char_class(char) == _CHAR_WORD for char in self.edges(index, texts))

    def add_references(self, texts: Sequence[str]) -> list[str]:
        """Return ``texts`` with edge characters encoded where delimiters need it."""

        count = len(texts)
        first = [False] * count
        last = [False] * count
        while True:
            current = [_with_references(text, first[index], last[index]) for index, text in enumerate(texts)]
            changed = False
            for index in range(count + 1):
                tokens = self.tokens(index)
                left, right = self.edges(index, current)
                if _delimiters_flank(tokens, left, right):
                    continue
                can_left = index > 0 and not last[index - 1] and _referable(left)
                can_right = index < count and not first[index] and _referable(right)
                for use_left, use_right in ((True, False), (False, True), (True, True)):
                    if (use_left and not can_left) or (use_right and not can_right):
                        continue
                    if _delimiters_flank(tokens, ";" if use_left else left, "&" if use_right else right):
                        if use_left:
                            last[index - 1] = True
                        if use_right:
                            first[index] = True
                        changed = True
                        break
            if not changed:
                return current


def _flatten_inlines(children: Iterable[Inline | Text]) -> Iterator[Inline | Text]:
    # Inlines without markup of their own are written as their content.
    for child in children:
        if isinstance(child, Inline) and not child.is_void and child.type != LINK:
            yield from _flatten_inlines(child.children)
        else:
            yield child


def _plan_spans(pieces: Sequence[Text], gaps: Sequence[str]) -> list[_Span]:
    """Decide where each delimited mark of a run opens and closes.

    Marks that stay on for more pieces open first, so they sit outside
    shorter ones and get reopened less often.
    """

    wanted = [[mark_type for mark_type in _DELIMITED_MARKS if piece.has_mark(mark_type)] for piece in pieces]
    reach: list[dict[str, int]] = [{} for _ in pieces]
    for index in range(len(pieces) - 1, -1, -1):
        for mark_type in wanted[index]:
            later = reach[index + 1].get(mark_type) if index + 1 < len(pieces) else None
            reach[index][mark_type] = later if later is not None else index

    stack: list[_Span] = []
    spans: list[_Span] = []
    for index, marks in enumerate(wanted):
        keep = 0
        while keep < len(stack) and stack[keep].mark in marks:
            keep += 1
        closed: _Span | None = None
        while len(stack) > keep:
            closed = stack.pop()
            closed.end = index
        junction = closed if not gaps[index] else None
        open_marks = {span.mark for span in stack}
        fresh = sorted(
            (mark_type for mark_type in marks if mark_type not in open_marks),
            key=lambda mark_type: (-reach[index][mark_type], _DELIMITED_MARKS.index(mark_type)),
        )
        for mark_type in fresh:
            span = _Span(mark_type, index)
            span.attach(_partner(span, stack[-1] if stack else None, junction))
            junction = None
            stack.append(span)
            spans.append(span)
    for span in stack:
        span.end = len(pieces)
    return spans


def _partner(span: _Span, below: _Span | None, junction: _Span | None) -> _Span | None:
    """Return the earlier bold or italic span whose delimiter ``span`` can touch."""

    if span.mark == STRIKETHROUGH:
        return None
    for candidate in (below, junction):
        if candidate is not None and candidate.mark != STRIKETHROUGH:
            return candidate
    return None


def _other_marker(char: str) -> str:
    return "_" if char == "*" else "*"


def _marker_for(root_char: str, parity: int) -> str:
    return root_char if parity == 0 else _other_marker(root_char)


def _assignment_score(
    members: Sequence[_Span],
    root_char: str,
    inside_words: Sequence[bool],
    preferred: Sequence[str],
) -> tuple[int, int]:
    chosen = [_marker_for(root_char, span.parity) for span in members]
    return (
        sum(1 for inside, char in zip(inside_words, chosen) if inside and char == "*"),
        sum(1 for wanted, char in zip(preferred, chosen) if wanted == char),
    )


# ---------------------------------------------------------------------------
# Delimiter flanking
# ---------------------------------------------------------------------------
def _char_class(char: str) -> str:
    code = ord(char)
    if isWhiteSpace(code):
        return _CHAR_SPACE
    if isMdAsciiPunct(code) or isPunctChar(char):
        return _CHAR_PUNCT
    return _CHAR_WORD


def _delimiter_flags(marker: str, before: str, after: str) -> tuple[bool, bool]:
    """Return ``(can_open, can_close)`` for a delimiter run between two characters."""

    before_class, after_class = _char_class(before), _char_class(after)
    left_flanking = after_class != _CHAR_SPACE and (after_class != _CHAR_PUNCT or before_class != _CHAR_WORD)
    right_flanking = before_class != _CHAR_SPACE and (before_class != _CHAR_PUNCT or after_class != _CHAR_WORD)
    if marker == "_":
        return (
            left_flanking and (not right_flanking or before_class == _CHAR_PUNCT),
            right_flanking and (not left_flanking or after_class == _CHAR_PUNCT),
        )
    return left_flanking, right_flanking


def _delimiters_flank(tokens: Sequence[tuple[str, str]], left: str, right: str) -> bool:
    """Check that every delimiter in ``tokens`` can open or close as intended."""

    joined = left + "".join(value for _, value in tokens) + right
    position = 1
    for role, value in tokens:
        if role != "gap" and value:
            can_open, can_close = _delimiter_flags(value[0], joined[position - 1], joined[position + len(value)])
            if not (can_close if role == "close" else can_open):
                return False
        position += len(value)
    return True


def _referable(char: str) -> bool:
    return _char_class(char) == _CHAR_WORD and isValidEntityCode(ord(char))


def _with_references(text: str, first: bool, last: bool) -> str:
    if first and _referable(text[0]):
        text = f"&#{ord(text[0])};{text[1:]}"
    if last and _referable(text[-1]):
        text = f"{text[:-1]}&#{ord(text[-1])};"
    return text


# ---------------------------------------------------------------------------
# Escaping helpers
# ---------------------------------------------------------------------------
def escape_text(value: str, *, at_line_start: bool = False) -> str:
    """Escape ``value`` so that it parses back as literal text."""

    lines = value.split("\n")
    escaped: list[str] = []
    for index, line in enumerate(lines):
        result = _INLINE_ESCAPE_RE.sub(r"\\\g<0>", line)
        result = _ENTITY_RE.sub(r"\\&", result)
        result = result.replace("{{", "\\{{")
        if index > 0 or at_line_start:
            result = _escape_line_start(result)
        escaped.append(result)
    return "\n".join(escaped)


def _escape_line_start(line: str) -> str:
    stripped = line.lstrip(" ")
    indent = line[: len(line) - len(stripped)]
    if stripped.startswith(_LINE_START_CHARS):
        return f"{indent}\\{stripped}"
    match = _ORDERED_MARKER_RE.match(stripped)
    if match:
        return f"{indent}{match.group(1)}\\{match.group(2)}{stripped[match.end():]}"
    return line


def _code_span(value: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(value)), default=0)
    fence = "`" * (longest + 1)
    pad = " " if value.startswith("`") or value.endswith("`") else ""
    return f"{fence}{pad}{value}{pad}{fence}"


def _code_fence(content: str, lang: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(content)), default=0)
    fence = "`" * max(3, longest + 1)
    info = lang.replace("`", "").strip()
    if not content:
        return f"{fence}{info}\n{fence}"
    return f"{fence}{info}\n{content}\n{fence}"


def _destination(href: str) -> str:
    if not href:
        return "<>"
    if _UNSAFE_DESTINATION_RE.search(href):
        return "<" + href.replace("<", "%3C").replace(">", "%3E") + ">"
    return href


def _title(data: Any) -> str:
    title = data.get("title")
    if not title:
        return ""
    escaped = str(title).replace("\\", "\\\\").replace('"', '\\"')
    return f' "{escaped}"'


def _image_markup(data: Any) -> str:
    alt = escape_text(str(data.get("alt") or ""))
    return f"![{alt}]({_destination(str(data.get('src') or ''))}{_title(data)})"


def _list_start(node: Block) -> int:
    try:
        return int(node.data.get("start", 1))
    except (TypeError, ValueError):
        return 1


def _list_item(marker: str, body: str) -> str:
    if not body:
        return marker
    padding = " " * (len(marker) + 1)
    lines = body.split("\n")
    rest = [f"{padding}{line}" if line else "" for line in lines[1:]]
    return "\n".join([f"{marker} {lines[0]}", *rest])


__all__ = ["MarkdownReader", "MarkdownWriter", "build_parser", "escape_text"]
