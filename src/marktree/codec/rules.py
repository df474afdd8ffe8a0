"""markdown-it rules for plugin shortcodes (``{{< id key="value" >}}``)."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_inline import StateInline

SHORTCODE_RE = re.compile(
    r"\{\{<\s*(?P<id>[A-Za-z][\w-]*)"
    r"(?P<attrs>(?:\s+[A-Za-z_][\w-]*=\"(?:[^\"\\]|\\.)*\")*)"
    r"\s*>\}\}"
)
_ATTR_RE = re.compile(r"([A-Za-z_][\w-]*)=\"((?:[^\"\\]|\\.)*)\"")
_UNESCAPE_RE = re.compile(r"\\(.)")
_ATTR_NAME_RE = re.compile(r"^[A-Za-z_][\w-]*$")


def parse_attrs(raw: str) -> dict[str, str]:
    """Parse ``key="value"`` pairs from a shortcode attribute string."""

    return {name: _UNESCAPE_RE.sub(r"\1", value) for name, value in _ATTR_RE.findall(raw or "")}


def format_shortcode(plugin_id: str, data: Mapping[str, Any] | None = None) -> str:
    """Render a shortcode for ``plugin_id`` carrying ``data`` as attributes."""

    parts = [plugin_id]
    for key, value in (data or {}).items():
        if not _ATTR_NAME_RE.match(str(key)):
            continue
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        parts.append(f'{key}="{escaped}"')
    return "{{< " + " ".join(parts) + " >}}"


def shortcode_plugin(
    md: MarkdownIt,
    block_ids: Iterable[str] = (),
    inline_ids: Iterable[str] = (),
) -> None:
    """Register block/inline shortcode rules for the given plugin ids."""

    block_set = frozenset(block_ids)
    inline_set = frozenset(inline_ids)

    def plugin_block(state: StateBlock, startLine: int, endLine: int, silent: bool) -> bool:
        if state.sCount[startLine] - state.blkIndent >= 4:
            return False
        start = state.bMarks[startLine] + state.tShift[startLine]
        maximum = state.eMarks[startLine]
        line = state.src[start:maximum].rstrip()
        match = SHORTCODE_RE.fullmatch(line)
        if match is None or match.group("id") not in block_set:
            return False
        if silent:
            return True
        token = state.push("plugin_block", "", 0)
        token.block = True
        token.map = [startLine, startLine + 1]
        token.info = match.group("id")
        token.markup = line
        token.meta = {"id": match.group("id"), "data": parse_attrs(match.group("attrs"))}
        state.line = startLine + 1
        return True

    def plugin_inline(state: StateInline, silent: bool) -> bool:
        if state.src[state.pos] != "{":
            return False
        match = SHORTCODE_RE.match(state.src, state.pos, state.posMax)
        if match is None or match.group("id") not in inline_set:
            return False
        if not silent:
            token = state.push("plugin_inline", "", 0)
            token.content = match.group(0)
            token.meta = {"id": match.group("id"), "data": parse_attrs(match.group("attrs"))}
        state.pos = match.end()
        return True

    if block_set:
        md.block.ruler.before(
            "paragraph",
            "plugin_block",
            plugin_block,
            {"alt": ["paragraph", "reference", "blockquote", "list"]},
        )
    if inline_set:
        md.inline.ruler.before("emphasis", "plugin_inline", plugin_inline)


__all__ = ["SHORTCODE_RE", "format_shortcode", "parse_attrs", "shortcode_plugin"]
