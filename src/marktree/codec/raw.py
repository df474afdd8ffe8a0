"""Terse raw encoding of documents with plugin annotations.

The raw form is plain JSON-compatible data. Encoding marks every node whose
type belongs to a plugin so the decoder can report which types need special
(de)serialization, mirroring how plugin nodes are passed through opaquely.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..core.nodes import Block, Document, Inline, Mark, Node, NodeValidationError, Text, normalize_node

RAW_KIND_DOCUMENT = "document"


def encode(document: Document, plugin_ids: Iterable[str] = ()) -> dict[str, Any]:
    """Return the raw form of ``document`` annotating plugin node types."""

    plugins = frozenset(plugin_ids)
    present: set[str] = set()
    nodes = [_encode_node(child, plugins, present) for child in document.children]
    return {
        "kind": RAW_KIND_DOCUMENT,
        "nodes": nodes,
        "plugins": sorted(present),
    }


def decode(raw: Mapping[str, Any]) -> Document:
    """Rebuild a :class:`Document` from its raw form."""

    if raw.get("kind", RAW_KIND_DOCUMENT) != RAW_KIND_DOCUMENT:
        raise NodeValidationError("Raw payload is not a document", reason="invalid_raw")
    plugin_types: set[str] = set(raw.get("plugins") or ())
    children = tuple(_decode_node(item, plugin_types) for item in raw.get("nodes") or ())
    blocks = []
    for child in children:
        if not isinstance(child, Block):
            raise NodeValidationError("Top-level raw nodes must be blocks", reason="invalid_raw")
        blocks.append(child)
    return Document(tuple(blocks), frozenset(plugin_types))


def _encode_node(node: Node, plugins: frozenset[str], present: set[str]) -> dict[str, Any]:
    if isinstance(node, Text):
        leaf: dict[str, Any] = {"kind": "text", "text": node.text}
        if node.marks:
            leaf["marks"] = sorted(item.type for item in node.marks)
        return leaf
    payload: dict[str, Any] = {"kind": node.kind, "type": node.type}
    if node.is_void:
        payload["isVoid"] = True
    if node.data:
        payload["data"] = dict(node.data)
    if node.type in plugins:
        payload["plugin"] = True
        present.add(node.type)
    if not node.is_void:
        payload["nodes"] = [_encode_node(child, plugins, present) for child in node.children]
    return payload


def _decode_node(payload: Mapping[str, Any], plugin_types: set[str]) -> Node:
    kind = payload.get("kind")
    if kind == "text":
        marks = frozenset(Mark(str(item)) for item in payload.get("marks") or ())
        return Text(str(payload.get("text", "")), marks)
    if kind not in ("block", "inline"):
        raise NodeValidationError(f"Unknown raw node kind: {kind!r}", reason="invalid_raw")
    node_type = str(payload.get("type") or "")
    if payload.get("plugin"):
        plugin_types.add(node_type)
    is_void = bool(payload.get("isVoid", False))
    data = dict(payload.get("data") or {})
    children = () if is_void else tuple(_decode_node(item, plugin_types) for item in payload.get("nodes") or ())
    if not is_void and not children:
        children = (Text(),)
    if kind == "block":
        return normalize_node(Block(node_type, children, data, is_void))
    return normalize_node(Inline(node_type, children, data, is_void))  # type: ignore[arg-type]


__all__ = ["encode", "decode"]
