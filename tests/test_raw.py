"""Tests for the raw document encoding."""

from __future__ import annotations

import json

import pytest

from marktree.codec import raw
from marktree.core.nodes import Block, NodeValidationError, block, document, inline, text
from marktree.core.schema import DEFAULT_NODE, HORIZONTAL_RULE, LINK


def test_encode_annotates_plugin_nodes_only() -> None:
    doc = document(
        block(DEFAULT_NODE, ["hi ", inline("mention", data={"user": "ann"}, is_void=True)]),
        Block("youtube", (), {"id": "abc"}, True),
        block(HORIZONTAL_RULE),
    )

    payload = raw.encode(doc, ("youtube", "mention", "unused"))

    assert payload["plugins"] == ["mention", "youtube"]
    assert payload["nodes"][1] == {"kind": "block", "type": "youtube", "isVoid": True, "data": {"id": "abc"}, "plugin": True}
    assert "plugin" not in payload["nodes"][2]
    json.dumps(payload)


def test_decode_rebuilds_document_and_plugin_types() -> None:
    doc = document(
        block(DEFAULT_NODE, [text("bold", "bold"), inline(LINK, ["x"], data={"href": "http://a"})]),
        Block("youtube", (), {"id": "abc"}, True),
    )

    decoded = raw.decode(raw.encode(doc, ("youtube",)))

    assert decoded.children == doc.children
    assert decoded.plugin_types == {"youtube"}


def test_decode_fills_missing_text_leaves() -> None:
    decoded = raw.decode({"kind": "document", "nodes": [{"kind": "block", "type": DEFAULT_NODE}]})

    assert decoded.children == (block(DEFAULT_NODE),)


def test_decode_rejects_unknown_kinds() -> None:
    with pytest.raises(NodeValidationError) as excinfo:
        raw.decode({"kind": "document", "nodes": [{"kind": "widget", "type": "x"}]})

    assert excinfo.value.reason == "invalid_raw"

    with pytest.raises(NodeValidationError):
        raw.decode({"kind": "document", "nodes": [{"kind": "text", "text": "loose"}]})
