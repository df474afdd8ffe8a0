"""Editor state snapshots and their construction."""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..codec import MarkupCodec, raw
from ..core.nodes import Block, Document, NodeValidationError, empty_document, get_node, leaf_block_paths
from ..core.ranges import Point, Selection
from ..core.schema import PluginRegistry, PluginSpec

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)


def _hash_document(document: Document) -> str:
    payload = json.dumps(raw.encode(document), sort_keys=True, default=str)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class EditorState:
    """Immutable ``{document, selection}`` snapshot.

    Equality only considers the document and the selection; ``version_id``
    increases whenever a new document is installed via :meth:`evolve`.
    """

    document: Document
    selection: Selection = field(default_factory=Selection.zero)
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)
    version_id: int = field(default=1, compare=False)
    content_hash: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        self.document.validate()
        for point in (self.selection.anchor, self.selection.focus):
            _validate_point(self.document, point)
        if not self.content_hash:
            object.__setattr__(self, "content_hash", _hash_document(self.document))

    @property
    def is_focused(self) -> bool:
        return self.selection.is_focused

    def evolve(self, *, document: Document | None = None, selection: Selection | None = None) -> EditorState:
        """Return a successor state; a different document bumps the version."""

        next_document = self.document if document is None else document
        changed = next_document is not self.document
        return EditorState(
            document=next_document,
            selection=self.selection if selection is None else selection,
            document_id=self.document_id,
            version_id=self.version_id + 1 if changed else self.version_id,
            content_hash="" if changed else self.content_hash,
        )

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly snapshot of the state."""

        return {
            "document": raw.encode(self.document),
            "selection": self.selection.to_dict(),
            "document_id": self.document_id,
            "version_id": self.version_id,
            "content_hash": self.content_hash,
        }

    def version_signature(self) -> str:
        return f"{self.document_id}:{self.version_id}:{self.content_hash}"


@dataclass(slots=True)
class SuppressionToken:
    """Single-use marker that swallows the next transient notification."""

    reason: str = "soft_break"
    consumed: bool = False

    def consume(self) -> bool:
        """Return ``True`` the first time only."""

        if self.consumed:
            return False
        self.consumed = True
        return True


def _validate_point(document: Document, point: Point) -> None:
    try:
        node = get_node(document, point.path)
    except IndexError as exc:
        raise NodeValidationError(
            "Selection points must address an existing block",
            reason="invalid_selection",
            path=point.path,
        ) from exc
    if not isinstance(node, Block) or not node.is_leaf:
        raise NodeValidationError(
            "Selection points must address a leaf block",
            reason="invalid_selection",
            path=point.path,
        )


def initialize(
    markup: str | None,
    plugins: PluginRegistry | Iterable[PluginSpec | dict[str, Any]] | None = None,
    settings: "Settings | None" = None,
) -> EditorState:
    """Create the initial state from inbound ``markup``.

    Absent markup seeds a single empty paragraph. The selection starts
    collapsed at offset 0 of the first leaf block and is not focused.
    """

    if markup is None:
        document = empty_document()
    else:
        document = MarkupCodec(plugins, settings=settings).parse(markup)
    first = leaf_block_paths(document)[0]
    LOGGER.debug("Initialized editor state with %s top-level blocks", len(document.children))
    return EditorState(document, Selection.caret(first, 0))


__all__ = ["EditorState", "SuppressionToken", "initialize"]
