"""Markup codec: Markdown text to and from the node model."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ..core.nodes import Document
from ..core.schema import MEDIAPROXY, PluginRegistry, PluginSpec
from . import raw
from .markdown import MarkdownReader, MarkdownWriter

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)


class MarkupCodec:
    """Bidirectional Markdown codec bound to a plugin registry.

    ``parse`` and ``serialize`` both pass through the raw plugin encoding so
    that plugin nodes are annotated and carried through untouched.
    """

    def __init__(
        self,
        plugins: PluginRegistry | Iterable[PluginSpec | dict[str, Any]] | None = None,
        *,
        settings: "Settings | None" = None,
    ) -> None:
        self.registry = PluginRegistry.coerce(plugins)
        self._reader = MarkdownReader(self.registry)
        if settings is None:
            self._writer = MarkdownWriter()
        else:
            self._writer = MarkdownWriter(
                bullet_marker=settings.bullet_marker,
                ordered_delimiter=settings.ordered_delimiter,
                emphasis_marker=settings.emphasis_marker,
                strong_marker=settings.strong_marker,
            )

    @property
    def plugin_ids(self) -> tuple[str, ...]:
        """Return plugin ids handled by the raw encoding (mediaproxy included)."""

        return (MEDIAPROXY, *self.registry.ids())

    def parse(self, markup: str | None) -> Document:
        """Parse ``markup`` into a document; never fails on malformed input."""

        plain = self._reader.read(markup or "")
        document = raw.decode(raw.encode(plain, self.plugin_ids))
        LOGGER.debug("Parsed %s chars into %s blocks", len(markup or ""), len(document.children))
        return document

    def serialize(self, document: Document) -> str:
        """Render ``document`` as Markdown."""

        plain = raw.decode(raw.encode(document, self.plugin_ids))
        return self._writer.write(plain)

    def to_raw(self, document: Document) -> dict[str, Any]:
        return raw.encode(document, self.plugin_ids)


__all__ = ["MarkupCodec", "MarkdownReader", "MarkdownWriter"]
