"""Ownership of the editor state and classification of incoming changes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from ..codec import MarkupCodec
from ..services.telemetry import ContentChanged, TransientSuppressed, emit
from . import transforms
from .document_model import EditorState, SuppressionToken
from .media import MediaProxy

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

ContentListener = Callable[[str], None]
MediaListener = Callable[[MediaProxy], None]
InputProvider = Callable[[str, str], "str | None"]


class ChangeCoordinator:
    """Hold the current :class:`EditorState` and route changes.

    Transient changes (selection, focus) replace the held state without
    touching the codec. Content changes are serialized and delivered to the
    content listeners. A :class:`SuppressionToken` handed to :meth:`commit`
    swallows exactly one later transient notification.
    """

    def __init__(
        self,
        state: EditorState,
        codec: MarkupCodec | None = None,
        *,
        on_content_change: ContentListener | None = None,
        on_request_media_insert: MediaListener | None = None,
        on_request_external_input: InputProvider | None = None,
        settings: "Settings | None" = None,
    ) -> None:
        self._state = state
        self._codec = codec or MarkupCodec(settings=settings)
        self._settings = settings
        self._pending_token: SuppressionToken | None = None
        self._content_listeners: list[ContentListener] = []
        if on_content_change is not None:
            self._content_listeners.append(on_content_change)
        self.on_request_media_insert = on_request_media_insert
        self.on_request_external_input = on_request_external_input

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def codec(self) -> MarkupCodec:
        return self._codec

    @property
    def has_pending_suppression(self) -> bool:
        return self._pending_token is not None and not self._pending_token.consumed

    def add_content_listener(self, listener: ContentListener) -> None:
        """Register a callback fired with the serialized text on content changes."""

        self._content_listeners.append(listener)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    def handle_change(self, state: EditorState) -> bool:
        """Transient channel; returns ``False`` when the update was suppressed."""

        token = self._pending_token
        if token is not None:
            self._pending_token = None
            if token.consume():
                LOGGER.debug("Suppressed transient change after %s", token.reason)
                emit(TransientSuppressed(reason=token.reason, version_id=state.version_id))
                return False
        self._state = state
        return True

    def handle_document_change(self, state: EditorState) -> str:
        """Content channel; installs ``state`` and propagates its markup."""

        self._state = state
        text = self._codec.serialize(state.document)
        for listener in list(self._content_listeners):
            listener(text)
        emit(ContentChanged(version_id=state.version_id, content_hash=state.content_hash, length=len(text)))
        return text

    def commit(self, state: EditorState, token: SuppressionToken | None = None) -> EditorState:
        """Route ``state`` to the matching channel, then arm ``token``."""

        if state is not self._state:
            current = self._state.document
            if state.document is current or state.document == current:
                self.handle_change(state)
            else:
                self.handle_document_change(state)
        if token is not None:
            self._pending_token = token
        return self._state

    def markup(self) -> str:
        return self._codec.serialize(self._state.document)

    # ------------------------------------------------------------------
    # Editing entry points
    # ------------------------------------------------------------------
    def toggle_mark(self, mark_type: str) -> EditorState:
        return self.commit(transforms.toggle_mark(self._state, mark_type))

    def set_block_type(self, node_type: str, is_active: bool = False, is_list: bool | None = None) -> EditorState:
        return self.commit(transforms.set_block_type(self._state, node_type, is_active, is_list))

    def toggle_inline(self, node_type: str, is_active: bool = False) -> EditorState:
        prompt = self._settings.link_prompt if self._settings else transforms.LINK_PROMPT
        default = self._settings.link_prompt_default if self._settings else transforms.LINK_PROMPT_DEFAULT
        updated = transforms.toggle_inline(
            self._state,
            node_type,
            is_active,
            self.on_request_external_input,
            prompt=prompt,
            default=default,
        )
        return self.commit(updated)

    def insert_void_block(self, node_type: str, data: Mapping[str, Any] | None = None) -> EditorState:
        return self.commit(transforms.insert_void_block(self._state, node_type, data))

    def insert_void_inline(self, node_type: str, data: Mapping[str, Any] | None = None) -> EditorState:
        return self.commit(transforms.insert_void_inline(self._state, node_type, data))

    def insert_soft_break(self) -> EditorState:
        updated, token = transforms.insert_soft_break(self._state)
        return self.commit(updated, token)

    def add_media(self, proxy: MediaProxy) -> EditorState:
        """Ask the host to persist ``proxy``, then embed it in the document."""

        if self.on_request_media_insert is not None:
            self.on_request_media_insert(proxy)
        return self.commit(transforms.insert_media(self._state, proxy))


__all__ = ["ChangeCoordinator", "ContentListener", "InputProvider", "MediaListener"]
