"""Tests for the change coordinator."""

from __future__ import annotations

from marktree.core.schema import HORIZONTAL_RULE, LINK
from marktree.editor import transforms
from marktree.editor.coordinator import ChangeCoordinator
from marktree.editor.document_model import initialize
from marktree.editor.media import MediaProxy
from marktree.services.settings import Settings
from marktree.services.telemetry import ContentChanged, TransientSuppressed, register_event_listener


def test_initial_state_from_absent_markup() -> None:
    state = initialize(None, [])

    assert len(state.document.children) == 1
    paragraph = state.document.children[0]
    assert paragraph.type == "paragraph"
    assert paragraph.is_empty
    assert state.selection.is_collapsed
    assert state.selection.anchor.path == (0,)
    assert state.selection.anchor.offset == 0
    assert not state.is_focused


def test_selection_changes_use_transient_channel() -> None:
    published: list[str] = []
    coordinator = ChangeCoordinator(initialize("hello"), on_content_change=published.append)

    moved = transforms.select(coordinator.state, ((0,), 3))
    coordinator.commit(moved)

    assert coordinator.state is moved
    assert published == []


def test_content_changes_serialize_and_notify() -> None:
    published: list[str] = []
    events: list[ContentChanged] = []
    register_event_listener(ContentChanged, events.append)
    coordinator = ChangeCoordinator(initialize("hello"), on_content_change=published.append)
    coordinator.commit(transforms.select(coordinator.state, ((0,), 0), ((0,), 5)))

    coordinator.toggle_mark("bold")

    assert published == ["**hello**"]
    assert coordinator.markup() == "**hello**"
    assert events[0].version_id == coordinator.state.version_id
    assert events[0].length == len("**hello**")


def test_unchanged_state_is_not_published() -> None:
    published: list[str] = []
    coordinator = ChangeCoordinator(initialize("hello"), on_content_change=published.append)

    coordinator.toggle_mark("bold")

    assert published == []


def test_soft_break_swallows_exactly_one_transient_echo() -> None:
    published: list[str] = []
    suppressed: list[TransientSuppressed] = []
    register_event_listener(TransientSuppressed, suppressed.append)
    coordinator = ChangeCoordinator(initialize("ab"), on_content_change=published.append)
    coordinator.commit(transforms.select(coordinator.state, ((0,), 1)))

    coordinator.insert_soft_break()

    assert published == ["a\nb"]
    assert coordinator.has_pending_suppression
    echo = transforms.focus(coordinator.state)
    assert coordinator.handle_change(echo) is False
    assert coordinator.state is not echo
    assert not coordinator.has_pending_suppression
    assert coordinator.handle_change(echo) is True
    assert coordinator.state is echo
    assert [event.reason for event in suppressed] == ["soft_break"]


def test_link_prompt_comes_from_settings() -> None:
    asked: list[tuple[str, str]] = []

    def provide(prompt: str, default: str) -> str:
        asked.append((prompt, default))
        return "http://example.com"

    settings = Settings(link_prompt="Link target?", link_prompt_default="https://")
    coordinator = ChangeCoordinator(initialize("hello"), settings=settings, on_request_external_input=provide)
    coordinator.commit(transforms.select(coordinator.state, ((0,), 0), ((0,), 5)))

    coordinator.toggle_inline(LINK)

    assert asked == [("Link target?", "https://")]
    assert coordinator.markup() == "[hello](http://example.com)"


def test_cancelled_link_publishes_nothing() -> None:
    published: list[str] = []
    coordinator = ChangeCoordinator(
        initialize("hello"),
        on_content_change=published.append,
        on_request_external_input=lambda prompt, default: None,
    )
    coordinator.commit(transforms.select(coordinator.state, ((0,), 0), ((0,), 5)))
    before = coordinator.state

    assert coordinator.toggle_inline(LINK) is before
    assert published == []


def test_add_media_requests_persistence_then_inserts() -> None:
    requested: list[MediaProxy] = []
    published: list[str] = []
    coordinator = ChangeCoordinator(
        initialize(None),
        on_content_change=published.append,
        on_request_media_insert=requested.append,
    )
    proxy = MediaProxy.for_file("cat.png")

    state = coordinator.add_media(proxy)

    assert requested == [proxy]
    assert [node.type for node in state.document.children] == ["mediaproxy", "paragraph"]
    assert published == ["![cat.png](/uploads/cat.png)"]


def test_void_block_and_block_type_entry_points() -> None:
    coordinator = ChangeCoordinator(initialize("title"))
    coordinator.commit(transforms.select(coordinator.state, ((0,), 5)))

    coordinator.set_block_type("heading-two")
    coordinator.insert_void_block(HORIZONTAL_RULE)

    assert coordinator.markup() == "## title\n\n---"
    assert coordinator.state.is_focused


def test_additional_listeners_receive_content() -> None:
    first: list[str] = []
    second: list[str] = []
    coordinator = ChangeCoordinator(initialize("x"), on_content_change=first.append)
    coordinator.add_content_listener(second.append)

    coordinator.insert_void_inline("mention", {"user": "ann"})

    assert first == second
    assert len(first) == 1
