"""Node-type vocabulary and the plugin registry."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Literal

DEFAULT_NODE = "paragraph"

HEADING_TYPES: tuple[str, ...] = (
    "heading-one",
    "heading-two",
    "heading-three",
    "heading-four",
    "heading-five",
    "heading-six",
)
BLOCK_QUOTE = "block-quote"
CODE_BLOCK = "code-block"
UNORDERED_LIST = "unordered-list"
ORDERED_LIST = "ordered-list"
LIST_ITEM = "list-item"
HORIZONTAL_RULE = "horizontal-rule"
MEDIAPROXY = "mediaproxy"

LINK = "link"
IMAGE = "image"

BOLD = "bold"
ITALIC = "italic"
CODE = "code"
STRIKETHROUGH = "strikethrough"
MARK_TYPES: tuple[str, ...] = (BOLD, ITALIC, STRIKETHROUGH, CODE)

LIST_TYPES: frozenset[str] = frozenset({UNORDERED_LIST, ORDERED_LIST})
VOID_BLOCK_TYPES: frozenset[str] = frozenset({HORIZONTAL_RULE, MEDIAPROXY})
VOID_INLINE_TYPES: frozenset[str] = frozenset({IMAGE})

NodeKind = Literal["block", "inline"]
_PLUGIN_ID_PATTERN = re.compile(r"^[A-Za-z][\w-]*$")


def heading_type(level: int) -> str:
    """Return the heading node type for a 1-based ``level``."""

    index = max(1, min(int(level), len(HEADING_TYPES))) - 1
    return HEADING_TYPES[index]


def heading_level(node_type: str) -> int | None:
    try:
        return HEADING_TYPES.index(node_type) + 1
    except ValueError:
        return None


def is_list_type(node_type: str) -> bool:
    return node_type in LIST_TYPES


def other_list_type(node_type: str) -> str:
    return ORDERED_LIST if node_type == UNORDERED_LIST else UNORDERED_LIST


@dataclass(slots=True, frozen=True)
class PluginSpec:
    """Externally defined node type passed through the codec opaquely."""

    id: str
    node_type: NodeKind = "block"
    label: str | None = None

    def __post_init__(self) -> None:
        if not _PLUGIN_ID_PATTERN.match(self.id or ""):
            raise ValueError(f"Invalid plugin id: {self.id!r}")
        if self.node_type not in ("block", "inline"):
            raise ValueError(f"Plugin {self.id!r} node_type must be 'block' or 'inline'")

    @property
    def is_inline(self) -> bool:
        return self.node_type == "inline"

    @classmethod
    def from_value(cls, value: Any) -> PluginSpec:
        if isinstance(value, PluginSpec):
            return value
        if isinstance(value, Mapping):
            plugin_id = value.get("id")
            node_type = value.get("node_type", value.get("nodeType", "block"))
            label = value.get("label")
            return cls(str(plugin_id or ""), str(node_type), str(label) if label else None)
        raise TypeError("Unsupported plugin spec input")


class PluginRegistry:
    """Ordered collection of :class:`PluginSpec` entries keyed by id."""

    def __init__(self, plugins: Iterable[PluginSpec | Mapping[str, Any]] | None = None) -> None:
        self._plugins: dict[str, PluginSpec] = {}
        for plugin in plugins or ():
            self.register(plugin)

    def register(self, plugin: PluginSpec | Mapping[str, Any]) -> PluginSpec:
        spec = PluginSpec.from_value(plugin)
        if spec.id in _BUILTIN_TYPES:
            raise ValueError(f"Plugin id {spec.id!r} collides with a built-in node type")
        self._plugins[spec.id] = spec
        return spec

    def get(self, plugin_id: str) -> PluginSpec | None:
        return self._plugins.get(plugin_id)

    def ids(self) -> tuple[str, ...]:
        return tuple(self._plugins)

    def block_ids(self) -> tuple[str, ...]:
        return tuple(spec.id for spec in self._plugins.values() if not spec.is_inline)

    def inline_ids(self) -> tuple[str, ...]:
        return tuple(spec.id for spec in self._plugins.values() if spec.is_inline)

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __iter__(self) -> Iterator[PluginSpec]:
        return iter(self._plugins.values())

    def __len__(self) -> int:
        return len(self._plugins)

    @classmethod
    def coerce(cls, value: PluginRegistry | Iterable[Any] | None) -> PluginRegistry:
        if isinstance(value, PluginRegistry):
            return value
        return cls(value or ())


_BUILTIN_TYPES: frozenset[str] = frozenset(
    {
        DEFAULT_NODE,
        *HEADING_TYPES,
        BLOCK_QUOTE,
        CODE_BLOCK,
        UNORDERED_LIST,
        ORDERED_LIST,
        LIST_ITEM,
        HORIZONTAL_RULE,
        MEDIAPROXY,
        LINK,
        IMAGE,
    }
)


__all__ = [
    "DEFAULT_NODE",
    "HEADING_TYPES",
    "BLOCK_QUOTE",
    "CODE_BLOCK",
    "UNORDERED_LIST",
    "ORDERED_LIST",
    "LIST_ITEM",
    "HORIZONTAL_RULE",
    "MEDIAPROXY",
    "LINK",
    "IMAGE",
    "BOLD",
    "ITALIC",
    "CODE",
    "STRIKETHROUGH",
    "MARK_TYPES",
    "LIST_TYPES",
    "VOID_BLOCK_TYPES",
    "VOID_INLINE_TYPES",
    "PluginSpec",
    "PluginRegistry",
    "heading_type",
    "heading_level",
    "is_list_type",
    "other_list_type",
]
