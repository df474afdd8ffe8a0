"""Core domain types: the node tree, selections and the node vocabulary."""

from .nodes import Block, Document, Inline, Mark, NodeValidationError, Text
from .ranges import Point, Selection
from .schema import DEFAULT_NODE, PluginRegistry, PluginSpec

__all__ = [
    "Block",
    "Document",
    "Inline",
    "Mark",
    "NodeValidationError",
    "Text",
    "Point",
    "Selection",
    "DEFAULT_NODE",
    "PluginRegistry",
    "PluginSpec",
]
