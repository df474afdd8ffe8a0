"""Editor state, transforms and the change coordinator."""

from .coordinator import ChangeCoordinator
from .document_model import EditorState, SuppressionToken, initialize
from .media import MediaProxy, mediaproxy_block

__all__ = [
    "ChangeCoordinator",
    "EditorState",
    "MediaProxy",
    "SuppressionToken",
    "initialize",
    "mediaproxy_block",
]
