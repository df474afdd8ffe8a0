"""Service layer helpers (settings, telemetry)."""

from .settings import Settings, SettingsError, SettingsStore, load_plugin_registry
from .telemetry import (
    ContentChanged,
    InMemoryEventSink,
    TransientSuppressed,
    emit,
    register_event_listener,
    unregister_event_listener,
)

__all__ = [
    "ContentChanged",
    "InMemoryEventSink",
    "Settings",
    "SettingsError",
    "SettingsStore",
    "TransientSuppressed",
    "emit",
    "load_plugin_registry",
    "register_event_listener",
    "unregister_event_listener",
]
