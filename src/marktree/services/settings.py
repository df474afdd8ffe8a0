"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..core.schema import PluginRegistry

__all__ = [
    "Settings",
    "SettingsStore",
    "SettingsError",
    "load_plugin_registry",
    "registry_from_settings",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".marktree"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "MARKTREE_BULLET_MARKER": "bullet_marker",
    "MARKTREE_ORDERED_DELIMITER": "ordered_delimiter",
    "MARKTREE_EMPHASIS_MARKER": "emphasis_marker",
    "MARKTREE_STRONG_MARKER": "strong_marker",
    "MARKTREE_LINK_PROMPT": "link_prompt",
    "MARKTREE_LINK_PROMPT_DEFAULT": "link_prompt_default",
    "MARKTREE_PLUGIN_REGISTRY": "plugin_registry",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "MARKTREE_DEBUG_LOGGING": "debug_logging",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_ALLOWED_MARKERS: Mapping[str, tuple[str, ...]] = {
    "bullet_marker": ("-", "*", "+"),
    "ordered_delimiter": (".", ")"),
    "emphasis_marker": ("*", "_"),
    "strong_marker": ("**", "__"),
}


class SettingsError(ValueError):
    """Raised when a plugin registry file cannot be loaded."""

    def __init__(self, message: str, *, path: Path | None = None, reason: str = "invalid") -> None:
        super().__init__(message)
        self.path = path
        self.reason = reason

    def details(self) -> dict[str, Any]:
        return {"reason": self.reason, "path": str(self.path) if self.path else None, "message": str(self)}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    bullet_marker: str = "-"
    ordered_delimiter: str = "."
    emphasis_marker: str = "*"
    strong_marker: str = "**"
    link_prompt: str = "Enter the URL of the link:"
    link_prompt_default: str = "http://www."
    plugin_registry: str | None = None
    debug_logging: bool = False


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            settings = _sanitize_markers(settings, source="file")

        if payload and payload.get("version") != _SETTINGS_VERSION:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        settings = self._apply_env_overrides(settings)
        return _sanitize_markers(settings, source="override")

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            LOGGER.debug("No settings file at %s; using defaults", self._path)
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain a JSON object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _sanitize_markers(settings: Settings, *, source: str) -> Settings:
    updates: Dict[str, Any] = {}
    defaults = Settings()
    for field_name, choices in _ALLOWED_MARKERS.items():
        value = getattr(settings, field_name)
        if value in choices:
            continue
        fallback = getattr(defaults, field_name)
        LOGGER.warning(
            "Ignoring %s value %r for %s; using %r", source, value, field_name, fallback
        )
        updates[field_name] = fallback
    return replace(settings, **updates) if updates else settings


# ---------------------------------------------------------------------------
# Plugin registry files
# ---------------------------------------------------------------------------
def _create_yaml_parser() -> YAML:
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    return parser


def load_plugin_registry(path: Path | str) -> PluginRegistry:
    """Load a :class:`PluginRegistry` from a YAML file.

    The file holds either a list of plugin mappings or a mapping with a
    ``plugins`` key::

        plugins:
          - id: youtube
            node_type: block
          - id: mention
            node_type: inline
    """

    target = Path(path).expanduser()
    try:
        text = target.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Unable to read plugin registry {target}: {exc}", path=target, reason="unreadable") from exc
    try:
        loaded = _create_yaml_parser().load(text)
    except YAMLError as exc:
        raise SettingsError(f"Plugin registry {target} is not valid YAML: {exc}", path=target, reason="invalid_yaml") from exc

    if loaded is None:
        entries: Any = []
    elif isinstance(loaded, Mapping):
        entries = loaded.get("plugins") or []
    else:
        entries = loaded
    if not isinstance(entries, list):
        raise SettingsError(f"Plugin registry {target} must list plugins", path=target, reason="invalid_shape")
    try:
        registry = PluginRegistry(entries)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"Plugin registry {target}: {exc}", path=target, reason="invalid_plugin") from exc
    LOGGER.debug("Loaded %d plugins from %s", len(registry), target)
    return registry


def registry_from_settings(settings: Settings | None) -> PluginRegistry:
    """Return the plugin registry named by ``settings`` (empty when unset)."""

    if settings is None or not settings.plugin_registry:
        return PluginRegistry()
    return load_plugin_registry(settings.plugin_registry)
