"""Navigator settings and their JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from .utils.file_io import write_text_atomic

__all__ = ["NavigatorSettings", "SettingsStore"]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".chatnav"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "CHATNAV_DEFAULT_TITLE": "default_title",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CHATNAV_ENABLED": "enabled",
    "CHATNAV_AUTO_UPDATE_URL": "auto_update_url",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "CHATNAV_DEBOUNCE_SECONDS": "debounce_seconds",
    "CHATNAV_LOCK_GRACE_SECONDS": "lock_grace_seconds",
    "CHATNAV_SCROLL_RETRY_SECONDS": "scroll_retry_seconds",
    "CHATNAV_HIGHLIGHT_SECONDS": "highlight_seconds",
    "CHATNAV_EMPTY_STATE_GRACE_SECONDS": "empty_state_grace_seconds",
    "CHATNAV_HANDOFF_TTL_SECONDS": "handoff_ttl_seconds",
    "CHATNAV_SHORT_LINK_TTL_SECONDS": "short_link_ttl_seconds",
}
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class NavigatorSettings:
    """User-configurable navigator settings.

    The delay fields stand in for "the host has finished propagating
    state" and depend on host timing; tune them when the host changes.
    """

    enabled: bool = True
    auto_update_url: bool = True
    default_title: str = "SillyTavern"
    title_separator: str = " - "
    debounce_seconds: float = 0.3
    lock_grace_seconds: float = 0.5
    scroll_retry_seconds: float = 0.5
    highlight_seconds: float = 2.0
    empty_state_grace_seconds: float = 2.0
    handoff_ttl_seconds: float = 10.0
    short_link_ttl_seconds: float = 7 * 24 * 60 * 60.0


class SettingsStore:
    """Persistence adapter for :class:`NavigatorSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> NavigatorSettings:
        """Load settings from disk, then apply explicit and environment overrides."""

        payload = self._read_payload()
        settings = NavigatorSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = NavigatorSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = NavigatorSettings()
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="explicit")
        return self._apply_env_overrides(settings)

    def save(self, settings: NavigatorSettings) -> Path:
        """Persist settings with an atomic file replace."""

        payload: Dict[str, Any] = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        write_text_atomic(self._path, json.dumps(payload, indent=2, sort_keys=True))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        return dict(data) if isinstance(data, Mapping) else {}

    def _apply_overrides(
        self,
        settings: NavigatorSettings,
        overrides: Mapping[str, Any],
        *,
        source: str,
    ) -> NavigatorSettings:
        filtered = {key: value for key, value in _filter_fields(overrides).items() if value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: NavigatorSettings) -> NavigatorSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(NavigatorSettings)}
    return {key: value for key, value in payload.items() if key in allowed}
