"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "ASSISTANT_MODE_CHOICES",
    "DEFAULT_SETTINGS_PATH",
    "remember_recent_file",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".omnis"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
ASSISTANT_MODE_CHOICES: tuple[str, ...] = ("cloud", "local")
_ENV_OVERRIDES: Mapping[str, str] = {
    "OMNIS_ASSISTANT_MODE": "assistant_mode",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "OMNIS_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "OMNIS_PAGE_SIZE": "page_size",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "OMNIS_DEVICE_PIXEL_RATIO": "device_pixel_ratio",
    "OMNIS_RENDER_LOAD_TIMEOUT": "render_load_timeout",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    page_size: int = 500
    assistant_mode: str = "cloud"
    cloud_latency: float = 0.8
    local_latency: float = 0.3
    device_pixel_ratio: float = 1.0
    render_load_timeout: float | None = None
    recent_files: list[str] = field(default_factory=list)
    max_recent_files: int = 10
    debug_logging: bool = False
    check_for_updates: bool = True
    app_version: str = "0.1.0"


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI then environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        settings = self._apply_env_overrides(settings)
        return _sanitize(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with an atomic file replace."""

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
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered = {
            key: value
            for key, value in overrides.items()
            if key in allowed and (value is not None or key == "render_load_timeout")
        }
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip()
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer", env_name, value
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def remember_recent_file(settings: Settings, path: Path | str) -> Settings:
    """Return ``settings`` with ``path`` moved to the front of the recent list."""

    entry = str(path)
    recent = [item for item in settings.recent_files if item != entry]
    recent.insert(0, entry)
    return replace(settings, recent_files=recent[: max(0, settings.max_recent_files)])


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _sanitize(settings: Settings) -> Settings:
    defaults = Settings()
    updates: Dict[str, Any] = {}
    if not isinstance(settings.page_size, int) or settings.page_size < 1:
        LOGGER.warning("Ignoring invalid page_size %r", settings.page_size)
        updates["page_size"] = defaults.page_size
    mode = str(settings.assistant_mode).strip().lower()
    if mode not in ASSISTANT_MODE_CHOICES:
        LOGGER.warning("Ignoring unknown assistant_mode %r", settings.assistant_mode)
        mode = defaults.assistant_mode
    if mode != settings.assistant_mode:
        updates["assistant_mode"] = mode
    ratio = settings.device_pixel_ratio
    if not isinstance(ratio, (int, float)) or ratio <= 0:
        LOGGER.warning("Ignoring invalid device_pixel_ratio %r", ratio)
        updates["device_pixel_ratio"] = defaults.device_pixel_ratio
    timeout = settings.render_load_timeout
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        updates["render_load_timeout"] = None
    return replace(settings, **updates) if updates else settings
