"""Service layer helpers (settings, text extraction, update checks)."""

from .settings import Settings, SettingsStore
from .updates import is_newer_version

__all__ = ["Settings", "SettingsStore", "is_newer_version"]
