"""Persistent settings documents."""

from nautilus.settings.store import SettingsStore

__all__ = ["SettingsStore"]
