"""Collaborator services consumed by the mod provider core."""

from services.settings import (
    DatabaseSettingsStore,
    InMemorySettingsStore,
    SettingsStore,
    create_settings_store,
)

__all__ = [
    "DatabaseSettingsStore",
    "InMemorySettingsStore",
    "SettingsStore",
    "create_settings_store",
]
