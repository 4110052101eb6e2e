"""Persisted connection profiles and per-solution project settings."""

from raspdebug.settings.connections import (
    ConnectionProfile,
    ConnectionRegistry,
    repair_default,
)
from raspdebug.settings.projects import ProjectSettings, ProjectSettingsStore

__all__ = [
    "ConnectionProfile",
    "ConnectionRegistry",
    "repair_default",
    "ProjectSettings",
    "ProjectSettingsStore",
]
