"""Configuration package."""

from financia.config.settings import (
    AppSettings,
    BackupSettings,
    Settings,
    StorageSettings,
    UndoSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "Settings",
    "StorageSettings",
    "UndoSettings",
    "get_settings",
    "validate_all_settings",
]
