"""Configuration package."""

from biztrack.config.settings import (
    AppSettings,
    GeminiSettings,
    LocalStoreSettings,
    RemoteStoreSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "LocalStoreSettings",
    "RemoteStoreSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
