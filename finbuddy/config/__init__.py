"""Configuration package."""

from finbuddy.config.settings import (
    AppSettings,
    AuthSettings,
    GoogleSheetsSettings,
    LLMSettings,
    Settings,
    SpeechSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "GoogleSheetsSettings",
    "LLMSettings",
    "Settings",
    "SpeechSettings",
    "get_settings",
    "validate_all_settings",
]
