"""Configuration management for the kapp-controller packages plugin.

Provides plugin settings from environment variables (AppSettings).
"""

from .app_settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
