"""
Services package for dbconfig.

This package contains the settings store, the configuration registry it
reloads and the hooks that apply the configuration to the process.
"""

from .app_settings_service import AppSettingsService
from .config_registry import ConfigRegistry, ConfigSnapshot, get_config_registry

__all__ = [
    "AppSettingsService",
    "ConfigRegistry",
    "ConfigSnapshot",
    "get_config_registry",
]
