"""
Configuration module for the UI Explorer.

Provides Pydantic-based settings management with YAML file support
and environment variable overrides.
"""

from ui_explorer.config.settings import (
    Settings,
    BrowserSettings,
    ExplorerSettings,
    BudgetSettings,
    ActionSelectorSettings,
    NavigatorSettings,
    APILLMSettings,
    LoggingSettings,
)
from ui_explorer.config.loader import load_config, get_settings, reset_settings

__all__ = [
    "Settings",
    "BrowserSettings",
    "ExplorerSettings",
    "BudgetSettings",
    "ActionSelectorSettings",
    "NavigatorSettings",
    "APILLMSettings",
    "LoggingSettings",
    "load_config",
    "get_settings",
    "reset_settings",
]
