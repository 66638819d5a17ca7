"""Configuration module for the screener.

Provides centralized configuration management using:
- Environment variables for overrides
- YAML files for checked-in configuration
- Pydantic for validation
"""

from config.settings import (
    Settings,
    get_settings,
    LoggingConfig,
    ScannerConfig,
)

__all__ = [
    "Settings",
    "get_settings",
    "LoggingConfig",
    "ScannerConfig",
]
