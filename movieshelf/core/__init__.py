"""
Core Module - Application Configuration

Contains core application components:
- config: Configuration management with JSON storage
"""

from .config import (
    DEFAULT_CONFIG,
    AppConfig,
    ConfigManager,
    get_config,
    get_config_manager,
    set_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "AppConfig",
    "ConfigManager",
    "get_config",
    "get_config_manager",
    "set_config",
]
