"""
Configuration Management Module

Provides configuration management with JSON storage for movieshelf.
Holds the ordered list of data roots and the sync, database and logging
settings.
"""

from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


# Default configuration values
DEFAULT_CONFIG = {
    # Library settings
    "library": {
        "paths": [],
        "scan_on_startup": True,
        "watch_for_changes": True,
    },

    # Synchronization settings
    "sync": {
        "remove_batch_size": 80,
        "add_batch_size": 15,
        "debounce_ms": 400,
        "recheck_delay_ms": 2500,
        "watch_depth": 3,
        "temp_watch_timeout_ms": 5000,
    },

    # Database settings
    "database": {
        "url": "",
        "sqlite_filename": "movieshelf.db",
        "busy_timeout_ms": 30000,
    },

    # Logging settings
    "logging": {
        "level": "INFO",
    },
}


def _normalize_root(path: str | Path) -> str:
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


@dataclass
class ConfigManager:
    """
    Manages application configuration with JSON storage.

    Features:
    - Load/save configuration from JSON files
    - Default value fallback
    - Dot-notation access
    - Data root list management
    """

    config_dir: Path
    config_file: str = "config.json"
    _config: dict = field(default_factory=dict)
    _defaults: dict = field(default_factory=lambda: deepcopy(DEFAULT_CONFIG))
    _loaded: bool = False

    def __post_init__(self):
        """Initialize configuration after dataclass creation."""
        self.config_dir = Path(self.config_dir)
        self._config = deepcopy(self._defaults)

    @property
    def config_path(self) -> Path:
        """Get the full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> bool:
        """
        Load configuration from file.

        Returns:
            bool: True if loaded successfully, False otherwise.
        """
        try:
            if self.config_path.exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)

                # Merge with defaults (loaded values override defaults)
                self._config = self._merge_config(self._defaults, loaded)
                logger.info(f"Configuration loaded from {self.config_path}")
            else:
                # Use defaults and save them
                self._config = deepcopy(self._defaults)
                self.save()
                logger.info("Using default configuration")

            self._loaded = True
            return True

        except json.JSONDecodeError as e:
            logger.error(f"Invalid configuration file: {e}")
            # Fall back to defaults
            self._config = deepcopy(self._defaults)
            self._loaded = True
            return False

        except OSError as e:
            logger.error(f"Failed to load configuration: {e}")
            self._config = deepcopy(self._defaults)
            self._loaded = True
            return False

    def save(self) -> bool:
        """
        Save configuration to file.

        Returns:
            bool: True if saved successfully.
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)

            logger.debug(f"Configuration saved to {self.config_path}")
            return True

        except PermissionError as e:
            logger.error(f"Permission denied saving configuration to {self.config_path}: {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to save configuration to {self.config_path}: {e}", exc_info=True)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "sync.debounce_ms")
            default: Default value if key not found

        Returns:
            The configuration value or default.
        """
        if not self._loaded:
            self.load()

        parts = key.split('.')
        value = self._config

        try:
            for part in parts:
                value = value[part]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "library.scan_on_startup")
            value: Value to set
            save: Whether to save immediately
        """
        if not self._loaded:
            self.load()

        parts = key.split('.')
        config = self._config

        # Navigate to the parent
        for part in parts[:-1]:
            if part not in config or not isinstance(config[part], dict):
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value

        if save:
            self.save()

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset configuration to defaults.

        Args:
            key: Specific key to reset, or None to reset all.
        """
        if key is None:
            self._config = deepcopy(self._defaults)
        else:
            default_value = self._get_default(key)
            if default_value is not None:
                self.set(key, default_value, save=False)

        self.save()

    def _get_default(self, key: str) -> Any:
        """Get the default value for a key."""
        parts = key.split('.')
        value = self._defaults

        try:
            for part in parts:
                value = value[part]
            return deepcopy(value)
        except (KeyError, TypeError):
            return None

    def _merge_config(self, defaults: dict, loaded: dict) -> dict:
        """
        Recursively merge loaded config with defaults.

        Args:
            defaults: Default configuration
            loaded: Loaded configuration

        Returns:
            Merged configuration
        """
        result = deepcopy(defaults)

        for key, value in loaded.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def get_all(self) -> dict:
        """Get the entire configuration dictionary."""
        if not self._loaded:
            self.load()
        return deepcopy(self._config)

    # ------------------------------------------------------------------
    # Data roots
    # ------------------------------------------------------------------

    def get_data_roots(self) -> List[str]:
        """Ordered list of data roots; the position is the stored root index."""
        roots = self.get("library.paths", []) or []
        return [str(r) for r in roots if r]

    def add_data_root(self, path: str | Path) -> bool:
        """
        Append a data root.

        Returns:
            bool: False if the root was already configured
        """
        root = _normalize_root(path)
        roots = self.get_data_roots()
        if any(_normalize_root(r) == root for r in roots):
            return False
        roots.append(root)
        self.set("library.paths", roots)
        logger.info(f"Data root added: {root}")
        return True

    def remove_data_root(self, path: str | Path) -> bool:
        """
        Remove a data root.

        Later roots shift down one index, so their catalog entries are
        re-indexed by the next reconciliation.

        Returns:
            bool: False if the root was not configured
        """
        root = _normalize_root(path)
        roots = self.get_data_roots()
        remaining = [r for r in roots if _normalize_root(r) != root]
        if len(remaining) == len(roots):
            return False
        self.set("library.paths", remaining)
        logger.info(f"Data root removed: {root}")
        return True


# Global configuration instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """
    Get the global configuration manager.

    Returns:
        ConfigManager: The configuration manager instance.
    """
    global _config_manager

    if _config_manager is None:
        from movieshelf.runtime.runtime_config import get_config_dir
        _config_manager = ConfigManager(config_dir=get_config_dir())
        _config_manager.load()

    return _config_manager


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        key: Configuration key using dot notation
        default: Default value if not found

    Returns:
        The configuration value
    """
    return get_config_manager().get(key, default)


def set_config(key: str, value: Any) -> None:
    """
    Set a configuration value.

    Args:
        key: Configuration key using dot notation
        value: Value to set
    """
    get_config_manager().set(key, value)


class AppConfig:
    """Static wrapper for configuration access."""

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        return get_config(key, default)

    @staticmethod
    def set(key: str, value: Any) -> None:
        set_config(key, value)
