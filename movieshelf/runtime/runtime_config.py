"""
Runtime Configuration Module

Resolves where movieshelf keeps its configuration, logs and database.
``MOVIESHELF_HOME`` overrides the default per-user data directory.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

HOME_ENV_VAR = "MOVIESHELF_HOME"


@dataclass
class RuntimePaths:
    """Container for all runtime-related paths."""

    # Base application directory
    app_root: Path

    # Application data paths
    data_dir: Path
    config_dir: Path
    logs_dir: Path
    database_dir: Path


@dataclass
class RuntimeConfig:
    """
    Configuration for the runtime environment.

    Detects the data directory and builds every derived path.
    """

    # Version requirements
    min_python_version: tuple[int, int] = (3, 9)

    # Paths
    paths: Optional[RuntimePaths] = None

    @classmethod
    def detect(cls) -> RuntimeConfig:
        """
        Detect the current runtime configuration.

        Returns:
            RuntimeConfig: Detected configuration for the current environment.
        """
        config = cls()
        app_root = Path(__file__).parent.parent
        config.paths = cls._build_paths(app_root, cls._default_data_dir())
        return config

    @staticmethod
    def _default_data_dir() -> Path:
        override = os.environ.get(HOME_ENV_VAR, "").strip()
        if override:
            return Path(override).expanduser()

        if sys.platform == "win32":
            appdata = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
            return appdata / "movieshelf"
        xdg = os.environ.get("XDG_DATA_HOME", "").strip()
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        return base / "movieshelf"

    @staticmethod
    def _build_paths(app_root: Path, data_dir: Path) -> RuntimePaths:
        return RuntimePaths(
            app_root=app_root,
            data_dir=data_dir,
            config_dir=data_dir / "config",
            logs_dir=data_dir / "logs",
            database_dir=data_dir / "database",
        )

    def validate_python_version(self) -> tuple[bool, str]:
        """
        Validate that the running interpreter is recent enough.

        Returns:
            tuple: (is_valid, message)
        """
        current = sys.version_info[:2]
        if current < self.min_python_version:
            required = ".".join(str(v) for v in self.min_python_version)
            return False, f"Python {required}+ required, running {current[0]}.{current[1]}"
        return True, f"Python {current[0]}.{current[1]}"


# Global runtime configuration instance
_runtime_config: Optional[RuntimeConfig] = None


def get_runtime_config() -> RuntimeConfig:
    """
    Get the global runtime configuration, detecting it if necessary.

    Returns:
        RuntimeConfig: The runtime configuration.
    """
    global _runtime_config
    if _runtime_config is None:
        _runtime_config = RuntimeConfig.detect()
    return _runtime_config


def reset_runtime_config() -> None:
    """Forget the detected configuration so the next call re-reads the environment."""
    global _runtime_config
    _runtime_config = None


def get_data_dir() -> Path:
    """
    Get the application data directory.

    Returns:
        Path: Data directory path.
    """
    return get_runtime_config().paths.data_dir


def get_config_dir() -> Path:
    """
    Get the configuration directory.

    Returns:
        Path: Configuration directory path.
    """
    return get_runtime_config().paths.config_dir


def get_logs_dir() -> Path:
    return get_runtime_config().paths.logs_dir


def get_database_dir() -> Path:
    return get_runtime_config().paths.database_dir
