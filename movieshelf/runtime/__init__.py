"""
Runtime Module

Handles process setup:
- Data, config, log and database directory resolution
- Log level and rotating log file

Usage:
    # Bootstrap the runtime (call this first)
    from movieshelf.runtime import bootstrap
    bootstrap()

    # Get runtime configuration
    from movieshelf.runtime import get_runtime_config
    config = get_runtime_config()
"""

from .runtime_config import (
    RuntimeConfig,
    RuntimePaths,
    get_config_dir,
    get_data_dir,
    get_database_dir,
    get_logs_dir,
    get_runtime_config,
    reset_runtime_config,
)

from .bootstrap import (
    BootstrapError,
    RuntimeBootstrap,
    bootstrap,
    get_bootstrap,
    is_bootstrapped,
)

__all__ = [
    # Runtime config
    "RuntimeConfig",
    "RuntimePaths",
    "get_config_dir",
    "get_data_dir",
    "get_database_dir",
    "get_logs_dir",
    "get_runtime_config",
    "reset_runtime_config",
    # Bootstrap
    "BootstrapError",
    "RuntimeBootstrap",
    "bootstrap",
    "get_bootstrap",
    "is_bootstrapped",
]
