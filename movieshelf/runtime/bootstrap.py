"""
Bootstrap Module

Prepares the process before the library service starts: checks the
interpreter, creates the data directories and attaches the rotating log
file to the root logger.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "movieshelf.log"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5

# Configure basic logging before anything else
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


class BootstrapError(Exception):
    """Exception raised during bootstrap process."""
    pass


class RuntimeBootstrap:
    """
    Handles the bootstrap process.

    This class is responsible for:
    - Interpreter version check
    - Data directory creation
    - Log level and log file setup
    """

    def __init__(self):
        self._initialized = False
        self._errors: list[str] = []
        self._warnings: list[str] = []

    @property
    def is_initialized(self) -> bool:
        """Check if bootstrap has completed."""
        return self._initialized

    @property
    def errors(self) -> list[str]:
        return self._errors.copy()

    @property
    def warnings(self) -> list[str]:
        return self._warnings.copy()

    def bootstrap(self, log_level: Optional[str] = None) -> bool:
        """
        Perform the bootstrap process.

        Args:
            log_level: Overrides ``logging.level`` from the configuration.

        Returns:
            bool: True if bootstrap was successful.

        Raises:
            BootstrapError: If a critical error occurs during bootstrap.
        """
        if self._initialized:
            logger.debug("Bootstrap already completed")
            return True

        logger.debug("Starting runtime bootstrap...")

        try:
            self._configure_runtime()
            self._create_directories()
            self._initialize_logging(log_level)

            self._initialized = True
            logger.debug("Runtime bootstrap completed successfully")

            for warning in self._warnings:
                logger.warning(warning)

            return True

        except BootstrapError:
            raise
        except Exception as e:
            error_msg = f"Bootstrap failed: {e}"
            self._errors.append(error_msg)
            logger.error(error_msg)
            raise BootstrapError(error_msg) from e

    def _configure_runtime(self) -> None:
        """Validate the interpreter."""
        from .runtime_config import get_runtime_config

        config = get_runtime_config()

        version_ok, version_msg = config.validate_python_version()
        if not version_ok:
            raise BootstrapError(version_msg)

        logger.debug(f"{version_msg}, data dir: {config.paths.data_dir}")

    def _create_directories(self) -> None:
        from .runtime_config import get_runtime_config

        paths = get_runtime_config().paths
        for directory in (paths.data_dir, paths.config_dir, paths.logs_dir, paths.database_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise BootstrapError(f"Cannot create {directory}: {e}") from e

    def _initialize_logging(self, log_level: Optional[str]) -> None:
        """Apply the configured log level and add the rotating log file."""
        from movieshelf.core.config import AppConfig

        from .runtime_config import get_logs_dir

        level_name = str(log_level or AppConfig.get("logging.level", "INFO")).upper()
        level = getattr(logging, level_name, None)
        if not isinstance(level, int):
            self._warnings.append(f"Unknown log level '{level_name}', using INFO")
            level = logging.INFO
        logging.getLogger().setLevel(level)

        log_file = get_logs_dir() / LOG_FILENAME
        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

            # Add to root logger
            logging.getLogger().addHandler(file_handler)

            logger.debug(f"Log file: {log_file}")

        except OSError as e:
            self._warnings.append(f"Could not set up file logging: {e}")


# Global bootstrap instance
_bootstrap: Optional[RuntimeBootstrap] = None


def get_bootstrap() -> RuntimeBootstrap:
    """
    Get the global bootstrap instance.

    Returns:
        RuntimeBootstrap: The bootstrap handler.
    """
    global _bootstrap
    if _bootstrap is None:
        _bootstrap = RuntimeBootstrap()
    return _bootstrap


def bootstrap(log_level: Optional[str] = None) -> bool:
    """
    Perform the runtime bootstrap.

    Call this at the start of the application before the library service
    is created.

    Raises:
        BootstrapError: If bootstrap fails.
    """
    return get_bootstrap().bootstrap(log_level=log_level)


def is_bootstrapped() -> bool:
    return get_bootstrap().is_initialized
