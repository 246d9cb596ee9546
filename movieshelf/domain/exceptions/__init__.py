"""
Domain Exceptions Module

Contains domain-specific exceptions:
- ParseError: Malformed descriptor (recorded, item skipped)
- FileAccessError: Missing or unreadable file or folder (recorded, skipped)
- StoreError: Database transaction failure
- ConfigError: No data roots configured
- ScanInProgressError: A reconcile or rebuild is already running
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class MovieshelfError(Exception):
    """Base class for all movieshelf errors."""
    pass


class ParseError(MovieshelfError):
    """A descriptor file could not be parsed into a metadata record."""

    def __init__(self, path: Optional[Path | str], reason: str):
        self.path = str(path) if path is not None else None
        self.reason = reason
        super().__init__(f"{reason}: {self.path}" if self.path else reason)


class FileAccessError(MovieshelfError):
    """A file or folder is missing or unreadable."""

    def __init__(self, path: Optional[Path | str], reason: str):
        self.path = str(path) if path is not None else None
        self.reason = reason
        super().__init__(f"{reason}: {self.path}" if self.path else reason)


class StoreError(MovieshelfError):
    """A catalog transaction failed."""
    pass


class ConfigError(MovieshelfError):
    """The configuration cannot support the requested operation."""
    pass


class ScanInProgressError(MovieshelfError):
    """A second reconcile or rebuild was requested while one is running."""
    pass


__all__ = [
    "MovieshelfError",
    "ParseError",
    "FileAccessError",
    "StoreError",
    "ConfigError",
    "ScanInProgressError",
]
