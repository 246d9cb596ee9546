"""
Domain Models Module

Contains all domain models for movieshelf.
"""

from .metadata import (
    EMPTY_SENTINEL,
    MovieMetadata,
    is_blank_name,
)
from .movie import (
    FolderKey,
    MovieRecord,
    folder_path_variants,
    normalize_folder_path,
)
from .sync import (
    FailedItem,
    RebuildResult,
    ReconcileResult,
    UpsertResult,
)

__all__ = [
    # Metadata
    "EMPTY_SENTINEL",
    "MovieMetadata",
    "is_blank_name",
    # Movie
    "FolderKey",
    "MovieRecord",
    "folder_path_variants",
    "normalize_folder_path",
    # Sync
    "FailedItem",
    "RebuildResult",
    "ReconcileResult",
    "UpsertResult",
]
