"""
File System Module

Contains file system operations:
- paths: Root-relative path normalization
- folder_classifier: Movie folder detection and companion asset discovery
"""

from .folder_classifier import (
    DESCRIPTOR_EXTENSION,
    IMAGE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    CompanionAssets,
    find_companion_assets,
    find_images,
    find_video,
    get_nfo_files,
    is_descriptor_file,
    is_movie_folder,
    list_child_folders,
)
from .paths import (
    absolute_from_root,
    is_hidden_path,
    relative_depth,
    relative_to_root,
    resolve_root_index,
)

__all__ = [
    "DESCRIPTOR_EXTENSION",
    "IMAGE_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    "CompanionAssets",
    "find_companion_assets",
    "find_images",
    "find_video",
    "get_nfo_files",
    "is_descriptor_file",
    "is_movie_folder",
    "list_child_folders",
    "absolute_from_root",
    "is_hidden_path",
    "relative_depth",
    "relative_to_root",
    "resolve_root_index",
]
