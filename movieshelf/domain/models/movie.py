"""
Movie Domain Model

Folder keys and the record persisted for one movie folder.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Set

from .metadata import MovieMetadata


def normalize_folder_path(path: str) -> str:
    """
    Canonical form of a root-relative path: forward slashes, no leading
    ``./`` and no leading or trailing separators.
    """
    normalized = str(path).replace("\\", "/")
    while "//" in normalized:
        normalized = normalized.replace("//", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.strip("/")
    return "" if normalized == "." else normalized


def folder_path_variants(path: str) -> Set[str]:
    """Stored forms a folder path may have: as given, forward-slash and backslash."""
    canonical = normalize_folder_path(path)
    return {str(path), canonical, canonical.replace("/", "\\")}


@dataclass(frozen=True)
class FolderKey:
    """Composite identity of an item folder: root index plus relative folder path."""

    root_index: int
    folder_path: str

    @classmethod
    def of(cls, root_index: int, folder_path: str) -> FolderKey:
        return cls(int(root_index), normalize_folder_path(folder_path))

    def __str__(self) -> str:
        return f"[{self.root_index}] {self.folder_path}"


@dataclass
class MovieRecord:
    """
    Everything written to the catalog for one item folder.

    All paths are relative to the root at ``root_index``.
    """

    metadata: MovieMetadata
    root_index: int
    folder_path: str
    nfo_path: str
    poster_path: Optional[str] = None
    fanart_path: Optional[str] = None
    video_path: Optional[str] = None
    folder_updated_at: Optional[datetime] = None

    @property
    def code(self) -> str:
        return self.metadata.code

    @property
    def playable(self) -> bool:
        return self.video_path is not None

    @property
    def key(self) -> FolderKey:
        return FolderKey.of(self.root_index, self.folder_path)
