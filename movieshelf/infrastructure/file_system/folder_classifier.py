"""
Folder Classifier Module

Decides whether a directory is a movie folder (it directly holds an NFO
descriptor) or a container folder, and locates the companion image and video
files inside a movie folder.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .paths import is_hidden_name

logger = logging.getLogger(__name__)

DESCRIPTOR_EXTENSION = ".nfo"

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

VIDEO_EXTENSIONS = {
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm",
    ".m4v", ".3gp", ".ts", ".mpg", ".mpeg",
}

# Suffix rank beats keyword rank
POSTER_SUFFIX, POSTER_KEYWORD = "ps", "poster"
FANART_SUFFIX, FANART_KEYWORD = "pl", "fanart"


@dataclass
class CompanionAssets:
    """Companion files found next to a descriptor."""

    poster: Optional[Path] = None
    fanart: Optional[Path] = None
    video: Optional[Path] = None

    @property
    def playable(self) -> bool:
        return self.video is not None


def _list_files(folder: Path) -> List[str]:
    """Sorted names of the regular files directly inside ``folder``."""
    with os.scandir(folder) as entries:
        return sorted(e.name for e in entries if e.is_file())


def is_descriptor_file(path: Path | str) -> bool:
    return Path(path).suffix.lower() == DESCRIPTOR_EXTENSION


def get_nfo_files(folder: Path | str) -> List[Path]:
    """
    List the descriptor files directly inside a folder.

    Args:
        folder: Directory to inspect

    Returns:
        Descriptor paths in name order

    Raises:
        OSError: If the folder cannot be listed
    """
    folder = Path(folder)
    return [
        folder / name for name in _list_files(folder)
        if is_descriptor_file(name) and not is_hidden_name(name)
    ]


def is_movie_folder(folder: Path | str) -> bool:
    """True iff the folder directly contains at least one descriptor file."""
    try:
        return len(get_nfo_files(folder)) > 0
    except OSError:
        return False


def list_child_folders(folder: Path | str) -> List[Path]:
    """Immediate, non-hidden subdirectories of ``folder`` in name order."""
    folder = Path(folder)
    try:
        with os.scandir(folder) as entries:
            names = sorted(
                e.name for e in entries
                if e.is_dir(follow_symlinks=False) and not is_hidden_name(e.name)
            )
    except OSError as e:
        logger.warning(f"Cannot list folder {folder}: {e}")
        return []
    return [folder / name for name in names]


def _image_rank(stem: str, suffix: str, keyword: str) -> int:
    if stem.endswith(suffix):
        return 2
    if keyword in stem:
        return 1
    return 0


def find_images(folder: Path | str, names: Optional[List[str]] = None) -> tuple[Optional[Path], Optional[Path]]:
    """
    Pick the poster (primary) and fanart (secondary) images of a folder.

    A stem ending in ``ps``/``pl`` outranks a stem containing
    ``poster``/``fanart``; within a rank the first name wins.

    Returns:
        (poster, fanart) paths, each possibly None
    """
    folder = Path(folder)
    if names is None:
        names = _list_files(folder)

    poster: Optional[Path] = None
    fanart: Optional[Path] = None
    poster_rank = 0
    fanart_rank = 0

    for name in names:
        lower = name.lower()
        stem, ext = os.path.splitext(lower)
        if ext not in IMAGE_EXTENSIONS:
            continue

        rank = _image_rank(stem, POSTER_SUFFIX, POSTER_KEYWORD)
        if rank > poster_rank:
            poster_rank, poster = rank, folder / name

        rank = _image_rank(stem, FANART_SUFFIX, FANART_KEYWORD)
        if rank > fanart_rank:
            fanart_rank, fanart = rank, folder / name

    return poster, fanart


def find_video(folder: Path | str, names: Optional[List[str]] = None) -> Optional[Path]:
    """First readable file with a known video extension, or None."""
    folder = Path(folder)
    if names is None:
        names = _list_files(folder)

    for name in names:
        if os.path.splitext(name)[1].lower() not in VIDEO_EXTENSIONS:
            continue
        video_path = folder / name
        if os.access(video_path, os.R_OK):
            return video_path
        logger.debug(f"Video file not readable, skipped: {video_path}")
    return None


def find_companion_assets(folder: Path | str) -> CompanionAssets:
    """
    Locate poster, fanart and playable video inside a movie folder.

    Raises:
        OSError: If the folder cannot be listed
    """
    folder = Path(folder)
    names = _list_files(folder)
    poster, fanart = find_images(folder, names)
    return CompanionAssets(poster=poster, fanart=fanart, video=find_video(folder, names))
