"""
Root-relative path helpers.

Stored paths are always relative to a configured data root and use forward
slashes, whatever the platform produced.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence

from movieshelf.domain.models import normalize_folder_path

# Never descended into or watched
IGNORED_DIR_NAMES = {"node_modules", "$RECYCLE.BIN", "System Volume Information", "@eaDir"}


def relative_to_root(root: Path | str, path: Path | str) -> str:
    """Path of ``path`` relative to ``root`` in canonical forward-slash form."""
    rel = os.path.relpath(os.path.abspath(str(path)), os.path.abspath(str(root)))
    return normalize_folder_path(rel)


def absolute_from_root(root: Path | str, relative: Optional[str]) -> Optional[Path]:
    """Inverse of :func:`relative_to_root`; accepts either separator."""
    if relative is None:
        return None
    parts = [p for p in normalize_folder_path(relative).split("/") if p]
    return Path(root).joinpath(*parts)


def is_within(root: Path | str, path: Path | str) -> bool:
    root_abs = os.path.normcase(os.path.abspath(str(root)))
    path_abs = os.path.normcase(os.path.abspath(str(path)))
    try:
        return os.path.commonpath([root_abs, path_abs]) == root_abs
    except ValueError:
        # Different drives on Windows
        return False


def resolve_root_index(roots: Sequence[Path | str], path: Path | str) -> Optional[int]:
    """
    Find which configured root contains ``path``.

    Nested roots resolve to the deepest one.

    Returns:
        Index into ``roots``, or None when no root contains the path
    """
    best: Optional[int] = None
    best_len = -1
    for index, root in enumerate(roots):
        if not root or not is_within(root, path):
            continue
        root_len = len(os.path.abspath(str(root)))
        if root_len > best_len:
            best, best_len = index, root_len
    return best


def is_hidden_name(name: str) -> bool:
    return name.startswith(".") or name in IGNORED_DIR_NAMES


def is_hidden_path(root: Path | str, path: Path | str) -> bool:
    """True if any component of ``path`` below ``root`` is hidden or ignored."""
    rel = relative_to_root(root, path)
    if not rel:
        return False
    return any(is_hidden_name(part) for part in rel.split("/"))


def relative_depth(root: Path | str, path: Path | str) -> int:
    """Number of path components of ``path`` below ``root`` (root itself is 0)."""
    rel = relative_to_root(root, path)
    if not rel or rel.startswith(".."):
        return 0
    return len(rel.split("/"))
