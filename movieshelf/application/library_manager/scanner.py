"""
Library Scanner Module

Walks data roots and collects the movie folders found on disk.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from movieshelf.domain.models import FolderKey
from movieshelf.infrastructure.file_system import DESCRIPTOR_EXTENSION, relative_to_root
from movieshelf.infrastructure.file_system.paths import is_hidden_name

from .events import ProgressCallback, ScanPhase, ScanProgress, notify

logger = logging.getLogger(__name__)


@dataclass
class DiscoveredFolder:
    """A movie folder found on disk."""
    root_index: int
    root: Path
    folder: Path
    nfo_files: List[Path] = field(default_factory=list)

    @property
    def key(self) -> FolderKey:
        return FolderKey.of(self.root_index, relative_to_root(self.root, self.folder))

    @property
    def nfo_path(self) -> Path:
        return self.nfo_files[0]


@dataclass
class DiskSnapshot:
    """Result of walking every root."""
    folders: Dict[FolderKey, DiscoveredFolder] = field(default_factory=dict)
    descriptor_count: int = 0
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class LibraryScanner:
    """
    Scans data roots for movie folders.

    Features:
    - One blocking walk per root, run off the event loop
    - Hidden and ignored directories are pruned
    - Cancellable between and during walks
    """

    def __init__(self):
        self._cancelled = False

    async def scan_roots(
        self,
        roots: Sequence[Path | str],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DiskSnapshot:
        """
        Collect the movie folders of every root.

        Args:
            roots: Ordered data roots; the position is the root index
            progress_callback: Receives a ``scan_disk`` update per root

        Returns:
            DiskSnapshot: Folders keyed by FolderKey
        """
        start_time = datetime.now()
        self._cancelled = False
        snapshot = DiskSnapshot()

        for index, root in enumerate(roots):
            if self._cancelled:
                break
            if not root:
                continue

            root_path = Path(root)
            notify(progress_callback, ScanProgress(
                ScanPhase.SCAN_DISK, index, len(roots), f"Scanning {root_path}"
            ))

            if not root_path.is_dir():
                message = f"Data root does not exist or is not a directory: {root_path}"
                logger.warning(message)
                snapshot.errors.append(message)
                continue

            folders, errors = await asyncio.to_thread(self._walk_root, index, root_path)
            for folder in folders:
                snapshot.folders[folder.key] = folder
                snapshot.descriptor_count += len(folder.nfo_files)
            snapshot.errors.extend(errors)

            await asyncio.sleep(0)

        notify(progress_callback, ScanProgress(
            ScanPhase.SCAN_DISK, len(roots), len(roots),
            f"Found {len(snapshot.folders)} movie folders",
        ))
        snapshot.duration_seconds = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Disk scan found {len(snapshot.folders)} movie folders "
            f"in {snapshot.duration_seconds:.2f}s"
        )
        return snapshot

    def _walk_root(self, root_index: int, root: Path) -> tuple[List[DiscoveredFolder], List[str]]:
        folders: List[DiscoveredFolder] = []
        errors: List[str] = []

        def on_error(error: OSError) -> None:
            message = f"Cannot read {error.filename}: {error.strerror}"
            logger.warning(message)
            errors.append(message)

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            if self._cancelled:
                break
            # Prune in place so os.walk skips them
            dirnames[:] = sorted(d for d in dirnames if not is_hidden_name(d))

            nfo_names = sorted(
                name for name in filenames
                if name.lower().endswith(DESCRIPTOR_EXTENSION) and not is_hidden_name(name)
            )
            if nfo_names:
                folder = Path(dirpath)
                folders.append(DiscoveredFolder(
                    root_index=root_index,
                    root=root,
                    folder=folder,
                    nfo_files=[folder / name for name in nfo_names],
                ))
        return folders, errors

    def cancel(self) -> None:
        """Cancel the current scan operation."""
        self._cancelled = True
