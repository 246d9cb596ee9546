"""
Folder Indexer Module

The single routine that makes the catalog reflect one folder's disk state.
Reconciliation and every live watch handler go through it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Set

from movieshelf.domain.exceptions import FileAccessError
from movieshelf.domain.models import FolderKey, MovieMetadata, MovieRecord, UpsertResult
from movieshelf.infrastructure.database.catalog_store import CatalogStore
from movieshelf.infrastructure.file_system import find_companion_assets, get_nfo_files, relative_to_root

from .metadata_extractor import parse_nfo_file

logger = logging.getLogger(__name__)


def read_descriptor(folder: Path | str) -> tuple[Path, MovieMetadata]:
    """
    Parse the first descriptor of a movie folder.

    Raises:
        FileAccessError: If the folder cannot be listed or has no descriptor
        ParseError: If the descriptor cannot be parsed
    """
    folder = Path(folder)
    try:
        nfo_files = get_nfo_files(folder)
    except OSError as e:
        raise FileAccessError(folder, f"cannot list folder ({e.strerror or e})") from e
    if not nfo_files:
        raise FileAccessError(folder, "no descriptor in folder")
    return nfo_files[0], parse_nfo_file(nfo_files[0])


def build_record(
    root_index: int,
    root: Path | str,
    folder: Path | str,
    nfo_path: Optional[Path] = None,
    metadata: Optional[MovieMetadata] = None,
) -> MovieRecord:
    """
    Read everything the catalog stores about one folder.

    ``nfo_path``/``metadata`` skip the parse when the caller already has them.

    Raises:
        FileAccessError: If the folder or descriptor cannot be read
        ParseError: If the descriptor cannot be parsed
    """
    folder = Path(folder)
    if metadata is None or nfo_path is None:
        nfo_path, metadata = read_descriptor(folder)

    try:
        assets = find_companion_assets(folder)
        folder_updated_at = datetime.fromtimestamp(os.stat(folder).st_mtime)
    except OSError as e:
        raise FileAccessError(folder, f"cannot read folder ({e.strerror or e})") from e

    def rel(path: Optional[Path]) -> Optional[str]:
        return relative_to_root(root, path) if path is not None else None

    return MovieRecord(
        metadata=metadata,
        root_index=root_index,
        folder_path=relative_to_root(root, folder),
        nfo_path=relative_to_root(root, nfo_path),
        poster_path=rel(assets.poster),
        fanart_path=rel(assets.fanart),
        video_path=rel(assets.video),
        folder_updated_at=folder_updated_at,
    )


class FolderIndexer:
    """
    Applies disk state to the catalog.

    Blocking reads and store transactions run in worker threads so callers on
    the event loop stay responsive.
    """

    def __init__(self, store: CatalogStore):
        self.store = store

    async def apply_descriptor_to_item(
        self,
        root_index: int,
        root: Path | str,
        folder: Path | str,
        *,
        nfo_path: Optional[Path] = None,
        metadata: Optional[MovieMetadata] = None,
        live_keys: Optional[Set[FolderKey]] = None,
    ) -> UpsertResult:
        """
        Create or update the movie described by a folder's descriptor.

        Args:
            root_index: Index of the data root holding the folder
            root: The data root
            folder: Movie folder (absolute)
            nfo_path: Descriptor already chosen by the caller
            metadata: Descriptor already parsed by the caller
            live_keys: Folder keys known to exist on disk, see
                ``CatalogStore.create_or_update``

        Raises:
            ParseError, FileAccessError, StoreError
        """
        record = await asyncio.to_thread(build_record, root_index, root, folder, nfo_path, metadata)
        result = await asyncio.to_thread(self.store.create_or_update, record, live_keys)
        if result.was_created:
            logger.info(f"Added {result.code} from {record.key}")
        elif not result.conflict:
            logger.debug(f"Updated {result.code} from {record.key}")
        return result

    async def remove_folder(self, key: FolderKey, include_descendants: bool = False) -> int:
        """Delete the movies stored for a folder. Returns the number removed."""
        return await asyncio.to_thread(self.store.delete_by_folder_key, key, include_descendants)
