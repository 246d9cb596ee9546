"""
Library Reconciler Module

Brings the catalog in line with the data roots: folders missing on disk are
removed, folders missing from the catalog are added, everything present on
both sides is left alone. Work is applied in small batches with a yield to
the event loop between batches.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from movieshelf.domain.exceptions import ConfigError, MovieshelfError
from movieshelf.domain.models import (
    FailedItem,
    FolderKey,
    MovieMetadata,
    RebuildResult,
    ReconcileResult,
)
from movieshelf.infrastructure.database.catalog_store import CatalogStore

from .events import ProgressCallback, ScanPhase, ScanProgress, notify
from .indexer import FolderIndexer, read_descriptor
from .scanner import DiscoveredFolder, LibraryScanner

logger = logging.getLogger(__name__)

DEFAULT_REMOVE_BATCH_SIZE = 80
DEFAULT_ADD_BATCH_SIZE = 15


def _batches(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _require_roots(roots: Sequence[Path | str]) -> List[Path | str]:
    roots = list(roots or [])
    if not any(roots):
        raise ConfigError("No data roots configured")
    return roots


class LibraryReconciler:
    """
    Disk-versus-catalog reconciliation.

    Features:
    - Incremental: only folders added or removed since the last pass are touched
    - Idempotent: a second pass over unchanged disk state changes nothing
    - Moves (same code, new folder) update the row in place
    - Per-item failures are collected, never raised
    - Cancellable between batches
    """

    def __init__(
        self,
        store: CatalogStore,
        indexer: Optional[FolderIndexer] = None,
        scanner: Optional[LibraryScanner] = None,
        remove_batch_size: int = DEFAULT_REMOVE_BATCH_SIZE,
        add_batch_size: int = DEFAULT_ADD_BATCH_SIZE,
    ):
        self.store = store
        self.indexer = indexer or FolderIndexer(store)
        self.scanner = scanner or LibraryScanner()
        self.remove_batch_size = max(1, int(remove_batch_size))
        self.add_batch_size = max(1, int(add_batch_size))
        self._cancelled = False

    def cancel(self) -> None:
        """Stop the running pass after the current batch."""
        self._cancelled = True
        self.scanner.cancel()

    async def reconcile(
        self,
        roots: Sequence[Path | str],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ReconcileResult:
        """
        Reconcile every data root with the catalog.

        Args:
            roots: Ordered data roots; the position is the root index
            progress_callback: Optional progress sink

        Returns:
            ReconcileResult: Counts and per-folder lists

        Raises:
            ConfigError: If no roots are configured
            StoreError: If the catalog cannot be read
        """
        roots = _require_roots(roots)
        self._cancelled = False
        start = time.monotonic()
        result = ReconcileResult()

        snapshot = await self.scanner.scan_roots(roots, progress_callback)
        if self._cancelled:
            return self._finish(result, start, progress_callback, cancelled=True)

        notify(progress_callback, ScanProgress(ScanPhase.SCAN_DB, 0, 0, "Loading catalog"))
        stored_rows = await asyncio.to_thread(self.store.list_folder_keys)
        stored: Dict[FolderKey, List[str]] = {}
        for key, code in stored_rows:
            stored.setdefault(key, []).append(code)

        disk_keys: Set[FolderKey] = set(snapshot.folders)
        to_remove = sorted(
            (k for k in stored if k not in disk_keys),
            key=lambda k: (k.root_index, k.folder_path),
        )
        to_add = sorted(
            (k for k in disk_keys if k not in stored),
            key=lambda k: (k.root_index, k.folder_path),
        )
        logger.info(
            f"Reconcile: {len(disk_keys)} folders on disk, {len(stored)} in catalog, "
            f"{len(to_remove)} to remove, {len(to_add)} to add"
        )

        parsed = await self._parse_new_folders(
            [snapshot.folders[k] for k in to_add], result, progress_callback
        )
        if self._cancelled:
            return self._finish(result, start, progress_callback, cancelled=True)

        moved_codes = {metadata.code for _, metadata in parsed.values()}
        await self._remove_missing(to_remove, stored, moved_codes, result, progress_callback)
        if self._cancelled:
            return self._finish(result, start, progress_callback, cancelled=True)

        await self._add_new(snapshot.folders, parsed, disk_keys, result, progress_callback)
        return self._finish(result, start, progress_callback, cancelled=self._cancelled)

    async def _parse_new_folders(
        self,
        folders: List[DiscoveredFolder],
        result: ReconcileResult,
        progress_callback: Optional[ProgressCallback],
    ) -> Dict[FolderKey, tuple[Path, MovieMetadata]]:
        """Parse descriptors of folders about to be added, so moves can be detected."""
        parsed: Dict[FolderKey, tuple[Path, MovieMetadata]] = {}
        for batch in _batches(folders, self.add_batch_size):
            if self._cancelled:
                break
            for folder in batch:
                try:
                    parsed[folder.key] = await asyncio.to_thread(read_descriptor, folder.folder)
                except MovieshelfError as e:
                    logger.warning(f"Skipping {folder.folder}: {e}")
                    result.failed_list.append(FailedItem(str(folder.folder), str(e)))
            await asyncio.sleep(0)
        return parsed

    async def _remove_missing(
        self,
        to_remove: List[FolderKey],
        stored: Dict[FolderKey, List[str]],
        moved_codes: Set[str],
        result: ReconcileResult,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        done = 0
        for batch in _batches(to_remove, self.remove_batch_size):
            if self._cancelled:
                return
            for key in batch:
                done += 1
                if all(code in moved_codes for code in stored[key]):
                    logger.debug(f"{key} moved elsewhere, keeping its entry")
                    continue
                try:
                    removed = await self.indexer.remove_folder(key)
                except MovieshelfError as e:
                    logger.warning(f"Failed to remove {key}: {e}")
                    result.failed_list.append(FailedItem(key.folder_path, str(e)))
                    continue
                if removed:
                    result.removed_count += removed
                    result.removed_list.append(key.folder_path)
            notify(progress_callback, ScanProgress(
                ScanPhase.REMOVE, done, len(to_remove), "Removing missing folders"
            ))
            await asyncio.sleep(0)

    async def _add_new(
        self,
        folders: Dict[FolderKey, DiscoveredFolder],
        parsed: Dict[FolderKey, tuple[Path, MovieMetadata]],
        disk_keys: Set[FolderKey],
        result: ReconcileResult,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        keys = list(parsed)
        done = 0
        for batch in _batches(keys, self.add_batch_size):
            if self._cancelled:
                return
            for key in batch:
                done += 1
                folder = folders[key]
                nfo_path, metadata = parsed[key]
                try:
                    upsert = await self.indexer.apply_descriptor_to_item(
                        folder.root_index, folder.root, folder.folder,
                        nfo_path=nfo_path, metadata=metadata, live_keys=disk_keys,
                    )
                except MovieshelfError as e:
                    logger.warning(f"Failed to index {folder.folder}: {e}")
                    result.failed_list.append(FailedItem(str(folder.folder), str(e)))
                    continue

                if upsert.was_created:
                    result.added_count += 1
                    result.added_list.append(key.folder_path)
                else:
                    result.duplicate_list.append(key.folder_path)
            notify(progress_callback, ScanProgress(
                ScanPhase.ADD, done, len(keys), "Adding new folders"
            ))
            await asyncio.sleep(0)

    def _finish(
        self,
        result: ReconcileResult,
        start: float,
        progress_callback: Optional[ProgressCallback],
        cancelled: bool,
    ) -> ReconcileResult:
        result.cancelled = cancelled
        result.duration_seconds = time.monotonic() - start
        message = (
            f"Reconcile {'cancelled' if cancelled else 'finished'}: "
            f"{result.added_count} added, {result.removed_count} removed, "
            f"{len(result.duplicate_list)} duplicates, {len(result.failed_list)} failed "
            f"in {result.duration_seconds:.2f}s"
        )
        logger.info(message)
        notify(progress_callback, ScanProgress(
            ScanPhase.DONE, result.added_count + result.removed_count,
            result.added_count + result.removed_count, message,
        ))
        return result

    async def rebuild(
        self,
        roots: Sequence[Path | str],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RebuildResult:
        """
        Clear the catalog and import every movie folder again.

        Raises:
            ConfigError: If no roots are configured
            StoreError: If the catalog cannot be cleared
        """
        roots = _require_roots(roots)
        self._cancelled = False
        start = time.monotonic()
        result = RebuildResult()

        snapshot = await self.scanner.scan_roots(roots, progress_callback)
        if self._cancelled:
            result.cancelled = True
            return result

        await asyncio.to_thread(self.store.clear)

        ordered = sorted(snapshot.folders.values(), key=lambda f: (f.root_index, str(f.folder)))
        disk_keys = set(snapshot.folders)
        result.total = len(ordered)

        for batch in _batches(ordered, self.add_batch_size):
            if self._cancelled:
                result.cancelled = True
                break
            for folder in batch:
                try:
                    upsert = await self.indexer.apply_descriptor_to_item(
                        folder.root_index, folder.root, folder.folder, live_keys=disk_keys,
                    )
                except MovieshelfError as e:
                    logger.warning(f"Failed to index {folder.folder}: {e}")
                    result.failed += 1
                    result.failed_list.append(FailedItem(str(folder.folder), str(e)))
                    continue

                if upsert.conflict:
                    result.failed += 1
                    result.failed_list.append(FailedItem(
                        str(folder.folder),
                        f"duplicate code {upsert.code}, already indexed from {upsert.previous_folder}",
                    ))
                else:
                    result.success += 1
            notify(progress_callback, ScanProgress(
                ScanPhase.ADD, result.success + result.failed, result.total, "Importing folders"
            ))
            await asyncio.sleep(0)

        result.duration_seconds = time.monotonic() - start
        logger.info(
            f"Rebuild finished: {result.success}/{result.total} imported, "
            f"{result.failed} failed in {result.duration_seconds:.2f}s"
        )
        notify(progress_callback, ScanProgress(
            ScanPhase.DONE, result.success + result.failed, result.total, "Rebuild finished"
        ))
        return result
