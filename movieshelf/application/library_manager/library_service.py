"""
Library Service Module

Application-level entry point of the sync core. Owns the catalog store, the
reconciler and one watch engine per data root, and exposes the operations
the CLI (or any other front end) calls: startup sync, manual reconcile and
rebuild, metadata edits and live watching.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from watchdog.observers import Observer

from movieshelf.core.config import ConfigManager, get_config_manager
from movieshelf.domain.exceptions import ScanInProgressError
from movieshelf.domain.models import MovieRecord, RebuildResult, ReconcileResult
from movieshelf.infrastructure.database.catalog_store import EDITABLE_FIELDS, CatalogStore
from movieshelf.infrastructure.database.connection import DatabaseManager, get_db_manager

from .events import ChangeCallback, ChangeEvent, ChangeType, ProgressCallback, notify
from .file_watcher import WatchEngine
from .indexer import FolderIndexer
from .metadata_extractor import read_nfo_tag, save_nfo
from .reconciler import LibraryReconciler

logger = logging.getLogger(__name__)


class LibraryService:
    """
    Catalog synchronization service.

    Features:
    - Startup reconcile followed by live watching of every root
    - Scan guard: one reconcile or rebuild at a time
    - Metadata edits written to the catalog and back to the descriptor
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        config: Optional[ConfigManager] = None,
        *,
        change_callback: Optional[ChangeCallback] = None,
        progress_callback: Optional[ProgressCallback] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.db_manager = db_manager or get_db_manager()
        self.config = config or get_config_manager()
        self.change_callback = change_callback
        self.progress_callback = progress_callback
        self.observer_factory = observer_factory

        self.store = CatalogStore(self.db_manager)
        self.indexer = FolderIndexer(self.store)
        self.reconciler = LibraryReconciler(
            self.store,
            self.indexer,
            remove_batch_size=self.config.get("sync.remove_batch_size", 80),
            add_batch_size=self.config.get("sync.add_batch_size", 15),
        )
        self._engines: Dict[int, WatchEngine] = {}
        self._scan_lock = asyncio.Lock()

    @property
    def roots(self) -> List[str]:
        return self.config.get_data_roots()

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    @property
    def engines(self) -> List[WatchEngine]:
        return [self._engines[i] for i in sorted(self._engines)]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> Optional[ReconcileResult]:
        """
        Initialize the catalog, run the startup sync and start watching.

        Returns:
            The startup reconcile result, or None when the startup scan is
            disabled or no roots are configured
        """
        await asyncio.to_thread(self.db_manager.init_db)

        result = None
        if self.config.get("library.scan_on_startup", True) and self.roots:
            result = await self.reconcile()
            if result.changed:
                notify(self.change_callback, ChangeEvent(
                    ChangeType.STARTUP_SYNC_DONE, "",
                    added=result.added_count, removed=result.removed_count,
                ))
        elif not self.roots:
            logger.warning("No data roots configured, skipping startup sync")

        if self.config.get("library.watch_for_changes", True):
            await self.start_watching()
        return result

    async def stop(self) -> None:
        """Cancel a running scan and stop every watch engine."""
        if self.is_scanning:
            self.reconciler.cancel()
        for engine in list(self._engines.values()):
            await engine.stop()
        self._engines.clear()
        logger.info("Library service stopped")

    async def start_watching(self) -> int:
        """
        Start one watch engine per configured root.

        Returns:
            int: Number of roots being watched
        """
        watching = 0
        for index, root in enumerate(self.roots):
            engine = self._engine_for(index)
            if engine is not None and await engine.start():
                watching += 1
        return watching

    def _engine_for(self, root_index: int) -> Optional[WatchEngine]:
        roots = self.roots
        if not 0 <= root_index < len(roots):
            return None
        engine = self._engines.get(root_index)
        if engine is not None and engine.root == Path(roots[root_index]):
            return engine

        engine = WatchEngine(
            roots[root_index],
            root_index,
            self.indexer,
            debounce_ms=self.config.get("sync.debounce_ms", 400),
            recheck_delay_ms=self.config.get("sync.recheck_delay_ms", 2500),
            max_depth=self.config.get("sync.watch_depth", 3),
            change_callback=self.change_callback,
            observer_factory=self.observer_factory,
        )
        self._engines[root_index] = engine
        return engine

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    async def reconcile(self, progress_callback: Optional[ProgressCallback] = None) -> ReconcileResult:
        """
        Reconcile all roots with the catalog.

        Raises:
            ScanInProgressError: If a scan is already running
            ConfigError: If no roots are configured
        """
        if self.is_scanning:
            raise ScanInProgressError("A scan is already in progress")
        async with self._scan_lock:
            return await self.reconciler.reconcile(self.roots, progress_callback or self.progress_callback)

    async def rebuild(self, progress_callback: Optional[ProgressCallback] = None) -> RebuildResult:
        """
        Clear the catalog and import every root again.

        Raises:
            ScanInProgressError: If a scan is already running
            ConfigError: If no roots are configured
        """
        if self.is_scanning:
            raise ScanInProgressError("A scan is already in progress")
        async with self._scan_lock:
            return await self.reconciler.rebuild(self.roots, progress_callback or self.progress_callback)

    def cancel_scan(self) -> None:
        if self.is_scanning:
            self.reconciler.cancel()

    # ------------------------------------------------------------------
    # Metadata edits
    # ------------------------------------------------------------------

    def _locate(self, record: MovieRecord, relative: str) -> Optional[Path]:
        """Absolute path of a root-relative file, trying the record's own root first."""
        roots = self.roots
        candidates = []
        if 0 <= record.root_index < len(roots):
            candidates.append(roots[record.root_index])
        candidates.extend(r for i, r in enumerate(roots) if i != record.root_index)
        for root in candidates:
            path = Path(root) / relative
            if path.is_file():
                return path
        return None

    async def update_movie(self, code: str, changes: Mapping[str, Any]) -> Optional[MovieRecord]:
        """
        Apply a user edit to one movie.

        The catalog is updated first, then the descriptor is patched in
        place (or regenerated when patching fails) and the folder is
        watched briefly so an external tool's follow-up write is picked up.

        Args:
            code: Code of the movie to edit (the code itself is immutable)
            changes: Editable fields to change

        Returns:
            The updated record, or None when no movie has this code
        """
        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        record = await asyncio.to_thread(self.store.update_metadata, code, changes)
        if record is None:
            logger.warning(f"Cannot update unknown movie: {code}")
            return None

        nfo_path = await asyncio.to_thread(self._locate, record, record.nfo_path)
        if nfo_path is None:
            logger.warning(f"Descriptor for {code} not found, catalog updated only")
            return record

        stored = record.metadata.to_dict()
        nfo_changes = {key: stored[key] for key in changes}
        await asyncio.to_thread(save_nfo, nfo_path, nfo_changes, record.metadata)

        engine = self._engine_for(record.root_index)
        if engine is not None:
            await engine.watch_folder_temporarily(
                nfo_path.parent, self.config.get("sync.temp_watch_timeout_ms", 5000)
            )
        return record

    async def read_descriptor_field(self, code: str, tag: str) -> Optional[str]:
        """Text of one descriptor element (e.g. ``originalplot``) for a stored movie."""
        record = await asyncio.to_thread(self.store.get_record, code)
        if record is None:
            return None
        nfo_path = await asyncio.to_thread(self._locate, record, record.nfo_path)
        if nfo_path is None:
            return None
        return await asyncio.to_thread(read_nfo_tag, nfo_path, tag)
