"""
File Watcher Module

Keeps the catalog in sync with live filesystem changes using watchdog.

One ``WatchEngine`` runs per data root. Observer threads only translate raw
events and hand them to the event loop; a single consumer task per engine
applies them in order through the shared ``FolderIndexer`` routine.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from movieshelf.domain.exceptions import MovieshelfError
from movieshelf.domain.models import FolderKey
from movieshelf.infrastructure.file_system import (
    is_descriptor_file,
    is_hidden_path,
    is_movie_folder,
    list_child_folders,
    relative_depth,
    relative_to_root,
)
from movieshelf.infrastructure.file_system.paths import is_within

from .events import ChangeCallback, ChangeEvent, ChangeType, notify
from .indexer import FolderIndexer

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 400
DEFAULT_RECHECK_DELAY_MS = 2500
DEFAULT_WATCH_DEPTH = 3
DEFAULT_TEMP_WATCH_TIMEOUT_MS = 5000


class WatchState(str, Enum):
    STOPPED = "stopped"
    WATCHING = "watching"


class WatchEventKind(str, Enum):
    DIR_ADDED = "dir_added"
    DIR_REMOVED = "dir_removed"
    DESCRIPTOR_ADDED = "descriptor_added"
    DESCRIPTOR_CHANGED = "descriptor_changed"
    DESCRIPTOR_REMOVED = "descriptor_removed"
    # Internal follow-up of DIR_ADDED
    DIR_RECHECK = "dir_recheck"


@dataclass(frozen=True)
class WatchEvent:
    """A filtered filesystem event, path absolute."""
    kind: WatchEventKind
    path: Path


class DescriptorEventHandler(FileSystemEventHandler):
    """
    Watchdog event handler for movie folders and descriptors.

    Drops hidden paths, anything deeper than ``max_depth`` levels of
    subdirectories below the root and every file that is not a descriptor.
    Moves are reported as a removal of the source plus an addition of the
    destination.
    """

    def __init__(self, root: Path, sink: Callable[[WatchEvent], None], max_depth: int = DEFAULT_WATCH_DEPTH):
        super().__init__()
        self.root = Path(root)
        self.sink = sink
        self.max_depth = max_depth

    def _accept(self, path: str, is_directory: bool) -> bool:
        if not is_within(self.root, path):
            return False
        if not relative_to_root(self.root, path):
            return False
        if is_hidden_path(self.root, path):
            return False
        if relative_depth(self.root, path) > self.max_depth + 1:
            return False
        return is_directory or is_descriptor_file(path)

    def _emit(self, kind: WatchEventKind, path: str) -> None:
        logger.debug(f"{kind.value}: {path}")
        self.sink(WatchEvent(kind, Path(path)))

    def _created(self, path: str, is_directory: bool) -> None:
        if self._accept(path, is_directory):
            self._emit(WatchEventKind.DIR_ADDED if is_directory else WatchEventKind.DESCRIPTOR_ADDED, path)

    def _deleted(self, path: str, is_directory: bool) -> None:
        if self._accept(path, is_directory):
            self._emit(WatchEventKind.DIR_REMOVED if is_directory else WatchEventKind.DESCRIPTOR_REMOVED, path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._created(event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._deleted(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._accept(event.src_path, False):
            self._emit(WatchEventKind.DESCRIPTOR_CHANGED, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._deleted(event.src_path, event.is_directory)
        self._created(event.dest_path, event.is_directory)


class WatchEngine:
    """
    Live synchronization of one data root.

    States: STOPPED -> WATCHING -> STOPPED, restartable.

    Features:
    - Per-folder debounce of descriptor additions (latest wins)
    - Delayed re-check of newly created directories
    - Short-lived single-folder watches after external edits
    - Sequential processing on one consumer task
    """

    def __init__(
        self,
        root: Path | str,
        root_index: int,
        indexer: FolderIndexer,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        recheck_delay_ms: int = DEFAULT_RECHECK_DELAY_MS,
        max_depth: int = DEFAULT_WATCH_DEPTH,
        change_callback: Optional[ChangeCallback] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.root = Path(root)
        self.root_index = root_index
        self.indexer = indexer
        self.debounce = debounce_ms / 1000.0
        self.recheck_delay = recheck_delay_ms / 1000.0
        self.max_depth = max_depth
        self.change_callback = change_callback
        self.observer_factory = observer_factory

        self._state = WatchState.STOPPED
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Optional[Observer] = None
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._pending: Dict[Path, asyncio.TimerHandle] = {}
        self._rechecks: Set[asyncio.TimerHandle] = set()
        self._temp_watches: Dict[Path, tuple[Observer, asyncio.TimerHandle]] = {}
        self._joins: Set[asyncio.Task] = set()

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def is_watching(self) -> bool:
        return self._state is WatchState.WATCHING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _ensure_consumer(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._consumer = self._loop.create_task(self._consume(), name=f"watch-consumer-{self.root_index}")

    async def start(self) -> bool:
        """
        Start watching the root.

        Returns:
            bool: True if the engine is watching
        """
        if self._state is WatchState.WATCHING:
            return True
        if not self.root.is_dir():
            logger.warning(f"Invalid watch path: {self.root}")
            return False

        self._ensure_consumer()
        observer = self.observer_factory()
        handler = DescriptorEventHandler(self.root, self.post_event, self.max_depth)
        try:
            observer.schedule(handler, str(self.root), recursive=True)
            await asyncio.to_thread(observer.start)
        except OSError as e:
            logger.error(f"Failed to watch path {self.root}: {e}")
            await self._cancel_consumer()
            return False

        self._observer = observer
        self._state = WatchState.WATCHING
        logger.info(f"Watching path: {self.root} (depth={self.max_depth})")
        return True

    async def stop(self) -> None:
        """Stop observers, cancel every timer and the consumer task."""
        observers = []
        if self._observer is not None:
            observers.append(self._observer)
            self._observer = None
        for observer, handle in self._temp_watches.values():
            handle.cancel()
            observers.append(observer)
        self._temp_watches.clear()

        for observer in observers:
            observer.stop()
        for observer in observers:
            await asyncio.to_thread(observer.join, 5)
        if self._joins:
            await asyncio.gather(*self._joins)

        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        for handle in self._rechecks:
            handle.cancel()
        self._rechecks.clear()

        await self._cancel_consumer()

        if self._state is WatchState.WATCHING:
            logger.info(f"Stopped watching path: {self.root}")
        self._state = WatchState.STOPPED

    async def _cancel_consumer(self) -> None:
        consumer, self._consumer = self._consumer, None
        self._queue = None
        if consumer is None or consumer.done():
            return
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass

    async def drain(self) -> None:
        """Wait until no debounced event is pending and the queue is empty."""
        while True:
            # Let events posted with call_soon_threadsafe reach _schedule
            await asyncio.sleep(0)
            while self._pending:
                await asyncio.sleep(max(self.debounce / 4, 0.005))
            if self._queue is None:
                return
            await self._queue.join()
            await asyncio.sleep(0)
            if not self._pending and self._queue is not None and self._queue.empty():
                return

    # ------------------------------------------------------------------
    # Event intake (thread-safe entry point, then loop-side scheduling)
    # ------------------------------------------------------------------

    def post_event(self, event: WatchEvent) -> None:
        """Hand an event to the engine; safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._schedule, event)
        except RuntimeError:
            logger.debug(f"Event loop closed, dropping {event.kind.value}: {event.path}")

    def _schedule(self, event: WatchEvent) -> None:
        if self._queue is None:
            return

        if event.kind is WatchEventKind.DESCRIPTOR_ADDED or (
            event.kind is WatchEventKind.DESCRIPTOR_CHANGED and event.path.parent in self._pending
        ):
            # A change during a pending add folds into that add
            folder = event.path.parent
            previous = self._pending.pop(folder, None)
            if previous is not None:
                previous.cancel()
            self._pending[folder] = self._loop.call_later(self.debounce, self._fire_debounced, folder)
            return

        if event.kind is WatchEventKind.DESCRIPTOR_CHANGED:
            self._queue.put_nowait(WatchEvent(event.kind, event.path.parent))
            return

        if event.kind is WatchEventKind.DIR_REMOVED:
            for folder in [f for f in self._pending if f == event.path or is_within(event.path, f)]:
                self._pending.pop(folder).cancel()

        self._queue.put_nowait(event)

        if event.kind is WatchEventKind.DIR_ADDED:
            self._schedule_recheck(event.path)

    def _fire_debounced(self, folder: Path) -> None:
        self._pending.pop(folder, None)
        if self._queue is not None:
            self._queue.put_nowait(WatchEvent(WatchEventKind.DESCRIPTOR_ADDED, folder))

    def _schedule_recheck(self, folder: Path) -> None:
        handle: Optional[asyncio.TimerHandle] = None

        def fire() -> None:
            self._rechecks.discard(handle)
            if self._queue is not None:
                self._queue.put_nowait(WatchEvent(WatchEventKind.DIR_RECHECK, folder))

        handle = self._loop.call_later(self.recheck_delay, fire)
        self._rechecks.add(handle)

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await self._handle(event)
            except MovieshelfError as e:
                logger.warning(f"Failed to handle {event.kind.value} for {event.path}: {e}")
            except Exception as e:
                logger.error(f"Unexpected error handling {event.kind.value} for {event.path}: {e}", exc_info=True)
            finally:
                queue.task_done()

    async def _handle(self, event: WatchEvent) -> None:
        kind = event.kind
        if kind is WatchEventKind.DIR_ADDED or kind is WatchEventKind.DIR_RECHECK:
            await self._handle_dir_added(event.path)
        elif kind is WatchEventKind.DIR_REMOVED:
            await self._handle_dir_removed(event.path, include_descendants=True)
        elif kind is WatchEventKind.DESCRIPTOR_REMOVED:
            await self._handle_descriptor_removed(event.path)
        else:
            # Debounced descriptor events carry the folder
            await self._handle_descriptor(event.path)

    def _key(self, folder: Path) -> FolderKey:
        return FolderKey.of(self.root_index, relative_to_root(self.root, folder))

    def _emit(self, change: ChangeType, path: Path) -> None:
        notify(self.change_callback, ChangeEvent(change, str(path)))

    async def _apply(self, folder: Path) -> bool:
        """Index one movie folder; returns True if a new movie was created."""
        result = await self.indexer.apply_descriptor_to_item(self.root_index, self.root, folder)
        return result.was_created

    async def _handle_dir_added(self, folder: Path) -> None:
        if not await asyncio.to_thread(folder.is_dir):
            return

        if await asyncio.to_thread(is_movie_folder, folder):
            created = await self._apply(folder)
            self._emit(ChangeType.MOVIE_ADDED if created else ChangeType.MOVIE_UPDATED, folder)
            return

        # Container folder: index each immediate child that is a movie folder
        indexed = 0
        for child in await asyncio.to_thread(list_child_folders, folder):
            if not await asyncio.to_thread(is_movie_folder, child):
                continue
            try:
                await self._apply(child)
                indexed += 1
            except MovieshelfError as e:
                logger.warning(f"Failed to index {child}: {e}")
        if indexed:
            self._emit(ChangeType.ACTOR_ADDED, folder)

    async def _handle_dir_removed(self, folder: Path, include_descendants: bool) -> None:
        removed = await self.indexer.remove_folder(self._key(folder), include_descendants)
        logger.info(f"Folder removed: {folder} ({removed} movie(s) deleted)")
        self._emit(ChangeType.FOLDER_DELETED, folder)

    async def _handle_descriptor(self, folder: Path) -> None:
        if not await asyncio.to_thread(is_movie_folder, folder):
            logger.debug(f"No descriptor left in {folder}, skipping")
            return
        created = await self._apply(folder)
        self._emit(ChangeType.MOVIE_ADDED if created else ChangeType.MOVIE_UPDATED, folder)

    async def _handle_descriptor_removed(self, nfo_path: Path) -> None:
        folder = nfo_path.parent
        if await asyncio.to_thread(is_movie_folder, folder):
            # Another descriptor still describes the folder
            await self._handle_descriptor(folder)
            return
        await self._handle_dir_removed(folder, include_descendants=False)

    # ------------------------------------------------------------------
    # Temporary watch
    # ------------------------------------------------------------------

    async def watch_folder_temporarily(
        self,
        folder: Path | str,
        timeout_ms: int = DEFAULT_TEMP_WATCH_TIMEOUT_MS,
    ) -> bool:
        """
        Watch one folder's descriptors for a short time.

        Used right after the application itself rewrote a descriptor, so a
        follow-up edit by an external tool is picked up even when the root is
        not being watched. The watch ends after ``timeout_ms`` regardless of
        events.

        Returns:
            bool: True if the temporary watch was started
        """
        folder = Path(folder)
        if not is_within(self.root, folder) or not folder.is_dir():
            logger.warning(f"Temporary watch skipped, not a folder under {self.root}: {folder}")
            return False

        self._ensure_consumer()
        self._end_temp_watch(folder)

        observer = self.observer_factory()
        handler = DescriptorEventHandler(folder, self.post_event, max_depth=0)
        try:
            observer.schedule(handler, str(folder), recursive=False)
            await asyncio.to_thread(observer.start)
        except OSError as e:
            logger.error(f"Failed to start temporary watch on {folder}: {e}")
            return False

        handle = self._loop.call_later(timeout_ms / 1000.0, self._end_temp_watch, folder)
        self._temp_watches[folder] = (observer, handle)
        logger.debug(f"Temporary watch on {folder} for {timeout_ms} ms")
        return True

    def _end_temp_watch(self, folder: Path) -> None:
        entry = self._temp_watches.pop(folder, None)
        if entry is None:
            return
        observer, handle = entry
        handle.cancel()
        observer.stop()
        # Join off the loop thread
        join = self._loop.create_task(asyncio.to_thread(observer.join, 5))
        self._joins.add(join)
        join.add_done_callback(self._joins.discard)
        logger.debug(f"Temporary watch on {folder} closed")

    @property
    def temporary_watches(self) -> Set[Path]:
        return set(self._temp_watches)
