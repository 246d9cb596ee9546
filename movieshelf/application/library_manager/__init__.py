"""
Library Manager Module

Provides descriptor parsing, library scanning, reconciliation, live
watching and the library service tying them together.
"""

from .events import (
    ChangeEvent,
    ChangeType,
    ScanPhase,
    ScanProgress,
)

from .metadata_extractor import (
    parse_nfo_file,
    read_nfo_tag,
    save_nfo,
    update_nfo_partial,
    write_nfo_file,
)

from .scanner import (
    DiscoveredFolder,
    DiskSnapshot,
    LibraryScanner,
)

from .indexer import FolderIndexer, build_record, read_descriptor
from .reconciler import LibraryReconciler
from .file_watcher import WatchEngine, WatchEvent, WatchEventKind, WatchState
from .library_service import LibraryService

__all__ = [
    # Events
    "ChangeEvent",
    "ChangeType",
    "ScanPhase",
    "ScanProgress",
    # Metadata
    "parse_nfo_file",
    "read_nfo_tag",
    "save_nfo",
    "update_nfo_partial",
    "write_nfo_file",
    # Scanner
    "DiscoveredFolder",
    "DiskSnapshot",
    "LibraryScanner",
    # Sync
    "FolderIndexer",
    "build_record",
    "read_descriptor",
    "LibraryReconciler",
    "WatchEngine",
    "WatchEvent",
    "WatchEventKind",
    "WatchState",
    "LibraryService",
]
