"""
Progress and change notifications emitted by the sync core.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ScanPhase(str, Enum):
    SCAN_DISK = "scan_disk"
    SCAN_DB = "scan_db"
    REMOVE = "remove"
    ADD = "add"
    DONE = "done"


class ChangeType(str, Enum):
    MOVIE_ADDED = "movie_added"
    MOVIE_UPDATED = "movie_updated"
    FOLDER_DELETED = "folder_deleted"
    ACTOR_ADDED = "actor_added"
    STARTUP_SYNC_DONE = "startup_sync_done"


@dataclass
class ScanProgress:
    """Progress information for a reconcile or rebuild pass."""
    phase: ScanPhase
    current: int = 0
    total: int = 0
    message: str = ""

    @property
    def progress_percent(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.current / self.total) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "current": self.current,
            "total": self.total,
            "message": self.message,
        }


@dataclass
class ChangeEvent:
    """A catalog change caused by a filesystem event or a sync pass."""
    type: ChangeType
    path: str
    added: int = 0
    removed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value, "path": self.path}
        if self.type is ChangeType.STARTUP_SYNC_DONE:
            data.update(added=self.added, removed=self.removed)
        return data


ProgressCallback = Callable[[ScanProgress], None]
ChangeCallback = Callable[[ChangeEvent], None]


def notify(callback: Optional[Callable[[Any], None]], payload: Any) -> None:
    """Invoke an optional sink; a failing sink never breaks the caller."""
    if callback is None:
        return
    try:
        callback(payload)
    except Exception as e:
        logger.error(f"Notification callback failed: {e}", exc_info=True)
