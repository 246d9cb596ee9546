"""
Sync Result Models

Outcomes reported by the store adapter and the reconciliation engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class UpsertResult:
    """Result of one create-or-update call."""

    movie_id: Optional[int]
    code: str
    was_created: bool = False
    # Code belongs to another folder that still exists; nothing was written
    conflict: bool = False
    previous_folder: Optional[str] = None


@dataclass
class FailedItem:
    """A folder that could not be indexed."""

    path: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "reason": self.reason}


@dataclass
class ReconcileResult:
    """Summary of a reconciliation pass."""

    added_count: int = 0
    removed_count: int = 0
    added_list: List[str] = field(default_factory=list)
    duplicate_list: List[str] = field(default_factory=list)
    removed_list: List[str] = field(default_factory=list)
    failed_list: List[FailedItem] = field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def changed(self) -> bool:
        return bool(self.added_count or self.removed_count)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "added": self.added_count,
            "removed": self.removed_count,
            "addedList": list(self.added_list),
            "duplicateList": list(self.duplicate_list),
            "removedList": list(self.removed_list),
            "failedList": [item.to_dict() for item in self.failed_list],
            "cancelled": self.cancelled,
        }


@dataclass
class RebuildResult:
    """Summary of a full rescan."""

    total: int = 0
    success: int = 0
    failed: int = 0
    failed_list: List[FailedItem] = field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0
