"""
Metadata Domain Model

Represents movie metadata extracted from an NFO descriptor file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Written into <director>/<studio> to mean "explicitly empty"
EMPTY_SENTINEL = "----"


def is_blank_name(value: Optional[str]) -> bool:
    """True for a missing, empty or sentinel director/studio name."""
    if value is None:
        return True
    stripped = value.strip()
    return stripped == "" or stripped == EMPTY_SENTINEL


@dataclass
class MovieMetadata:
    """
    Normalized record parsed from a descriptor file.

    ``director`` and ``studio`` distinguish an absent element (``None``) from
    an element holding the empty sentinel (``""``).
    """

    title: str = ""
    code: str = ""
    runtime: Optional[int] = None  # minutes
    premiered: Optional[str] = None  # YYYY-MM-DD as written in the descriptor
    director: Optional[str] = None
    studio: Optional[str] = None
    actors: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)

    @property
    def director_name(self) -> Optional[str]:
        return None if is_blank_name(self.director) else self.director.strip()

    @property
    def studio_name(self) -> Optional[str]:
        return None if is_blank_name(self.studio) else self.studio.strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "code": self.code,
            "runtime": self.runtime,
            "premiered": self.premiered,
            "director": self.director,
            "studio": self.studio,
            "actors": self.actors.copy(),
            "genres": self.genres.copy(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MovieMetadata:
        """Create from dictionary."""
        return cls(
            title=data.get("title") or "",
            code=data.get("code") or "",
            runtime=data.get("runtime"),
            premiered=data.get("premiered"),
            director=data.get("director"),
            studio=data.get("studio"),
            actors=list(data.get("actors") or []),
            genres=list(data.get("genres") or []),
        )
