"""
Database Infrastructure Module

Provides database models, connection management and the catalog store.
"""

from .models import (
    Base,
    Movie,
    Studio,
    Director,
    Genre,
    Actor,
    movie_genres,
    movie_actors,
)

from .connection import (
    DatabaseManager,
    get_db_manager,
    session_scope,
)

from .catalog_store import (
    CatalogStore,
    movie_to_record,
)

__all__ = [
    # Models
    "Base",
    "Movie",
    "Studio",
    "Director",
    "Genre",
    "Actor",
    "movie_genres",
    "movie_actors",
    # Connection
    "DatabaseManager",
    "get_db_manager",
    "session_scope",
    # Store
    "CatalogStore",
    "movie_to_record",
]
