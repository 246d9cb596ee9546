"""
Catalog Store

Narrow transactional contract the sync core depends on. Each public method
runs in its own ``session_scope`` transaction and converts SQLAlchemy
failures into ``StoreError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from movieshelf.domain.exceptions import StoreError
from movieshelf.domain.models import (
    EMPTY_SENTINEL,
    FolderKey,
    MovieMetadata,
    MovieRecord,
    UpsertResult,
)

from .connection import DatabaseManager
from .models import Movie
from .repositories import movie_repository as repo

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "runtime", "premiered", "director", "studio", "actors", "genres")


def _movie_key(movie: Movie) -> FolderKey:
    return FolderKey.of(movie.data_path_index or 0, movie.folder_path or "")


def movie_to_record(movie: Movie) -> MovieRecord:
    """Snapshot an ORM row as a detached domain record."""
    metadata = MovieMetadata(
        title=movie.title or "",
        code=movie.code,
        runtime=movie.runtime,
        premiered=movie.premiered.isoformat() if movie.premiered else None,
        director=movie.director.name if movie.director else None,
        studio=movie.studio.name if movie.studio else None,
        actors=[actor.name for actor in movie.actors],
        genres=[genre.name for genre in movie.genres],
    )
    return MovieRecord(
        metadata=metadata,
        root_index=movie.data_path_index or 0,
        folder_path=movie.folder_path or "",
        nfo_path=movie.nfo_path or "",
        poster_path=movie.poster_path,
        fanart_path=movie.fanart_path,
        video_path=movie.video_path,
        folder_updated_at=movie.folder_updated_at,
    )


class CatalogStore:
    """
    Create, update and delete movies keyed by their natural code.

    All operations are idempotent: repeating a call with the same input
    leaves the catalog in the same state.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def create_or_update(
        self,
        record: MovieRecord,
        live_keys: Optional[Set[FolderKey]] = None,
    ) -> UpsertResult:
        """
        Insert a movie or update the row that already owns its code.

        Args:
            record: Metadata and root-relative paths of one item folder
            live_keys: Folder keys currently present on disk. When given and
                the code is owned by another folder that is still present,
                the existing row is kept untouched and a conflict is reported.

        Returns:
            UpsertResult describing what happened

        Raises:
            StoreError: If the transaction fails
        """
        code = record.code
        key = record.key
        try:
            with self.db_manager.session_scope() as session:
                movie = repo.find_movie_by_code(session, code)
                previous_folder: Optional[str] = None

                if movie is not None:
                    existing_key = _movie_key(movie)
                    if existing_key != key:
                        previous_folder = existing_key.folder_path
                        if live_keys is not None and existing_key in live_keys:
                            logger.warning(
                                f"Code {code} already indexed from {existing_key}, "
                                f"keeping it and skipping {key}"
                            )
                            return UpsertResult(
                                movie_id=movie.id,
                                code=code,
                                was_created=False,
                                conflict=True,
                                previous_folder=previous_folder,
                            )

                # A descriptor whose code was edited leaves a stale row behind
                for stale in repo.find_movies_by_folder_key(session, key):
                    if stale.code != code:
                        logger.info(f"Removing stale entry {stale.code} at {key}")
                        repo.delete_movie(session, stale)

                was_created = movie is None
                movie = repo.upsert_movie(session, record, movie)
                repo.set_associations(session, movie, record.metadata.actors, record.metadata.genres)

                if previous_folder is not None:
                    logger.info(f"Code {code} moved from {previous_folder} to {key.folder_path}")
                return UpsertResult(
                    movie_id=movie.id,
                    code=code,
                    was_created=was_created,
                    previous_folder=previous_folder,
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to store {code} from {key}: {e}")
            raise StoreError(f"Failed to store {code}: {e}") from e

    def delete_by_folder_key(self, key: FolderKey, include_descendants: bool = False) -> int:
        """
        Delete the movies stored for a folder, join rows first.

        Args:
            key: Folder whose movies are removed
            include_descendants: Also remove movies stored below the folder

        Returns:
            Number of movies deleted

        Raises:
            StoreError: If the transaction fails
        """
        try:
            with self.db_manager.session_scope() as session:
                if include_descendants:
                    movies = repo.find_movies_under_folder(session, key)
                else:
                    movies = repo.find_movies_by_folder_key(session, key)
                for movie in movies:
                    repo.delete_movie(session, movie)
                if movies:
                    logger.info(f"Removed {len(movies)} movie(s) at {key}")
                return len(movies)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete movies at {key}: {e}")
            raise StoreError(f"Failed to delete movies at {key}: {e}") from e

    def list_folder_keys(self) -> List[tuple[FolderKey, str]]:
        """Every stored movie as ``(FolderKey, code)``."""
        try:
            with self.db_manager.session_scope() as session:
                return repo.list_folder_keys(session)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list stored folders: {e}") from e

    def count(self) -> int:
        try:
            with self.db_manager.session_scope() as session:
                return repo.count_movies(session)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to count movies: {e}") from e

    def clear(self) -> int:
        """Remove every movie; studios, directors, genres and actors are kept."""
        try:
            with self.db_manager.session_scope() as session:
                removed = repo.delete_all_movies(session)
            logger.info(f"Catalog cleared ({removed} movies)")
            return removed
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to clear catalog: {e}") from e

    def get_record(self, code: str) -> Optional[MovieRecord]:
        """Stored state of one movie, or None."""
        try:
            with self.db_manager.session_scope() as session:
                movie = repo.find_movie_by_code(session, code)
                return movie_to_record(movie) if movie is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load {code}: {e}") from e

    def get_record_by_id(self, movie_id: int) -> Optional[MovieRecord]:
        try:
            with self.db_manager.session_scope() as session:
                movie = session.get(Movie, movie_id)
                return movie_to_record(movie) if movie is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load movie {movie_id}: {e}") from e

    def update_metadata(self, code: str, changes: Dict[str, Any]) -> Optional[MovieRecord]:
        """
        Apply a user edit to a stored movie.

        Only keys present in ``changes`` are touched. The code itself is not
        editable. A blank or sentinel director/studio clears the link; actor
        and genre lists replace the existing links.

        Returns:
            The updated record, or None when no movie has this code
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            logger.debug(f"Ignoring non-editable fields for {code}: {sorted(unknown)}")

        try:
            with self.db_manager.session_scope() as session:
                movie = repo.find_movie_by_code(session, code)
                if movie is None:
                    return None

                if changes.get("title"):
                    movie.title = str(changes["title"]).strip()
                if "runtime" in changes:
                    movie.runtime = _coerce_runtime(changes["runtime"])
                if "premiered" in changes:
                    movie.premiered = repo.parse_premiered(changes["premiered"])
                if "director" in changes:
                    name = _clean_name(changes["director"])
                    movie.director = repo.find_or_create_director(session, name) if name else None
                if "studio" in changes:
                    name = _clean_name(changes["studio"])
                    movie.studio = repo.find_or_create_studio(session, name) if name else None

                actors = _name_list(changes["actors"]) if "actors" in changes else [a.name for a in movie.actors]
                genres = _name_list(changes["genres"]) if "genres" in changes else [g.name for g in movie.genres]
                if "actors" in changes or "genres" in changes:
                    repo.set_associations(session, movie, actors, genres)

                session.flush()
                return movie_to_record(movie)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update {code}: {e}")
            raise StoreError(f"Failed to update {code}: {e}") from e


def _clean_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    name = str(value).strip()
    if not name or name == EMPTY_SENTINEL:
        return None
    return name


def _name_list(values: Optional[Iterable[Any]]) -> List[str]:
    """Accept plain names or ``{"name": ...}`` mappings."""
    names: List[str] = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("name")
        if value:
            names.append(str(value))
    return names


def _coerce_runtime(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        runtime = int(value)
    except (TypeError, ValueError):
        return None
    return runtime or None
