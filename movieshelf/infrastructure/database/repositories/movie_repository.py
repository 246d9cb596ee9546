"""
Movie Repository

Data access functions for movies and their association entities. Every
function takes an open ``Session`` and runs inside the caller's transaction;
none of them commit.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Set, Type, TypeVar

from sqlalchemy import delete, or_
from sqlalchemy.orm import Session

from movieshelf.domain.models import FolderKey, MovieRecord, folder_path_variants, normalize_folder_path

from ..models import Actor, Director, Genre, Movie, Studio, movie_actors, movie_genres

logger = logging.getLogger(__name__)

NamedEntity = TypeVar("NamedEntity", Studio, Director, Genre, Actor)


def find_movie_by_code(session: Session, code: str) -> Optional[Movie]:
    """Get a movie by its natural code."""
    return session.query(Movie).filter_by(code=code).first()


def find_movies_by_folder_key(session: Session, key: FolderKey) -> List[Movie]:
    """
    Get the movies stored for a folder.

    Matches the canonical forward-slash path as well as the raw and
    backslash forms older rows may carry.
    """
    variants = folder_path_variants(key.folder_path)
    return (
        session.query(Movie)
        .filter(Movie.data_path_index == key.root_index)
        .filter(Movie.folder_path.in_(variants))
        .all()
    )


def list_folder_keys(session: Session) -> List[tuple[FolderKey, str]]:
    """Every stored movie as ``(FolderKey, code)``."""
    rows = session.query(Movie.data_path_index, Movie.folder_path, Movie.code).all()
    return [
        (FolderKey.of(root_index or 0, folder_path or ""), code)
        for root_index, folder_path, code in rows
    ]


def count_movies(session: Session) -> int:
    return session.query(Movie).count()


def _find_or_create(session: Session, model: Type[NamedEntity], name: str) -> NamedEntity:
    instance = session.query(model).filter_by(name=name).first()
    if instance is None:
        instance = model(name=name)
        session.add(instance)
        session.flush()
    return instance


def find_or_create_studio(session: Session, name: str) -> Studio:
    return _find_or_create(session, Studio, name)


def find_or_create_director(session: Session, name: str) -> Director:
    return _find_or_create(session, Director, name)


def find_or_create_genre(session: Session, name: str) -> Genre:
    return _find_or_create(session, Genre, name)


def find_or_create_actor(session: Session, name: str) -> Actor:
    return _find_or_create(session, Actor, name)


def _unique_names(names: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    result: List[str] = []
    for name in names:
        cleaned = (name or "").strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


def parse_premiered(value: Optional[str]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` release date; anything else becomes None."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        logger.debug(f"Unrecognized premiered date: {value!r}")
        return None


def upsert_movie(session: Session, record: MovieRecord, movie: Optional[Movie] = None) -> Movie:
    """
    Write a record's scalar columns and director/studio links.

    Args:
        session: Open session
        record: Values to write
        movie: Existing row to update; a new row is added when None

    Returns:
        The created or updated Movie (flushed, so ``id`` is set)
    """
    meta = record.metadata
    if movie is None:
        movie = Movie(code=meta.code)
        session.add(movie)

    movie.title = meta.title or ""
    movie.runtime = meta.runtime
    movie.premiered = parse_premiered(meta.premiered)
    movie.nfo_path = normalize_folder_path(record.nfo_path)
    movie.folder_path = normalize_folder_path(record.folder_path)
    movie.poster_path = normalize_folder_path(record.poster_path) if record.poster_path else None
    movie.fanart_path = normalize_folder_path(record.fanart_path) if record.fanart_path else None
    movie.video_path = normalize_folder_path(record.video_path) if record.video_path else None
    movie.playable = record.playable
    movie.data_path_index = record.root_index
    movie.folder_updated_at = record.folder_updated_at

    director_name = meta.director_name
    movie.director = find_or_create_director(session, director_name) if director_name else None
    studio_name = meta.studio_name
    movie.studio = find_or_create_studio(session, studio_name) if studio_name else None

    session.flush()
    return movie


def set_associations(
    session: Session,
    movie: Movie,
    actors: Iterable[str],
    genres: Iterable[str],
) -> None:
    """Replace a movie's actor and genre links (clear, then re-add)."""
    movie.actors = [find_or_create_actor(session, name) for name in _unique_names(actors)]
    movie.genres = [find_or_create_genre(session, name) for name in _unique_names(genres)]
    session.flush()


def delete_movie(session: Session, movie: Movie) -> None:
    """Delete a movie together with its join rows."""
    movie.actors = []
    movie.genres = []
    session.flush()
    session.delete(movie)
    session.flush()


def delete_all_movies(session: Session) -> int:
    """Delete every movie and join row; returns the number of movies removed."""
    session.execute(delete(movie_actors))
    session.execute(delete(movie_genres))
    count = session.query(Movie).delete(synchronize_session=False)
    session.flush()
    return count


def find_movies_under_folder(session: Session, key: FolderKey) -> List[Movie]:
    """Movies stored at or below a folder (used when a container disappears)."""
    canonical = key.folder_path
    if not canonical:
        return session.query(Movie).filter(Movie.data_path_index == key.root_index).all()

    conditions = []
    for variant in folder_path_variants(canonical):
        conditions.append(Movie.folder_path == variant)
        for separator in ("/", "\\"):
            conditions.append(Movie.folder_path.startswith(f"{variant}{separator}", autoescape=True))
    return (
        session.query(Movie)
        .filter(Movie.data_path_index == key.root_index)
        .filter(or_(*conditions))
        .all()
    )
