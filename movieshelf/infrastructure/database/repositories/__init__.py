"""
Repositories Module

Data access functions operating inside a caller-provided session.
"""

from .movie_repository import (
    count_movies,
    delete_all_movies,
    delete_movie,
    find_movie_by_code,
    find_movies_by_folder_key,
    find_movies_under_folder,
    find_or_create_actor,
    find_or_create_director,
    find_or_create_genre,
    find_or_create_studio,
    list_folder_keys,
    parse_premiered,
    set_associations,
    upsert_movie,
)

__all__ = [
    "count_movies",
    "delete_all_movies",
    "delete_movie",
    "find_movie_by_code",
    "find_movies_by_folder_key",
    "find_movies_under_folder",
    "find_or_create_actor",
    "find_or_create_director",
    "find_or_create_genre",
    "find_or_create_studio",
    "list_folder_keys",
    "parse_premiered",
    "set_associations",
    "upsert_movie",
]
