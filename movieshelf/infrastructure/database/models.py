"""
SQLAlchemy Database Models

Defines the database models for Movie and its association entities
(Studio, Director, Genre, Actor).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean,
    ForeignKey, Table, Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# Association table for many-to-many relationship between movies and genres
movie_genres = Table(
    'movie_genres',
    Base.metadata,
    Column('movie_id', Integer, ForeignKey('movies.id', ondelete='CASCADE'), primary_key=True),
    Column('genre_id', Integer, ForeignKey('genres.id', ondelete='CASCADE'), primary_key=True),
    Index('idx_movie_genres_genre', 'genre_id'),
)

# Association table for many-to-many relationship between movies and actors
movie_actors = Table(
    'movie_actors',
    Base.metadata,
    Column('movie_id', Integer, ForeignKey('movies.id', ondelete='CASCADE'), primary_key=True),
    Column('actor_id', Integer, ForeignKey('actors.id', ondelete='CASCADE'), primary_key=True),
    Index('idx_movie_actors_actor', 'actor_id'),
)


class Movie(Base):
    """
    Represents one movie folder in the library.

    Identified by its natural ``code``; every path is relative to the data
    root at ``data_path_index`` and uses forward slashes.
    """
    __tablename__ = 'movies'

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Descriptor fields
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    code: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    runtime: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    premiered: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    director_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey('directors.id', ondelete='SET NULL'), nullable=True
    )
    studio_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey('studios.id', ondelete='SET NULL'), nullable=True
    )

    # Root-relative paths
    nfo_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    folder_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    poster_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    fanart_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    video_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    playable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    data_path_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    folder_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    director: Mapped[Optional["Director"]] = relationship("Director", back_populates="movies")
    studio: Mapped[Optional["Studio"]] = relationship("Studio", back_populates="movies")
    genres: Mapped[List["Genre"]] = relationship(
        "Genre", secondary=movie_genres, back_populates="movies"
    )
    actors: Mapped[List["Actor"]] = relationship(
        "Actor", secondary=movie_actors, back_populates="movies"
    )

    __table_args__ = (
        Index('idx_movies_title', 'title'),
        Index('idx_movies_premiered', 'premiered'),
        Index('idx_movies_playable', 'playable'),
        Index('idx_movies_folder', 'data_path_index', 'folder_path'),
        Index('idx_movies_folder_updated_at', 'folder_updated_at'),
    )

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, code='{self.code}')>"


class Studio(Base):
    """Production entity, deduplicated by name."""
    __tablename__ = 'studios'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)

    movies: Mapped[List["Movie"]] = relationship("Movie", back_populates="studio")

    def __repr__(self) -> str:
        return f"<Studio(id={self.id}, name='{self.name}')>"


class Director(Base):
    """Director, deduplicated by name."""
    __tablename__ = 'directors'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)

    movies: Mapped[List["Movie"]] = relationship("Movie", back_populates="director")

    def __repr__(self) -> str:
        return f"<Director(id={self.id}, name='{self.name}')>"


class Genre(Base):
    """Free-text tag attached to movies."""
    __tablename__ = 'genres'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)

    movies: Mapped[List["Movie"]] = relationship(
        "Movie", secondary=movie_genres, back_populates="genres"
    )

    def __repr__(self) -> str:
        return f"<Genre(id={self.id}, name='{self.name}')>"


class Actor(Base):
    """Cast member as listed in descriptor files."""
    __tablename__ = 'actors'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)

    movies: Mapped[List["Movie"]] = relationship(
        "Movie", secondary=movie_actors, back_populates="actors"
    )

    def __repr__(self) -> str:
        return f"<Actor(id={self.id}, name='{self.name}')>"
