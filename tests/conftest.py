"""Shared fixtures: temporary data roots, descriptor files and a file-backed catalog."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional
from xml.sax.saxutils import escape

import pytest

from movieshelf.core.config import ConfigManager
from movieshelf.infrastructure.database import CatalogStore, DatabaseManager


class FakeObserver:
    """Stands in for a watchdog observer; events are posted by the test."""

    def __init__(self):
        self.scheduled = []
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.joined = True


def make_nfo(
    code: str,
    title: str = "Some Title",
    *,
    actors: Iterable[str] = (),
    genres: Iterable[str] = (),
    director: Optional[str] = None,
    studio: Optional[str] = None,
    runtime: Optional[int] = None,
    premiered: Optional[str] = None,
) -> str:
    lines = ['<?xml version="1.0" encoding="UTF-8" standalone="yes"?>', "<movie>"]
    lines.append(f"  <title>{escape(title)}</title>")
    if runtime is not None:
        lines.append(f"  <runtime>{runtime}</runtime>")
    lines.append(f'  <uniqueid type="num" default="true">{escape(code)}</uniqueid>')
    for genre in genres:
        lines.append(f"  <genre>{escape(genre)}</genre>")
    if director is not None:
        lines.append(f"  <director>{escape(director)}</director>")
    if premiered is not None:
        lines.append(f"  <premiered>{premiered}</premiered>")
    if studio is not None:
        lines.append(f"  <studio>{escape(studio)}</studio>")
    for actor in actors:
        lines.append(f"  <actor>\n    <name>{escape(actor)}</name>\n  </actor>")
    lines.append("</movie>")
    return "\n".join(lines) + "\n"


@pytest.fixture
def library_root(tmp_path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def write_movie():
    """Create a movie folder holding one descriptor and optionally a video."""

    def _write(folder: Path, code: str, *, video: bool = False, nfo_name: str = "movie.nfo", **fields) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        nfo_path = folder / nfo_name
        nfo_path.write_text(make_nfo(code, **fields), encoding="utf-8")
        if video:
            (folder / f"{code}.mp4").write_bytes(b"\x00" * 16)
        return nfo_path

    return _write


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(tmp_path / "db" / "catalog.db", busy_timeout_ms=5000)
    manager.init_db()
    yield manager
    manager.close()


@pytest.fixture
def store(db_manager) -> CatalogStore:
    return CatalogStore(db_manager)


@pytest.fixture
def config(tmp_path) -> ConfigManager:
    manager = ConfigManager(config_dir=tmp_path / "config")
    manager.load()
    return manager
