from __future__ import annotations

import asyncio
import importlib
import shutil

import pytest

from movieshelf.__main__ import run_cli
from movieshelf.application.library_manager import LibraryService, parse_nfo_file, read_nfo_tag
from movieshelf.application.library_manager.events import ChangeType
from movieshelf.domain.exceptions import ConfigError, ScanInProgressError

from ..conftest import FakeObserver


@pytest.fixture
def changes():
    return []


@pytest.fixture
async def service(db_manager, config, changes):
    library = LibraryService(
        db_manager,
        config,
        change_callback=changes.append,
        observer_factory=FakeObserver,
    )
    yield library
    await library.stop()


async def test_two_folder_scenario(service, config, changes, library_root, write_movie):
    write_movie(library_root / "Actor" / "First", "CODE-001")
    write_movie(library_root / "Actor" / "Second", "CODE-002", video=True)
    config.add_data_root(library_root)

    result = await service.start()

    assert result.added_count == 2
    assert result.removed_count == 0
    assert not service.store.get_record("CODE-001").playable
    assert service.store.get_record("CODE-002").playable
    startup = [c for c in changes if c.type is ChangeType.STARTUP_SYNC_DONE]
    assert len(startup) == 1
    assert startup[0].to_dict() == {"type": "startup_sync_done", "path": "", "added": 2, "removed": 0}
    assert [engine.is_watching for engine in service.engines] == [True]

    shutil.rmtree(library_root / "Actor" / "First")
    result = await service.reconcile()

    assert result.removed_count == 1
    assert result.added_count == 0
    assert service.store.get_record("CODE-001") is None
    assert service.store.count() == 1


async def test_unchanged_startup_emits_nothing(service, config, changes, library_root, write_movie):
    write_movie(library_root / "Only", "ONLY-1")
    config.add_data_root(library_root)
    config.set("library.watch_for_changes", False)
    await service.reconcile()

    result = await service.start()

    assert not result.changed
    assert changes == []
    assert service.engines == []


async def test_start_without_roots(service, changes):
    assert await service.start() is None
    assert changes == []
    with pytest.raises(ConfigError):
        await service.reconcile()


async def test_scan_guard(service, config, library_root, write_movie):
    for i in range(5):
        write_movie(library_root / f"M{i}", f"GUARD-{i}")
    config.add_data_root(library_root)

    running = asyncio.create_task(service.reconcile())
    await asyncio.sleep(0)

    assert service.is_scanning
    with pytest.raises(ScanInProgressError):
        await service.reconcile()
    with pytest.raises(ScanInProgressError):
        await service.rebuild()

    result = await running
    assert result.added_count == 5
    assert not service.is_scanning


async def test_update_movie_round_trip(service, config, library_root, write_movie):
    nfo = write_movie(
        library_root / "Edit",
        "EDIT-1",
        title="Before",
        director="Jane",
        actors=["Alice", "Bob"],
        genres=["Drama"],
    )
    config.add_data_root(library_root)
    config.set("library.watch_for_changes", False)
    await service.start()

    record = await service.update_movie("EDIT-1", {
        "title": "After",
        "director": "",
        "actors": ["Carol"],
        "code": "IGNORED",
    })

    assert record.code == "EDIT-1"
    assert record.metadata.title == "After"
    assert record.metadata.director is None
    assert record.metadata.actors == ["Carol"]

    written = parse_nfo_file(nfo)
    assert written.code == "EDIT-1"
    assert written.title == "After"
    assert written.director == ""
    assert written.actors == ["Carol"]
    assert written.genres == ["Drama"]
    assert "<director>----</director>" in nfo.read_text(encoding="utf-8-sig")

    assert nfo.parent in service.engines[0].temporary_watches


async def test_update_unknown_movie(service, config, library_root):
    config.add_data_root(library_root)

    assert await service.update_movie("NOPE-1", {"title": "x"}) is None


async def test_read_descriptor_field(service, config, library_root):
    folder = library_root / "Plot"
    folder.mkdir()
    (folder / "movie.nfo").write_text(
        "<movie><uniqueid>PLOT-1</uniqueid><originalplot>Told in full</originalplot></movie>",
        encoding="utf-8",
    )
    config.add_data_root(library_root)
    await service.reconcile()

    assert await service.read_descriptor_field("PLOT-1", "originalplot") == "Told in full"
    assert await service.read_descriptor_field("PLOT-1", "tagline") is None
    assert await service.read_descriptor_field("MISSING", "originalplot") is None
    assert read_nfo_tag(folder / "movie.nfo", "originalplot") == "Told in full"


async def test_rebuild_through_service(service, config, library_root, write_movie):
    write_movie(library_root / "A", "RS-1")
    write_movie(library_root / "B", "RS-2")
    config.add_data_root(library_root)

    result = await service.rebuild()

    assert result.total == 2
    assert result.success == 2
    assert service.store.count() == 2


def test_cli_version(capsys):
    assert run_cli(["--version"]) == 0
    assert "movieshelf v" in capsys.readouterr().out


def test_cli_manages_roots(monkeypatch, capsys, config, library_root):
    monkeypatch.setattr(importlib.import_module("movieshelf.core.config"), "_config_manager", config)
    monkeypatch.setattr(importlib.import_module("movieshelf.runtime.bootstrap"), "bootstrap", lambda log_level=None: True)

    assert run_cli(["--add-root", str(library_root)]) == 0
    assert run_cli(["--list-roots"]) == 0
    assert f"[0] {library_root}" in capsys.readouterr().out

    assert run_cli(["--remove-root", str(library_root)]) == 0
    assert config.get_data_roots() == []
    assert run_cli(["--remove-root", str(library_root)]) == 1
