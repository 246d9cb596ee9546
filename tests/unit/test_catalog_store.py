from __future__ import annotations

import pytest

from movieshelf.domain.models import FolderKey, MovieMetadata, MovieRecord
from movieshelf.infrastructure.database import Actor, Genre, Movie, movie_actors


def _record(code, folder, *, root_index=0, video=False, **fields):
    metadata = MovieMetadata(code=code, title=fields.pop("title", f"Title {code}"), **fields)
    return MovieRecord(
        metadata=metadata,
        root_index=root_index,
        folder_path=folder,
        nfo_path=f"{folder}/movie.nfo",
        video_path=f"{folder}/{code}.mp4" if video else None,
    )


def test_create_then_update_same_folder(store):
    first = store.create_or_update(_record("A-1", "Actor/A1", actors=["Alice"], genres=["Drama"]))
    second = store.create_or_update(_record("A-1", "Actor/A1", title="Renamed", actors=["Bob"]))

    assert first.was_created
    assert not second.was_created
    assert second.movie_id == first.movie_id
    assert store.count() == 1

    stored = store.get_record("A-1")
    assert stored.metadata.title == "Renamed"
    assert stored.metadata.actors == ["Bob"]
    assert stored.metadata.genres == []


def test_create_is_idempotent(store):
    record = _record("IDEM-1", "X", actors=["Alice", "Alice"], genres=["Drama"])
    store.create_or_update(record)
    store.create_or_update(record)

    assert store.count() == 1
    assert store.get_record("IDEM-1").metadata.actors == ["Alice"]


def test_director_and_studio_links(store):
    store.create_or_update(_record("D-1", "D1", director="Jane", studio="----"))

    stored = store.get_record("D-1")
    assert stored.metadata.director == "Jane"
    assert stored.metadata.studio is None


def test_playable_follows_video(store, db_manager):
    store.create_or_update(_record("P-1", "P1", video=True))
    store.create_or_update(_record("P-2", "P2"))

    with db_manager.session_scope() as session:
        playable = {m.code: m.playable for m in session.query(Movie).all()}
    assert playable == {"P-1": True, "P-2": False}


def test_move_updates_row_in_place(store):
    created = store.create_or_update(_record("MV-1", "Old/Place"))
    moved = store.create_or_update(_record("MV-1", "New/Place"))

    assert not moved.was_created
    assert not moved.conflict
    assert moved.movie_id == created.movie_id
    assert moved.previous_folder == "Old/Place"
    assert [key for key, _ in store.list_folder_keys()] == [FolderKey(0, "New/Place")]


def test_duplicate_code_in_live_folder_is_conflict(store):
    store.create_or_update(_record("DUP-1", "First"))
    live = {FolderKey(0, "First"), FolderKey(0, "Second")}

    result = store.create_or_update(_record("DUP-1", "Second", title="Other"), live_keys=live)

    assert result.conflict
    assert not result.was_created
    assert result.previous_folder == "First"
    stored = store.get_record("DUP-1")
    assert stored.folder_path == "First"
    assert stored.metadata.title == "Title DUP-1"


def test_changed_code_replaces_stale_row(store):
    store.create_or_update(_record("OLD-1", "Same"))
    store.create_or_update(_record("NEW-1", "Same"))

    assert store.get_record("OLD-1") is None
    assert store.get_record("NEW-1") is not None
    assert store.count() == 1


def test_delete_by_folder_key_removes_join_rows(store, db_manager):
    store.create_or_update(_record("DEL-1", "Gone", actors=["Alice"], genres=["Drama"]))

    removed = store.delete_by_folder_key(FolderKey(0, "Gone"))

    assert removed == 1
    assert store.count() == 0
    with db_manager.session_scope() as session:
        assert session.query(movie_actors).count() == 0
        # Named entities are kept
        assert session.query(Actor).count() == 1
        assert session.query(Genre).count() == 1


def test_delete_matches_backslash_rows(store, db_manager):
    store.create_or_update(_record("WIN-1", "Actor/Movie"))
    with db_manager.session_scope() as session:
        session.query(Movie).filter_by(code="WIN-1").one().folder_path = "Actor\\Movie"

    assert store.delete_by_folder_key(FolderKey.of(0, "Actor/Movie")) == 1
    assert store.count() == 0


def test_delete_respects_root_index(store):
    store.create_or_update(_record("R0-1", "Same/Path", root_index=0))
    store.create_or_update(_record("R1-1", "Same/Path", root_index=1))

    assert store.delete_by_folder_key(FolderKey(1, "Same/Path")) == 1
    assert store.get_record("R0-1") is not None


def test_delete_with_descendants(store):
    store.create_or_update(_record("C-1", "Actor/One"))
    store.create_or_update(_record("C-2", "Actor/Two"))
    store.create_or_update(_record("C-3", "Actor2/Three"))
    store.create_or_update(_record("C-4", "Actor_x/Four"))

    assert store.delete_by_folder_key(FolderKey(0, "Actor")) == 0
    assert store.delete_by_folder_key(FolderKey(0, "Actor"), include_descendants=True) == 2
    assert sorted(code for _, code in store.list_folder_keys()) == ["C-3", "C-4"]


def test_clear(store):
    store.create_or_update(_record("CL-1", "A", actors=["Alice"]))
    store.create_or_update(_record("CL-2", "B", genres=["Drama"]))

    assert store.clear() == 2
    assert store.count() == 0


def test_update_metadata(store):
    store.create_or_update(_record(
        "ED-1", "Ed", director="Jane", studio="Acme", runtime=100,
        premiered="2020-01-01", actors=["Alice"], genres=["Drama"],
    ))

    updated = store.update_metadata("ED-1", {
        "title": "",
        "runtime": "95",
        "director": "----",
        "studio": "New Studio",
        "actors": [{"name": "Bob"}, "Carol"],
        "code": "HACKED",
    })

    assert updated.code == "ED-1"
    assert updated.metadata.title == "Title ED-1"
    assert updated.metadata.runtime == 95
    assert updated.metadata.director is None
    assert updated.metadata.studio == "New Studio"
    assert updated.metadata.actors == ["Bob", "Carol"]
    assert updated.metadata.genres == ["Drama"]
    assert updated.metadata.premiered == "2020-01-01"
    assert store.get_record("HACKED") is None


def test_update_unknown_movie(store):
    assert store.update_metadata("NOPE", {"title": "x"}) is None


@pytest.mark.parametrize("value, expected", [("2021-12-31", "2021-12-31"), ("31/12/2021", None), ("", None)])
def test_premiered_parsing(store, value, expected):
    store.create_or_update(_record("PR-1", "Pr", premiered=value))

    assert store.get_record("PR-1").metadata.premiered == expected
