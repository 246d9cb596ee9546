from __future__ import annotations

import os

from movieshelf.domain.models import FolderKey, folder_path_variants, normalize_folder_path
from movieshelf.infrastructure.file_system import (
    absolute_from_root,
    find_companion_assets,
    find_images,
    get_nfo_files,
    is_hidden_path,
    is_movie_folder,
    list_child_folders,
    relative_depth,
    relative_to_root,
    resolve_root_index,
)


def _touch(path, data=b""):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def test_movie_folder_needs_direct_descriptor(tmp_path):
    movie = tmp_path / "Actor" / "Movie"
    _touch(movie / "movie.nfo")

    assert is_movie_folder(movie)
    assert not is_movie_folder(tmp_path / "Actor")
    assert not is_movie_folder(tmp_path / "missing")


def test_nfo_files_sorted_and_case_insensitive(tmp_path):
    _touch(tmp_path / "b.NFO")
    _touch(tmp_path / "a.nfo")
    _touch(tmp_path / "notes.txt")

    assert [p.name for p in get_nfo_files(tmp_path)] == ["a.nfo", "b.NFO"]


def test_hidden_descriptors_are_ignored(tmp_path):
    _touch(tmp_path / "._movie.nfo", b"\x00\x05\x16\x07\x00\x02\x00\x00Mac OS X")
    _touch(tmp_path / "movie.nfo")
    only_hidden = _touch(tmp_path / "Other" / "._movie.nfo", b"\x00\x05\x16\x07")

    assert [p.name for p in get_nfo_files(tmp_path)] == ["movie.nfo"]
    assert not is_movie_folder(only_hidden.parent)


def test_image_suffix_outranks_keyword():
    names = ["poster.jpg", "abc-123-ps.jpg", "fanart.png", "abc-123-pl.jpg", "cover.gif"]

    poster, fanart = find_images("/movies/x", names)

    assert poster.name == "abc-123-ps.jpg"
    assert fanart.name == "abc-123-pl.jpg"


def test_image_keyword_used_without_suffix_match():
    poster, fanart = find_images("/movies/x", ["my-poster.webp", "my-fanart.jpeg", "thumb.jpg"])

    assert poster.name == "my-poster.webp"
    assert fanart.name == "my-fanart.jpeg"


def test_no_images():
    assert find_images("/movies/x", ["movie.nfo", "video.mkv"]) == (None, None)


def test_companion_assets_and_video(tmp_path):
    _touch(tmp_path / "movie.nfo")
    _touch(tmp_path / "ABC-1-ps.jpg")
    _touch(tmp_path / "ABC-1.mkv", b"\x00")

    assets = find_companion_assets(tmp_path)

    assert assets.poster == tmp_path / "ABC-1-ps.jpg"
    assert assets.fanart is None
    assert assets.video == tmp_path / "ABC-1.mkv"
    assert assets.playable


def test_folder_without_video_is_not_playable(tmp_path):
    _touch(tmp_path / "movie.nfo")
    _touch(tmp_path / "sample.txt")

    assert not find_companion_assets(tmp_path).playable


def test_child_folders_skip_hidden(tmp_path):
    (tmp_path / "B").mkdir()
    (tmp_path / "A").mkdir()
    (tmp_path / ".cache").mkdir()
    (tmp_path / "@eaDir").mkdir()
    _touch(tmp_path / "file.nfo")

    assert [p.name for p in list_child_folders(tmp_path)] == ["A", "B"]


def test_relative_paths_use_forward_slashes(tmp_path):
    folder = tmp_path / "Actor" / "Movie"

    assert relative_to_root(tmp_path, folder) == "Actor/Movie"
    assert relative_to_root(tmp_path, tmp_path) == ""
    assert absolute_from_root(tmp_path, "Actor\\Movie") == folder
    assert absolute_from_root(tmp_path, None) is None


def test_separator_forms_give_same_key():
    assert normalize_folder_path("A\\B") == "A/B"
    assert normalize_folder_path("./A//B/") == "A/B"
    assert FolderKey.of(0, "A\\B") == FolderKey.of(0, "A/B")
    assert folder_path_variants("A/B") == {"A/B", "A\\B"}


def test_deepest_root_wins(tmp_path):
    outer = tmp_path / "media"
    inner = outer / "movies"
    roots = [str(outer), str(inner), str(tmp_path / "other")]

    assert resolve_root_index(roots, inner / "X" / "Y") == 1
    assert resolve_root_index(roots, outer / "Music") == 0
    assert resolve_root_index(roots, tmp_path / "elsewhere") is None


def test_hidden_and_depth(tmp_path):
    assert is_hidden_path(tmp_path, tmp_path / "A" / ".trash" / "B")
    assert not is_hidden_path(tmp_path, tmp_path / "A" / "B")
    assert relative_depth(tmp_path, tmp_path) == 0
    assert relative_depth(tmp_path, tmp_path / "A" / "B" / "movie.nfo") == 3
    assert relative_depth(tmp_path, os.path.dirname(str(tmp_path))) == 0
