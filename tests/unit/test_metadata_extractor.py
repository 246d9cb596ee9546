from __future__ import annotations

import pytest

from movieshelf.application.library_manager.metadata_extractor import (
    UTF8_BOM,
    detect_encoding,
    fix_invalid_tag_names,
    fix_unescaped_ampersands,
    metadata_changes,
    parse_nfo_file,
    read_nfo_tag,
    save_nfo,
    update_nfo_partial,
    write_nfo_file,
)
from movieshelf.domain.exceptions import FileAccessError, ParseError
from movieshelf.domain.models import MovieMetadata

from ..conftest import make_nfo


def _write(path, text, encoding="utf-8"):
    path.write_bytes(text.encode(encoding))
    return path


def test_parse_full_descriptor(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", make_nfo(
        "ABC-123",
        "The Title",
        actors=["Alice", "Bob"],
        genres=["Drama", "Comedy"],
        director="Jane Doe",
        studio="Big Studio",
        runtime=118,
        premiered="2020-05-17",
    ))

    metadata = parse_nfo_file(nfo)

    assert metadata.code == "ABC-123"
    assert metadata.title == "The Title"
    assert metadata.runtime == 118
    assert metadata.premiered == "2020-05-17"
    assert metadata.director == "Jane Doe"
    assert metadata.studio == "Big Studio"
    assert metadata.actors == ["Alice", "Bob"]
    assert metadata.genres == ["Drama", "Comedy"]


def test_parse_repairs_raw_ampersand_and_digit_tags(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie>\n"
        "  <title>Fast & Loud</title>\n"
        "  <thumb>http://example.com/img?a=1&b=2</thumb>\n"
        "  <7mmtvid>xyz</7mmtvid>\n"
        "  <uniqueid type=\"num\" default=\"true\">AMP-001</uniqueid>\n"
        "</movie>\n"
    ))

    metadata = parse_nfo_file(nfo)

    assert metadata.code == "AMP-001"
    assert metadata.title == "Fast & Loud"


def test_parse_neutralizes_script_in_text(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie>\n"
        "  <title>Scripted</title>\n"
        "  <plot>Before <script>alert(1)</script> after</plot>\n"
        "  <uniqueid>SCR-001</uniqueid>\n"
        "</movie>\n"
    ))

    assert parse_nfo_file(nfo).code == "SCR-001"
    assert "alert(1)" in read_nfo_tag(nfo, "plot")


def test_single_actor_without_name_child(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie><title>Solo</title><uniqueid>SOLO-1</uniqueid>"
        "<actor>Only One</actor></movie>"
    ))

    assert parse_nfo_file(nfo).actors == ["Only One"]


def test_genres_fall_back_to_tags(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie><uniqueid>TAG-1</uniqueid><tag>Action / Thriller</tag></movie>"
    ))

    assert parse_nfo_file(nfo).genres == ["Action", "Thriller"]


def test_num_used_when_no_uniqueid(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", "<movie><title>T</title><num>NUM-7</num></movie>")

    assert parse_nfo_file(nfo).code == "NUM-7"


def test_default_uniqueid_preferred(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie>"
        "<uniqueid type=\"imdb\">tt0000001</uniqueid>"
        "<uniqueid type=\"num\" default=\"true\">REAL-1</uniqueid>"
        "</movie>"
    ))

    assert parse_nfo_file(nfo).code == "REAL-1"


def test_nested_movie_element(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<root><movie><title>Inner</title><uniqueid>NEST-1</uniqueid></movie></root>"
    ))

    metadata = parse_nfo_file(nfo)

    assert metadata.code == "NEST-1"
    assert metadata.title == "Inner"


def test_releasedate_used_when_no_premiered(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie><uniqueid>REL-1</uniqueid><releasedate>2019-01-02</releasedate></movie>"
    ))

    assert parse_nfo_file(nfo).premiered == "2019-01-02"


def test_sentinel_director_and_studio_read_as_empty(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", make_nfo("SEN-1", director="----", studio="----"))

    metadata = parse_nfo_file(nfo)

    assert metadata.director == ""
    assert metadata.studio == ""
    assert metadata.director_name is None
    assert metadata.studio_name is None


def test_missing_code_is_parse_error(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", "<movie><title>No code</title></movie>")

    with pytest.raises(ParseError):
        parse_nfo_file(nfo)


def test_broken_markup_is_parse_error(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", "<movie><title>Broken</movie>")

    with pytest.raises(ParseError):
        parse_nfo_file(nfo)


def test_missing_file_is_access_error(tmp_path):
    with pytest.raises(FileAccessError):
        parse_nfo_file(tmp_path / "absent.nfo")


def test_bom_prefixed_file(tmp_path):
    nfo = tmp_path / "movie.nfo"
    nfo.write_bytes(b"\xef\xbb\xbf" + make_nfo("BOM-1", "Café au lait").encode("utf-8"))

    metadata = parse_nfo_file(nfo)

    assert metadata.code == "BOM-1"
    assert metadata.title == "Café au lait"


def test_gbk_encoded_file(tmp_path):
    title = "中文标题"
    plot = "这是一部非常好看的电影，讲述了一个关于友情和冒险的故事。" * 12
    content = (
        "<movie>\n"
        f"  <title>{title}</title>\n"
        f"  <plot>{plot}</plot>\n"
        "  <uniqueid>GBK-1</uniqueid>\n"
        "</movie>\n"
    )
    nfo = _write(tmp_path / "movie.nfo", content, encoding="gbk")

    assert detect_encoding(nfo.read_bytes()) == "gb18030"
    metadata = parse_nfo_file(nfo)
    assert metadata.title == title
    assert metadata.code == "GBK-1"


def test_repair_helpers():
    assert fix_unescaped_ampersands("a & b &amp; c &#38; d") == "a &amp; b &amp; c &#38; d"
    assert fix_invalid_tag_names('<7a x="1">t</7a>') == '<n_7a x="1">t</n_7a>'


def test_write_full_descriptor(tmp_path):
    nfo = tmp_path / "out" / "movie.nfo"
    write_nfo_file(nfo, MovieMetadata(
        title="Written",
        code="WR-1",
        runtime=90,
        genres=["Drama"],
        actors=["Alice"],
    ))

    raw = nfo.read_bytes()
    text = raw.decode("utf-8")
    assert raw.startswith(b"\xef\xbb\xbf")
    assert '<uniqueid type="num" default="true">WR-1</uniqueid>' in text
    assert "<director>----</director>" in text
    assert "<studio>----</studio>" in text
    assert "<tag>Drama</tag>" in text
    assert 'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"' in text

    metadata = parse_nfo_file(nfo)
    assert metadata.code == "WR-1"
    assert metadata.runtime == 90
    assert metadata.actors == ["Alice"]
    assert metadata.director == ""


def test_partial_update_keeps_untouched_nodes(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<movie xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">\n'
        "  <!-- scraped by hand -->\n"
        "  <title>Old Title</title>\n"
        "  <plot>A long plot with a link http://x.example/?a=1&b=2</plot>\n"
        '  <uniqueid type="num" default="true">PART-1</uniqueid>\n'
        "  <fileinfo><streamdetails><video><codec>h264</codec></video></streamdetails></fileinfo>\n"
        "  <actor>\n    <name>Old One</name>\n    <role>Lead</role>\n  </actor>\n"
        "  <actor>\n    <name>Old Two</name>\n  </actor>\n"
        "</movie>\n"
    ))

    update_nfo_partial(nfo, {"title": "New Title", "actors": ["New Actor"]})

    text = nfo.read_bytes().decode("utf-8")
    assert text.startswith(UTF8_BOM)
    assert "<!-- scraped by hand -->" in text
    assert '<movie xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">' in text
    assert "<codec>h264</codec>" in text
    assert 'encoding="UTF-8"' in text
    assert "Old One" not in text

    metadata = parse_nfo_file(nfo)
    assert metadata.title == "New Title"
    assert metadata.actors == ["New Actor"]
    assert metadata.code == "PART-1"
    assert read_nfo_tag(nfo, "plot") == "A long plot with a link http://x.example/?a=1&b=2"


def test_partial_update_clears_director_to_sentinel(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", make_nfo("DIR-1", director="Someone", runtime=100))

    update_nfo_partial(nfo, {"director": None, "runtime": None})

    text = nfo.read_bytes().decode("utf-8")
    assert "<director>----</director>" in text
    assert "<runtime>" not in text


def test_save_falls_back_to_full_write(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", "<movie><title>Broken</movie>")
    record = MovieMetadata(title="Fixed", code="FB-1")

    partial = save_nfo(nfo, {"title": "Fixed"}, record)

    assert partial is False
    metadata = parse_nfo_file(nfo)
    assert metadata.code == "FB-1"
    assert metadata.title == "Fixed"


def test_save_uses_partial_update_when_possible(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", make_nfo("OK-1", "Before"))

    assert save_nfo(nfo, {"title": "After"}, MovieMetadata(title="After", code="OK-1")) is True
    assert parse_nfo_file(nfo).title == "After"


def test_read_single_tag(tmp_path):
    nfo = _write(tmp_path / "movie.nfo", (
        "<movie><uniqueid>TAG-9</uniqueid><originalplot>Original text</originalplot></movie>"
    ))
    broken = _write(tmp_path / "broken.nfo", "<movie><originalplot>x</movie>")

    assert read_nfo_tag(nfo, "originalplot") == "Original text"
    assert read_nfo_tag(nfo, "tagline") is None
    assert read_nfo_tag(broken, "originalplot") is None
    assert read_nfo_tag(tmp_path / "missing.nfo", "originalplot") is None


def test_metadata_changes_lists_only_differences():
    before = MovieMetadata(title="A", code="C", actors=["X"])
    after = MovieMetadata(title="B", code="C", actors=["X"], runtime=10)

    assert metadata_changes(before, after) == {"title": "B", "runtime": 10}
