"""
Metadata Extractor Module

Reads and writes NFO descriptor files (Kodi-style ``<movie>`` XML).

Descriptors found in the wild are often not well-formed: raw ``&`` in URLs,
pasted ``<script>`` fragments and tag names starting with a digit are
repaired textually before parsing. Writing supports a partial update that
only touches the edited nodes, with full regeneration as fallback.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import chardet

from movieshelf.domain.exceptions import FileAccessError, MovieshelfError, ParseError
from movieshelf.domain.models import EMPTY_SENTINEL, MovieMetadata

logger = logging.getLogger(__name__)

ROOT_TAG = "movie"
UTF8_BOM = "\ufeff"
INDENT = "\n  "
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'

# chardet names whose codec is too narrow for real-world files
_ENCODING_ALIASES = {
    "gb2312": "gb18030",
    "gbk": "gb18030",
    "ascii": "utf-8",
    "iso-8859-1": "cp1252",
}

_RAW_AMPERSAND = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[0-9a-fA-F]+);)", re.IGNORECASE)
_SCRIPT_CLOSE = re.compile(r"</script\s*>", re.IGNORECASE)
_SCRIPT_OPEN = re.compile(r"<script\s*>", re.IGNORECASE)
_SCRIPT_OPEN_ATTRS = re.compile(r"<script\s+", re.IGNORECASE)
_DIGIT_TAG_OPEN = re.compile(r"<(\d[A-Za-z0-9_.-]*)(\s[^<>]*)?>")
_DIGIT_TAG_CLOSE = re.compile(r"</(\d[A-Za-z0-9_.-]*)\s*>")
_PROLOG = re.compile(r"\s*(?:<\?.*?\?>\s*|<!--.*?-->\s*|<!DOCTYPE[^>]*>\s*)*", re.DOTALL)
_DECLARATION_ENCODING = re.compile(r"""encoding\s*=\s*(["'])[^"']*\1""")
_LEADING_INT = re.compile(r"\s*(\d+)")


# ---------------------------------------------------------------------------
# Decoding and repairs
# ---------------------------------------------------------------------------

def detect_encoding(data: bytes) -> str:
    """
    Guess the text encoding of raw descriptor bytes.

    Returns:
        A Python codec name, ``utf-8`` when detection is inconclusive
    """
    if data.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    detected = chardet.detect(data)
    encoding = (detected.get("encoding") or "utf-8").lower()
    return _ENCODING_ALIASES.get(encoding, encoding)


def decode_descriptor(data: bytes) -> str:
    """Decode descriptor bytes and strip a leading BOM."""
    encoding = detect_encoding(data)
    try:
        text = data.decode(encoding)
    except (LookupError, UnicodeDecodeError):
        logger.debug(f"Decoding as {encoding} failed, falling back to utf-8")
        text = data.decode("utf-8", errors="replace")
    return text[1:] if text.startswith(UTF8_BOM) else text


def fix_unescaped_ampersands(content: str) -> str:
    """Escape ``&`` that does not start a valid entity reference."""
    return _RAW_AMPERSAND.sub("&amp;", content)


def fix_script_in_content(content: str) -> str:
    """Neutralize ``<script>`` fragments pasted into element text."""
    content = _SCRIPT_CLOSE.sub("&lt;/script&gt;", content)
    content = _SCRIPT_OPEN.sub("&lt;script&gt;", content)
    return _SCRIPT_OPEN_ATTRS.sub("&lt;script ", content)


def fix_invalid_tag_names(content: str) -> str:
    """Prefix tag names that start with a digit (``<7mmtvid>`` -> ``<n_7mmtvid>``)."""
    content = _DIGIT_TAG_OPEN.sub(lambda m: f"<n_{m.group(1)}{m.group(2) or ''}>", content)
    return _DIGIT_TAG_CLOSE.sub(r"</n_\1>", content)


def repair_markup(content: str) -> str:
    content = fix_unescaped_ampersands(content)
    content = fix_script_in_content(content)
    return fix_invalid_tag_names(content)


def _split_prolog(content: str) -> tuple[str, str]:
    """Split leading declaration/comments/doctype from the document element."""
    match = _PROLOG.match(content)
    end = match.end() if match else 0
    return content[:end], content[end:]


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise FileAccessError(path, f"cannot read descriptor ({e.strerror or e})") from e


def _load_root(path: Path, repair: bool = True) -> ET.Element:
    content = decode_descriptor(_read_bytes(path))
    if repair:
        content = repair_markup(content)
    _, body = _split_prolog(content)
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise ParseError(path, f"malformed markup ({e})") from e


def _movie_element(root: ET.Element) -> ET.Element:
    if root.tag == ROOT_TAG:
        return root
    nested = root.find(ROOT_TAG)
    return nested if nested is not None else root


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def _first_text(movie: ET.Element, *tags: str) -> Optional[str]:
    """Text of the first present element among ``tags``, or None if none exists."""
    for tag in tags:
        element = movie.find(tag)
        if element is not None:
            return _text(element)
    return None


def _parse_code(movie: ET.Element) -> str:
    uniqueids = movie.findall("uniqueid")
    # The default/num identifier wins over other scrapers' ids
    uniqueids.sort(key=lambda el: not (el.get("default") == "true" or el.get("type") == "num"))
    for element in uniqueids + movie.findall("num"):
        code = _text(element)
        if code:
            return code
    return ""


def _parse_actors(movie: ET.Element) -> List[str]:
    actors = []
    for actor in movie.findall("actor"):
        name_element = actor.find("name")
        name = _text(name_element) if name_element is not None else _text(actor)
        if name:
            actors.append(name)
    return actors


def _parse_genres(movie: ET.Element) -> List[str]:
    genres = [_text(el) for el in movie.findall("genre")]
    genres = [g for g in genres if g]
    if genres:
        return genres

    tags: List[str] = []
    for element in movie.findall("tag"):
        tags.extend(part.strip() for part in _text(element).split(" / "))
    return [t for t in tags if t]


def _parse_runtime(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def _parse_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return "" if value == EMPTY_SENTINEL else value


def parse_nfo_file(path: Path | str) -> MovieMetadata:
    """
    Parse a descriptor file into a metadata record.

    Args:
        path: Path to the ``.nfo`` file

    Returns:
        MovieMetadata: Normalized record

    Raises:
        FileAccessError: If the file cannot be read
        ParseError: If the markup is beyond repair or carries no code
    """
    path = Path(path)
    movie = _movie_element(_load_root(path))

    code = _parse_code(movie)
    if not code:
        raise ParseError(path, "descriptor has no uniqueid or num")

    return MovieMetadata(
        title=_first_text(movie, "title") or "",
        code=code,
        runtime=_parse_runtime(_first_text(movie, "runtime")),
        premiered=_first_text(movie, "premiered", "releasedate") or None,
        director=_parse_name(_first_text(movie, "director")),
        studio=_parse_name(_first_text(movie, "studio")),
        actors=_parse_actors(movie),
        genres=_parse_genres(movie),
    )


def read_nfo_tag(path: Path | str, tag: str) -> Optional[str]:
    """
    Read the text of one element of a descriptor (e.g. ``originalplot``).

    Returns:
        The stripped text, or None when the element is absent, empty or the
        file cannot be parsed
    """
    try:
        movie = _movie_element(_load_root(Path(path)))
    except MovieshelfError as e:
        logger.warning(f"Failed to read <{tag}> from {path}: {e}")
        return None
    element = movie.find(tag)
    if element is None:
        return None
    return _text(element) or None


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(UTF8_BOM + content)
    except OSError as e:
        raise FileAccessError(path, f"cannot write descriptor ({e.strerror or e})") from e


def _field(data: Mapping[str, Any], name: str) -> Any:
    if isinstance(data, MovieMetadata):
        return getattr(data, name)
    return data.get(name)


def _names(values: Any) -> List[str]:
    names = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("name")
        if value is not None and str(value).strip():
            names.append(str(value).strip())
    return names


def build_nfo_document(record: MovieMetadata | Mapping[str, Any]) -> str:
    """Render a complete descriptor document (without BOM)."""
    root = ET.Element(ROOT_TAG, {
        "xmlns:xsi": "http://www.w3.org/2001/XMLSchema-instance",
        "xmlns:xsd": "http://www.w3.org/2001/XMLSchema",
    })
    ET.SubElement(root, "title").text = str(_field(record, "title") or "")

    runtime = _field(record, "runtime")
    if runtime not in (None, ""):
        ET.SubElement(root, "runtime").text = str(runtime)

    ET.SubElement(root, "uniqueid", {"type": "num", "default": "true"}).text = str(_field(record, "code") or "")

    genres = _names(_field(record, "genres"))
    for genre in genres:
        ET.SubElement(root, "genre").text = genre
    for genre in genres:
        ET.SubElement(root, "tag").text = genre

    ET.SubElement(root, "director").text = _field(record, "director") or EMPTY_SENTINEL

    premiered = _field(record, "premiered")
    if premiered:
        ET.SubElement(root, "premiered").text = str(premiered)

    ET.SubElement(root, "studio").text = _field(record, "studio") or EMPTY_SENTINEL

    for actor in _names(_field(record, "actors")):
        ET.SubElement(ET.SubElement(root, "actor"), "name").text = actor

    ET.indent(root, space="  ")
    return f"{XML_DECLARATION}\n{ET.tostring(root, encoding='unicode')}\n"


def write_nfo_file(path: Path | str, record: MovieMetadata | Mapping[str, Any]) -> None:
    """
    Write a descriptor from scratch, replacing any existing file.

    Raises:
        FileAccessError: If the file cannot be written
    """
    path = Path(path)
    _write_text(path, build_nfo_document(record))
    logger.info(f"Descriptor written: {path}")


def _append_child(parent: ET.Element, element: ET.Element) -> None:
    if len(parent):
        last = parent[-1]
        element.tail = last.tail or "\n"
        last.tail = INDENT
    else:
        parent.text = INDENT
        element.tail = "\n"
    parent.append(element)


def _insert_child(parent: ET.Element, index: int, element: ET.Element) -> None:
    if index >= len(parent):
        _append_child(parent, element)
        return
    element.tail = INDENT
    parent.insert(index, element)


def _remove_child(parent: ET.Element, element: ET.Element) -> None:
    index = list(parent).index(element)
    if index > 0:
        parent[index - 1].tail = element.tail
    elif len(parent) == 1:
        parent.text = element.tail
    parent.remove(element)


def _set_or_create(movie: ET.Element, tag: str, value: str) -> None:
    element = movie.find(tag)
    if element is None:
        element = ET.Element(tag)
        _append_child(movie, element)
    element.text = value


def _remove_first(movie: ET.Element, tag: str) -> None:
    element = movie.find(tag)
    if element is not None:
        _remove_child(movie, element)


def _replace_group(movie: ET.Element, tag: str, values: List[str]) -> None:
    """Replace every ``<tag>`` child with ``values`` at the first one's position."""
    existing = movie.findall(tag)
    position = list(movie).index(existing[0]) if existing else len(movie)
    for element in existing:
        _remove_child(movie, element)

    for offset, value in enumerate(values):
        element = ET.Element(tag)
        if tag == "actor":
            ET.SubElement(element, "name").text = value
        else:
            element.text = value
        _insert_child(movie, position + offset, element)


def _update_code(movie: ET.Element, code: str) -> None:
    uniqueid = movie.find("uniqueid")
    num = movie.find("num")
    if uniqueid is not None:
        uniqueid.set("type", "num")
        uniqueid.set("default", "true")
        uniqueid.text = code
    if num is not None:
        num.text = code
    if uniqueid is None and num is None:
        element = ET.Element("uniqueid", {"type": "num", "default": "true"})
        element.text = code
        title = movie.find("title")
        position = list(movie).index(title) + 1 if title is not None else len(movie)
        _insert_child(movie, position, element)


def _apply_changes(movie: ET.Element, changes: Mapping[str, Any]) -> None:
    if "title" in changes:
        _set_or_create(movie, "title", str(changes["title"] or ""))

    if "runtime" in changes:
        runtime = changes["runtime"]
        if runtime not in (None, ""):
            _set_or_create(movie, "runtime", str(runtime))
        else:
            _remove_first(movie, "runtime")

    if "code" in changes:
        _update_code(movie, str(changes["code"] or ""))

    if "director" in changes:
        _set_or_create(movie, "director", changes["director"] or EMPTY_SENTINEL)

    if "premiered" in changes:
        premiered = changes["premiered"]
        if premiered:
            _set_or_create(movie, "premiered", str(premiered))
        else:
            _remove_first(movie, "premiered")

    if "studio" in changes:
        _set_or_create(movie, "studio", changes["studio"] or EMPTY_SENTINEL)

    if "actors" in changes:
        _replace_group(movie, "actor", _names(changes["actors"]))

    if "genres" in changes:
        genres = _names(changes["genres"])
        _replace_group(movie, "genre", genres)
        _replace_group(movie, "tag", genres)


def update_nfo_partial(path: Path | str, changes: Mapping[str, Any]) -> None:
    """
    Rewrite only the nodes named in ``changes``.

    Every other node, comment and whitespace run is kept as is. The file is
    written back as UTF-8 with a BOM.

    Args:
        path: Existing descriptor
        changes: Sparse mapping over title, code, runtime, premiered,
            director, studio, actors and genres

    Raises:
        FileAccessError: If the file cannot be read or written
        ParseError: If the file is not a well-formed ``<movie>`` document
    """
    path = Path(path)
    content = decode_descriptor(_read_bytes(path))
    # Escaping repairs only; renaming digit tags would alter untouched nodes
    content = fix_script_in_content(fix_unescaped_ampersands(content))
    prolog, body = _split_prolog(content)

    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        root = ET.fromstring(body, parser=parser)
    except ET.ParseError as e:
        raise ParseError(path, f"malformed markup ({e})") from e
    if root.tag != ROOT_TAG:
        raise ParseError(path, f"root element is <{root.tag}>, not <{ROOT_TAG}>")

    _apply_changes(root, changes)

    serialized = ET.tostring(root, encoding="unicode")
    original_start = re.match(r"<movie\b[^>]*>", body.lstrip())
    serialized_start = re.match(r"<movie\b[^>]*>", serialized)
    if (
        original_start and serialized_start
        and not original_start.group(0).endswith("/>")
        and "xmlns" not in serialized_start.group(0)
    ):
        # Keep namespace declarations ElementTree drops from the root tag
        serialized = original_start.group(0) + serialized[serialized_start.end():]

    prolog = _DECLARATION_ENCODING.sub('encoding="UTF-8"', prolog)
    trailer = "\n" if body.endswith("\n") else ""
    _write_text(path, prolog + serialized + trailer)
    logger.info(f"Descriptor partially updated: {path}")


def save_nfo(
    path: Path | str,
    changes: Mapping[str, Any],
    full_record: MovieMetadata | Mapping[str, Any],
) -> bool:
    """
    Apply an edit to a descriptor, regenerating it if a partial update fails.

    Returns:
        True if the partial update succeeded, False if the file was rewritten

    Raises:
        FileAccessError: If even the full rewrite cannot be written
    """
    try:
        update_nfo_partial(path, changes)
        return True
    except MovieshelfError as e:
        logger.warning(f"Partial descriptor update failed, rewriting {path}: {e}")
    write_nfo_file(path, full_record)
    return False


def metadata_changes(before: MovieMetadata, after: MovieMetadata) -> Dict[str, Any]:
    """Fields of ``after`` that differ from ``before``, as a sparse change mapping."""
    old, new = before.to_dict(), after.to_dict()
    return {key: value for key, value in new.items() if old.get(key) != value}
