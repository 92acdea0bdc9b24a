from __future__ import annotations

import io
import os
import xml.etree.ElementTree as ET
import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Union
from urllib.parse import unquote

from bs4 import ParserRejectedMarkup  # type: ignore

from .config import effective_workers
from .errors import ContentError, EmptyResultError, StructuralError
from .logging_utils import _debug_log
from .markup import html_to_text

CONTAINER_PATH = "META-INF/container.xml"
CHAPTER_BREAK = "\n\n------------------- CHAPTER BREAK -------------------\n\n"

# Raised by zipfile when an entry's stored data is corrupt.
UNREADABLE_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError)

EpubSource = Union[bytes, bytearray, memoryview, str, "os.PathLike[str]", BinaryIO]


@dataclass
class PackageDocument:
    manifest: dict[str, str]
    spine: list[str]
    directory: str


@dataclass
class ExtractedChapter:
    text: str
    spine_index: int
    idref: str
    source: str


@dataclass
class _SpineEntry:
    spine_index: int
    idref: str
    source: str
    raw: bytes = field(repr=False)


class Archive:
    """Read-only view over the entries of a zip container."""

    def __init__(self, zf: zipfile.ZipFile) -> None:
        self._zf = zf
        self._names = frozenset(zf.namelist())

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __enter__(self) -> Archive:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def read(self, name: str) -> bytes:
        return self._zf.read(name)

    def close(self) -> None:
        self._zf.close()


def open_archive(source: EpubSource) -> Archive:
    if isinstance(source, (bytes, bytearray, memoryview)):
        handle: str | os.PathLike[str] | BinaryIO = io.BytesIO(bytes(source))
    else:
        handle = source
    try:
        zf = zipfile.ZipFile(handle, "r")
    except (zipfile.BadZipFile, EOFError) as exc:
        raise StructuralError("container is not a zip archive", stage="archive") from exc
    return Archive(zf)


def _strip_tag(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _get_attr(elem: ET.Element, name: str) -> str | None:
    for attr, value in elem.attrib.items():
        if _strip_tag(attr) == name:
            return value
    return None


def _find_first(root: ET.Element, name: str) -> ET.Element | None:
    for elem in root.iter():
        if isinstance(elem.tag, str) and _strip_tag(elem.tag) == name:
            return elem
    return None


def _find_all(root: ET.Element, name: str) -> list[ET.Element]:
    return [
        elem
        for elem in root.iter()
        if elem is not root and isinstance(elem.tag, str) and _strip_tag(elem.tag) == name
    ]


def find_package_path(archive: Archive) -> str:
    # META-INF/container.xml -> rootfiles/rootfile@full-path
    if CONTAINER_PATH not in archive:
        raise StructuralError("container missing", stage="container", path=CONTAINER_PATH)
    try:
        raw = archive.read(CONTAINER_PATH)
    except UNREADABLE_ENTRY_ERRORS as exc:
        raise StructuralError("container descriptor unreadable", stage="container", path=CONTAINER_PATH) from exc
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise StructuralError("malformed container XML", stage="container", path=CONTAINER_PATH) from exc
    rootfile = _find_first(root, "rootfile")
    if rootfile is None:
        raise StructuralError("no rootfile", stage="container", path=CONTAINER_PATH)
    full_path = _get_attr(rootfile, "full-path")
    if not full_path:
        raise StructuralError("rootfile missing path", stage="container", path=CONTAINER_PATH)
    return full_path


def package_directory(package_path: str) -> str:
    directory, _, _ = package_path.rpartition("/")
    return directory


def parse_package_document(archive: Archive, package_path: str) -> PackageDocument:
    if package_path not in archive:
        raise StructuralError("package document missing", stage="package", path=package_path)
    try:
        raw = archive.read(package_path)
    except UNREADABLE_ENTRY_ERRORS as exc:
        raise StructuralError("package document unreadable", stage="package", path=package_path) from exc
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise StructuralError("malformed package XML", stage="package", path=package_path) from exc

    manifest_elem = _find_first(root, "manifest")
    if manifest_elem is None:
        raise StructuralError("manifest missing", stage="package", path=package_path)
    # manifest id -> href
    manifest: dict[str, str] = {}
    for item in _find_all(manifest_elem, "item"):
        item_id = _get_attr(item, "id")
        href = _get_attr(item, "href")
        if item_id and href:
            manifest[item_id] = href

    spine_elem = _find_first(root, "spine")
    if spine_elem is None:
        raise StructuralError("spine missing", stage="package", path=package_path)
    spine: list[str] = []
    for itemref in _find_all(spine_elem, "itemref"):
        idref = _get_attr(itemref, "idref")
        if idref:
            spine.append(idref)

    _debug_log(f"{package_path}: {len(manifest)} manifest items, {len(spine)} spine entries")
    return PackageDocument(manifest=manifest, spine=spine, directory=package_directory(package_path))


def resolve_path(base_dir: str, href: str) -> str:
    """
    Resolve ``href`` against ``base_dir`` into an archive-absolute path.

    ``..`` beyond the archive root is dropped rather than rejected, so the
    result never escapes the root.
    """
    if href.startswith("/"):
        stack: list[str] = []
        href = href[1:]
    else:
        stack = [part for part in base_dir.split("/") if part]
    for part in href.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if stack:
                stack.pop()
        else:
            stack.append(part)
    return "/".join(stack)


def locate_entry(archive: Archive, path: str) -> str | None:
    if path in archive:
        return path
    decoded = unquote(path)
    if decoded in archive:
        return decoded
    return None


def _read_spine_entry(archive: Archive, package: PackageDocument, spine_index: int, idref: str) -> _SpineEntry:
    href = package.manifest.get(idref)
    if href is None:
        raise ContentError("idref not in manifest", stage="spine", path=idref)
    resolved = resolve_path(package.directory, href)
    name = locate_entry(archive, resolved)
    if name is None:
        raise ContentError("content document missing", stage="spine", path=resolved)
    try:
        raw = archive.read(name)
    except UNREADABLE_ENTRY_ERRORS as exc:
        raise ContentError("content document unreadable", stage="spine", path=name) from exc
    return _SpineEntry(spine_index=spine_index, idref=idref, source=name, raw=raw)


def _entry_to_chapter(entry: _SpineEntry) -> ExtractedChapter | None:
    try:
        text = html_to_text(entry.raw)
    except ParserRejectedMarkup as exc:
        raise ContentError("content document rejected by parser", stage="markup", path=entry.source) from exc
    if not text:
        _debug_log(f"{entry.source}: no readable text")
        return None
    return ExtractedChapter(text=text, spine_index=entry.spine_index, idref=entry.idref, source=entry.source)


def _safe_entry_to_chapter(entry: _SpineEntry) -> ExtractedChapter | None:
    try:
        return _entry_to_chapter(entry)
    except ContentError as exc:
        _debug_log(f"skipping spine entry {entry.spine_index}: {exc}")
        return None


def extract_chapters(
    archive: Archive,
    package: PackageDocument,
    workers: int | None = 1,
) -> list[ExtractedChapter]:
    """
    Extract readable text for every spine entry, in spine order.

    Entries that cannot be resolved, read or parsed are skipped. Entry bytes
    are read on the calling thread; markup parsing fans out to ``workers``
    threads and results are slotted back by spine index.
    """
    entries: list[_SpineEntry] = []
    for spine_index, idref in enumerate(package.spine):
        try:
            entries.append(_read_spine_entry(archive, package, spine_index, idref))
        except ContentError as exc:
            _debug_log(f"skipping spine entry {spine_index}: {exc}")

    effective_jobs = min(effective_workers(workers), max(1, len(entries)))
    results: list[ExtractedChapter | None] = [None] * len(entries)
    if effective_jobs <= 1:
        for slot, entry in enumerate(entries):
            results[slot] = _safe_entry_to_chapter(entry)
    else:
        with ThreadPoolExecutor(max_workers=effective_jobs, thread_name_prefix="epubtxt") as executor:
            futures = [executor.submit(_safe_entry_to_chapter, entry) for entry in entries]
            for slot, future in enumerate(futures):
                results[slot] = future.result()

    return [chapter for chapter in results if chapter is not None]


def assemble(texts: Iterable[str]) -> str:
    parts = list(texts)
    if not parts:
        raise EmptyResultError(stage="assemble")
    return CHAPTER_BREAK.join(parts)


def split_chapters(document: str) -> list[str]:
    return document.split(CHAPTER_BREAK)


def epub_to_chapters(source: EpubSource, *, workers: int | None = None) -> list[ExtractedChapter]:
    with open_archive(source) as archive:
        package_path = find_package_path(archive)
        package = parse_package_document(archive, package_path)
        return extract_chapters(archive, package, workers=workers)


def parse_epub(source: EpubSource, *, workers: int | None = None) -> str:
    """
    Convert an EPUB container into one reading-order text document.

    Chapters are separated by ``CHAPTER_BREAK``. Raises ``StructuralError``
    for an unusable container and ``EmptyResultError`` when no spine entry
    yields text.
    """
    chapters = epub_to_chapters(source, workers=workers)
    _debug_log(f"assembling {len(chapters)} chapters")
    return assemble(chapter.text for chapter in chapters)
