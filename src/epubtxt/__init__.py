from .core import (
    CHAPTER_BREAK,
    Archive,
    ExtractedChapter,
    PackageDocument,
    assemble,
    epub_to_chapters,
    extract_chapters,
    find_package_path,
    open_archive,
    parse_epub,
    parse_package_document,
    resolve_path,
    split_chapters,
)
from .errors import ContentError, EmptyResultError, ExtractionError, StructuralError
from .logging_utils import set_debug_logging
from .markup import html_to_text

__all__ = [
    "CHAPTER_BREAK",
    "Archive",
    "ExtractedChapter",
    "PackageDocument",
    "assemble",
    "epub_to_chapters",
    "extract_chapters",
    "find_package_path",
    "open_archive",
    "parse_epub",
    "parse_package_document",
    "resolve_path",
    "split_chapters",
    "html_to_text",
    "set_debug_logging",
    "ExtractionError",
    "StructuralError",
    "ContentError",
    "EmptyResultError",
]
