from __future__ import annotations

import re
import warnings
from functools import lru_cache

from bs4 import (
    BeautifulSoup,
    FeatureNotFound,
    NavigableString,
    Tag,
    XMLParsedAsHTMLWarning,
)  # type: ignore
from bs4.element import PageElement, PreformattedString  # type: ignore

from .logging_utils import _debug_log

# Lenient HTML tree builders, most browser-like first.
HTML_PARSERS = ("html5lib", "lxml", "html.parser")

# Elements whose subtree never contributes readable text.
SKIP_TAGS = {"script", "style", "svg", "noscript", "meta", "link", "head"}

# Block elements are trimmed and wrapped in newlines.
BLOCK_LEVEL_TAGS = {
    "p",
    "div",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "li",
    "blockquote",
    "section",
    "article",
    "main",
    "header",
    "footer",
}
LINE_BREAK_TAGS = {"br"}
ROW_TAGS = {"tr"}
CELL_TAGS = {"td", "th"}

_INLINE_WS_RE = re.compile(r"[\t\r\n]+")
_TRAILING_WS_RE = re.compile(r"[ \t]+\n")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")

_UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")


def decode_markup(raw: bytes) -> str:
    if raw.startswith(_UTF16_BOMS):
        try:
            return raw.decode("utf-16")
        except UnicodeDecodeError:
            pass
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("utf-8", errors="replace")


@lru_cache(maxsize=None)
def _html_parser() -> str:
    for parser in HTML_PARSERS:
        try:
            BeautifulSoup("", parser)
        except FeatureNotFound:
            continue
        _debug_log(f"using HTML parser {parser!r}")
        return parser
    raise FeatureNotFound("no HTML tree builder available")


def soup_from_html(html: str) -> BeautifulSoup:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html, _html_parser())


def _is_text_node(node: object) -> bool:
    # Comments, doctypes, CDATA and processing instructions are PreformattedString.
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def _wrap_element(name: str, content: str) -> str:
    if name in BLOCK_LEVEL_TAGS:
        return f"\n{content.strip()}\n"
    if name in LINE_BREAK_TAGS:
        return "\n"
    if name in ROW_TAGS:
        return f"\n{content.strip()}"
    if name in CELL_TAGS:
        return f" {content.strip()} "
    return content


def node_to_text(root: Tag) -> str:
    """
    Collapse a parsed tree into text, one string per node, children first.

    Text nodes have tab/CR/LF runs folded to a single space before they are
    joined, so the newlines added for block, row and break elements survive
    in the parent's content. The traversal keeps its own stack instead of
    recursing so arbitrarily deep markup is safe.
    """
    accumulators: list[list[str]] = [[]]
    stack: list[tuple[PageElement, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            content = "".join(accumulators.pop())
            accumulators[-1].append(_wrap_element(node.name.lower(), content))
            continue
        if isinstance(node, Tag):
            if node.name.lower() in SKIP_TAGS:
                continue
            stack.append((node, True))
            accumulators.append([])
            for child in reversed(node.contents):
                stack.append((child, False))
        elif _is_text_node(node):
            accumulators[-1].append(_INLINE_WS_RE.sub(" ", str(node)))
    return "".join(accumulators[0])


def normalize_newlines(text: str) -> str:
    """Drop spaces before line ends, cap blank runs at one empty line, trim."""
    text = _TRAILING_WS_RE.sub("\n", text)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def _content_root(soup: BeautifulSoup) -> Tag:
    body = soup.find("body")
    if isinstance(body, Tag):
        return body
    html = soup.find("html")
    if isinstance(html, Tag):
        return html
    return soup


def html_to_text(markup: str | bytes) -> str:
    """Convert one content document into normalized readable text."""
    if isinstance(markup, (bytes, bytearray)):
        markup = decode_markup(bytes(markup))
    soup = soup_from_html(markup)
    return normalize_newlines(node_to_text(_content_root(soup)))
