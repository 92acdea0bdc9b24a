from __future__ import annotations

import pytest

from epubtxt import resolve_path


@pytest.mark.parametrize(
    ("base_dir", "href", "expected"),
    [
        ("OEBPS/", "../Images/cover.jpg", "Images/cover.jpg"),
        ("OEBPS", "../Images/cover.jpg", "Images/cover.jpg"),
        ("", "chapter1.html", "chapter1.html"),
        ("a/b/", "../../c.html", "c.html"),
        ("OEBPS", "Text/./ch1.xhtml", "OEBPS/Text/ch1.xhtml"),
        ("OEBPS//Text/", "ch1.xhtml", "OEBPS/Text/ch1.xhtml"),
        ("OEBPS", "/Text/ch1.xhtml", "Text/ch1.xhtml"),
        ("OEBPS", "/Text/../ch1.xhtml", "ch1.xhtml"),
        ("OEBPS", "Text%20Dir/ch%201.xhtml", "OEBPS/Text%20Dir/ch%201.xhtml"),
    ],
)
def test_resolve_path(base_dir, href, expected):
    assert resolve_path(base_dir, href) == expected


@pytest.mark.parametrize(
    ("base_dir", "href"),
    [
        ("", "../c.html"),
        ("a", "../../../../c.html"),
        ("a/b/", "../../../x/../c.html"),
    ],
)
def test_resolve_path_truncates_at_root(base_dir, href):
    resolved = resolve_path(base_dir, href)

    assert resolved == "c.html"
    assert ".." not in resolved.split("/")


def test_resolve_path_is_deterministic():
    assert resolve_path("OPS/xhtml", "../css/../xhtml/p1.xhtml") == "OPS/xhtml/p1.xhtml"
    assert resolve_path("OPS/xhtml", "../css/../xhtml/p1.xhtml") == "OPS/xhtml/p1.xhtml"
