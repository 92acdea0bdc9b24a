from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Iterable, Mapping

import pytest

MIMETYPE = "application/epub+zip"


def container_xml(full_path: str | None = "OEBPS/content.opf") -> str:
    attr = f' full-path="{full_path}"' if full_path is not None else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile{attr} media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def package_xml(items: Iterable[tuple[str, str]], spine: Iterable[str]) -> str:
    manifest = "\n".join(
        f'    <item id="{item_id}" href="{href}" media-type="application/xhtml+xml"/>'
        for item_id, href in items
    )
    itemrefs = "\n".join(f'    <itemref idref="{idref}"/>' for idref in spine)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<package version="3.0" unique-identifier="BookId" xmlns="http://www.idpf.org/2007/opf">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>Sample Book</dc:title>
  </metadata>
  <manifest>
{manifest}
  </manifest>
  <spine>
{itemrefs}
  </spine>
</package>
"""


def chapter_html(title: str, *paragraphs: str) -> str:
    body = "\n".join(f"    <p>{para}</p>" for para in paragraphs)
    return f"""<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head><title>{title}</title></head>
  <body>
    <h1>{title}</h1>
{body}
  </body>
</html>
"""


class EpubBuilder:
    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, files: Mapping[str, str | bytes], name: str = "sample.epub") -> Path:
        epub_path = self.root / name
        with zipfile.ZipFile(epub_path, "w") as zf:
            zf.writestr("mimetype", MIMETYPE)
            for entry, data in files.items():
                zf.writestr(entry, data)
        return epub_path

    def build(
        self,
        chapters: Iterable[tuple[str, str, str | None]],
        *,
        opf_path: str = "OEBPS/content.opf",
        spine: Iterable[str] | None = None,
        extra_files: Mapping[str, str | bytes] | None = None,
        name: str = "sample.epub",
    ) -> Path:
        chapters = list(chapters)
        opf_dir = opf_path.rpartition("/")[0]
        files: dict[str, str | bytes] = {
            "META-INF/container.xml": container_xml(opf_path),
            opf_path: package_xml(
                [(item_id, href) for item_id, href, _ in chapters],
                spine if spine is not None else [item_id for item_id, _, _ in chapters],
            ),
        }
        for _, href, html in chapters:
            if html is None:
                continue
            files[f"{opf_dir}/{href}" if opf_dir else href] = html
        if extra_files:
            files.update(extra_files)
        return self.write(files, name=name)


@pytest.fixture
def epub_builder(tmp_path: Path) -> EpubBuilder:
    return EpubBuilder(tmp_path)


@pytest.fixture
def two_chapter_epub(epub_builder: EpubBuilder) -> Path:
    return epub_builder.build(
        [
            ("ch1", "ch1.xhtml", chapter_html("Chapter One", "This is the first chapter.")),
            ("ch2", "ch2.xhtml", chapter_html("Chapter Two", "This is the second chapter.")),
        ]
    )


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EPUBTXT_WORKERS", raising=False)
    monkeypatch.delenv("EPUBTXT_DEBUG", raising=False)


def corrupt_stored_bytes(epub_path: Path, marker: bytes) -> None:
    # Entries are written ZIP_STORED, so the marker sits verbatim in the entry data
    # and altering it leaves a CRC mismatch for zipfile to find on read.
    raw = epub_path.read_bytes()
    assert raw.count(marker) == 1
    flipped = bytes([marker[0] ^ 0x20]) + marker[1:]
    epub_path.write_bytes(raw.replace(marker, flipped))
