from __future__ import annotations

import argparse
import sys
from importlib import metadata
from pathlib import Path

import tomllib
from rich.console import Console

from .config import default_workers
from .core import epub_to_chapters, parse_epub
from .errors import EmptyResultError, ExtractionError
from .logging_utils import set_debug_logging

EPUB_SUFFIX = ".epub"


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("epubtxt")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="epubtxt",
        description="EPUB → reading-order TXT with explicit chapter breaks.",
    )
    ap.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"epubtxt {__version__}",
    )
    ap.add_argument(
        "input_path",
        help="Path to input .epub or a directory containing .epub files",
    )
    ap.add_argument(
        "-o",
        "--output-name",
        help="Optional name for the output .txt (same folder as input)",
    )
    ap.add_argument(
        "--stdout",
        action="store_true",
        help="Print the extracted text instead of writing a .txt file.",
    )
    ap.add_argument(
        "--chapters",
        action="store_true",
        help="Write one numbered .txt per chapter into a folder named after the EPUB.",
    )
    ap.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help=f"Worker threads for markup parsing (default: $EPUBTXT_WORKERS or {default_workers()}).",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Log skipped spine entries and parser details to stderr.",
    )
    return ap


def _output_path_for(epub_path: Path, output_name: str | None) -> Path:
    if not output_name:
        return epub_path.with_suffix(".txt")
    return epub_path.with_name(output_name)


def write_chapter_files(epub_path: Path, *, workers: int | None) -> list[Path]:
    chapters = epub_to_chapters(epub_path, workers=workers)
    if not chapters:
        raise EmptyResultError(stage="chapters", path=str(epub_path))
    output_dir = epub_path.with_suffix("")
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for number, chapter in enumerate(chapters, start=1):
        target = output_dir / f"{number:04d}.txt"
        target.write_text(chapter.text, encoding="utf-8")
        written.append(target)
    return written


def _convert_one(epub_path: Path, args: argparse.Namespace, console: Console) -> None:
    if args.chapters:
        written = write_chapter_files(epub_path, workers=args.jobs)
        console.print(f"Wrote {len(written)} chapters to {epub_path.with_suffix('')}", markup=False, soft_wrap=True)
        return
    text = parse_epub(epub_path, workers=args.jobs)
    if args.stdout:
        sys.stdout.write(text)
        sys.stdout.write("\n")
        return
    output_path = _output_path_for(epub_path, args.output_name)
    output_path.write_text(text, encoding="utf-8")
    console.print(f"Wrote {output_path}", markup=False, soft_wrap=True)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)

    if args.debug:
        set_debug_logging(True)
    if args.stdout and args.chapters:
        parser.error("--stdout cannot be combined with --chapters.")
    if args.output_name:
        if args.chapters:
            parser.error("Output name cannot be used with --chapters.")
        out_name_path = Path(args.output_name)
        if out_name_path.parent not in (Path("."), Path("")):
            parser.error("Output name must not contain directory components; it is saved next to the EPUB.")

    inp_path = Path(args.input_path)
    if not inp_path.exists():
        parser.error(f"Input path not found: {inp_path}")

    if inp_path.is_dir():
        if args.output_name:
            parser.error("Output name cannot be used when processing a directory.")
        if args.stdout:
            parser.error("--stdout cannot be used when processing a directory.")
        epubs = sorted(p for p in inp_path.iterdir() if p.suffix.lower() == EPUB_SUFFIX)
        if not epubs:
            parser.error(f"No .epub files found in directory: {inp_path}")
    else:
        if inp_path.suffix.lower() != EPUB_SUFFIX:
            parser.error(f"Input must be an .epub file or directory: {inp_path}")
        epubs = [inp_path]

    console = Console(stderr=True)
    failures = 0
    for epub_path in epubs:
        try:
            _convert_one(epub_path, args, console)
        except ExtractionError as exc:
            failures += 1
            console.print(f"Failed to process EPUB: {epub_path.name}: {exc}", style="red", markup=False, soft_wrap=True)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
