"""Conversion pipeline for epub2obsidian."""

from __future__ import annotations

import functools
import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple
from urllib.parse import unquote

from .assets import extract_assets
from .frontmatter import DEFAULT_TAGS, render_frontmatter, render_title_heading
from .indexer import build_chapter_anchor_map, build_link_index
from .models import Book
from .pipeline import ProgressCallback, render_body
from .policies import FootnotePolicy, TitlePolicy
from .reader import open_book
from .rules import DEFAULT_ASSETS_DIR, RenderContext, build_default_rules

LOG = logging.getLogger("epub2obsidian")

UNSAFE_FILENAME_RE = re.compile(r"[/\\\x00]+")


@dataclass
class ConversionConfig:
    assets_dir: str = DEFAULT_ASSETS_DIR
    frontmatter: bool = True
    tags: Tuple[str, ...] = DEFAULT_TAGS
    verbose: bool = False
    debug: bool = False
    footnote_policy: FootnotePolicy = field(default_factory=FootnotePolicy)
    title_policy: TitlePolicy = field(default_factory=TitlePolicy)

    def __post_init__(self) -> None:
        name = (self.assets_dir or "").strip().strip("/")
        if not name or "/" in name or name in (".", ".."):
            raise ValueError(f"Invalid assets directory name: {self.assets_dir!r}")
        self.assets_dir = name
        if self.footnote_policy.max_length <= 0:
            raise ValueError("Footnote length threshold must be > 0")


def _resolve_log_level(verbose: bool, debug: bool) -> int:
    return logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)


def _configure_epub2obsidian_logger(level: int) -> None:
    LOG.setLevel(level)
    LOG.propagate = False
    if not LOG.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        handler.setLevel(level)
        LOG.addHandler(handler)
    else:
        for handler in LOG.handlers:
            handler.setLevel(level)
            if handler.formatter is None:
                handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))


def setup_logging(verbose: bool, debug: bool) -> None:
    level = _resolve_log_level(verbose, debug)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    _configure_epub2obsidian_logger(level)


def _progress_bar_line(current: int, total: int, width: int = 24) -> str:
    if total <= 0:
        return "[?]"
    clamped = max(0, min(current, total))
    filled = min(int((clamped / total) * width), width)
    return "[" + "#" * filled + "." * (width - filled) + "]"


def _log_verbose_progress(prefix: str, current: int, total: int, detail: Optional[str] = None) -> None:
    bar = _progress_bar_line(current, total)
    counter = f"[{current}/{total}]" if total > 0 else f"[{current}]"
    if total > 0:
        msg = f"{prefix} {bar} {counter} ({(current / total) * 100.0:.1f}%)"
    else:
        msg = f"{prefix} {bar} {counter}"
    if detail:
        msg = f"{msg} | {detail}"
    LOG.info(msg)


def slugify_filename(name: str) -> str:
    name = UNSAFE_FILENAME_RE.sub("_", name.strip())
    return "book" if name in ("", ".", "..") else name


def safe_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="\n")


def resolve_cover(book: Book, renames: Mapping[str, str], assets_dir: str) -> Optional[str]:
    cover_id = book.metadata.cover_id
    item = book.assets.get(cover_id) if cover_id else None
    if item is None:
        return None
    decoded = unquote(item.href.split("?", 1)[0])
    filename = renames.get(posixpath.normpath(decoded)) or posixpath.basename(decoded)
    return f"{assets_dir}/{filename}" if filename else None


def render_book(book: Book, renames: Mapping[str, str], config: ConversionConfig) -> str:
    chapter_anchors = build_chapter_anchor_map(book.sections)
    index = build_link_index(
        book.sections,
        chapter_anchors,
        footnote_policy=config.footnote_policy,
        title_policy=config.title_policy,
    )
    context = RenderContext(
        index=index,
        renames=MappingProxyType(dict(renames)),
        assets_dir=config.assets_dir,
        footnote_policy=config.footnote_policy,
    )

    progress: Optional[ProgressCallback] = None
    if config.verbose:
        LOG.info("Converting %d chapter(s)", len(book.sections))
        progress = functools.partial(_log_verbose_progress, "Chapters")

    body = render_body(
        book.sections,
        context,
        rules=build_default_rules(),
        title_policy=config.title_policy,
        progress=progress,
    )

    if config.frontmatter:
        head = render_frontmatter(book.metadata, resolve_cover(book, renames, config.assets_dir), config.tags)
    else:
        head = render_title_heading(book.metadata)
    text = head + body
    return text.rstrip() + "\n" if text.strip() else ""


def convert_book(book: Book, *, out_dir: Path, stem: str, config: ConversionConfig) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    renames = extract_assets(book.assets.values(), out_dir / config.assets_dir)
    markdown = render_book(book, renames, config)
    md_path = out_dir / f"{slugify_filename(stem)}.md"
    safe_write_text(md_path, markdown)
    LOG.info("Markdown written to %s", md_path)
    return md_path


def run_conversion(*, input_path: Path, out_dir: Path, config: ConversionConfig) -> Path:
    book = open_book(input_path)
    return convert_book(book, out_dir=out_dir, stem=input_path.stem, config=config)
