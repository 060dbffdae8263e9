from typing import Dict, List, Optional

from epub2obsidian.indexer import build_chapter_anchor_map, build_link_index
from epub2obsidian.models import AssetItem, Book, BookMetadata, Section
from epub2obsidian.rules import RenderContext


def make_section(section_id: str, href: str, html: str) -> Section:
    return Section(id=section_id, href=href, fetch=lambda: html)


def failing_section(section_id: str, href: str) -> Section:
    def _fetch() -> str:
        raise IOError("corrupt entry")

    return Section(id=section_id, href=href, fetch=_fetch)


def make_asset(asset_id: str, href: str, data: bytes = b"data", media_type: str = "image/png") -> AssetItem:
    return AssetItem(id=asset_id, media_type=media_type, href=href, fetch=lambda: data)


def make_book(
    sections: List[Section],
    assets: Optional[List[AssetItem]] = None,
    metadata: Optional[BookMetadata] = None,
) -> Book:
    asset_map: Dict[str, AssetItem] = {item.id: item for item in assets or []}
    return Book(metadata=metadata or BookMetadata(), assets=asset_map, sections=sections)


def make_context(sections: List[Section], renames: Optional[Dict[str, str]] = None) -> RenderContext:
    index = build_link_index(sections, build_chapter_anchor_map(sections))
    return RenderContext(index=index, renames=renames or {})


def write_sample_epub(path, *, title: str = "Sample Book") -> None:
    from ebooklib import epub

    book = epub.EpubBook()
    book.set_identifier("sample-book-0001")
    book.set_title(title)
    book.set_language("en")
    book.add_author("Jane Writer")

    ch1 = epub.EpubHtml(uid="ch1", title="Chapter One", file_name="Text/ch1.xhtml", lang="en")
    ch1.content = (
        "<h1>Chapter One</h1>"
        '<p>See <a href="ch2.xhtml#later">what comes later</a>.</p>'
        '<p><img src="../Images/plate.png" alt="Plate"/></p>'
    )
    ch2 = epub.EpubHtml(uid="ch2", title="Chapter Two", file_name="Text/ch2.xhtml", lang="en")
    ch2.content = '<h1>Chapter Two</h1><h2 id="later">Later On</h2><p id="p1">A closing paragraph.</p>'
    plate = epub.EpubItem(uid="plate", file_name="Images/plate.png", media_type="image/png", content=b"\x89PNG fake")

    for item in (ch1, ch2, plate):
        book.add_item(item)
    book.toc = (ch1, ch2)
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = [ch1, ch2]
    epub.write_epub(str(path), book, {})
