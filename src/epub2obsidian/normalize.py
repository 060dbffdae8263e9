"""Per-section markup normalization shared by the indexing and rendering passes."""

from __future__ import annotations

import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, ProcessingInstruction, Tag

from .policies import HEADING_TAGS, TitlePolicy

LOG = logging.getLogger("epub2obsidian")

ZERO_WIDTH_SPACE = "\u200b"
NON_CONTENT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
ANCHOR_LINK_ATTRS = ("href", "src", "xlink:href")


def parse_markup(markup: str) -> BeautifulSoup:
    soup = BeautifulSoup(markup or "", "html.parser")
    for tag in soup.find_all(["script", "style", "head"]):
        tag.decompose()
    for node in soup.find_all(string=lambda s: isinstance(s, NON_CONTENT_STRINGS)):
        node.extract()
    return soup


def content_root(soup: BeautifulSoup) -> Tag:
    return soup.body if soup.body is not None else soup


def is_heading(el) -> bool:
    return isinstance(el, Tag) and el.name in HEADING_TAGS


def heading_level(el: Tag) -> int:
    return int(el.name[1])


def anchor_identifier(el: Tag) -> str:
    return str(el.get("id") or el.get("name") or "").strip()


def is_anchor_only(el) -> bool:
    if not isinstance(el, Tag) or el.name != "a":
        return False
    if any(el.get(attr) for attr in ANCHOR_LINK_ATTRS):
        return False
    if not anchor_identifier(el):
        return False
    if el.find(True) is not None:
        return False
    return not el.get_text(strip=True)


def _carrier(soup: BeautifulSoup, ident: str) -> Tag:
    return soup.new_tag("a", attrs={"id": ident})


def _attach_pending(soup: BeautifulSoup, heading: Tag, pending: List[str]) -> None:
    heading["id"] = pending.pop(0)
    for ident in reversed(pending):
        heading.insert(0, _carrier(soup, ident))
    pending.clear()


def _transfer_wrapper_ids(root: Tag) -> None:
    for div in root.find_all("div", id=True):
        heading = div.find(HEADING_TAGS, recursive=False)
        if heading is None or heading.get("id"):
            continue
        heading["id"] = div["id"]
        del div["id"]


def _ensure_chapter_anchor(soup: BeautifulSoup, root: Tag, chapter_anchor: str) -> None:
    heading = root.find(HEADING_TAGS)
    if heading is None:
        marker = soup.new_tag("p", attrs={"id": chapter_anchor})
        marker.string = ZERO_WIDTH_SPACE
        root.insert(0, marker)
        return
    current = heading.get("id")
    if not current:
        heading["id"] = chapter_anchor
    elif current != chapter_anchor and heading.find(id=chapter_anchor) is None:
        heading.insert(0, _carrier(soup, chapter_anchor))


def normalize_section_markup(
    soup: BeautifulSoup,
    chapter_anchor: Optional[str] = None,
    title_policy: Optional[TitlePolicy] = None,
) -> List[str]:
    """Move fragment identifiers onto the headings they label.

    Walks the tree once in document order: anchor-only ``<a id>`` elements
    outside headings are removed and queued, title-class paragraphs become
    headings, the first heading is forced to ``h1`` and every id-less heading
    takes the queued identifiers. Wrapper ``div`` ids move onto their direct
    child heading and the chapter anchor is attached last. Returns the queued
    identifiers that found no heading.
    """
    policy = title_policy or TitlePolicy()
    root = content_root(soup)
    pending: List[str] = []
    first_heading: Optional[Tag] = None

    for el in list(root.find_all(True)):
        if el.parent is None:
            continue
        if is_anchor_only(el):
            if el.find_parent(HEADING_TAGS) is None:
                pending.append(anchor_identifier(el))
                el.extract()
            continue
        level = policy.level_for(el)
        if level is not None:
            el.name = f"h{level}"
        if not is_heading(el):
            continue
        if first_heading is None:
            first_heading = el
            el.name = "h1"
        if pending and not el.get("id"):
            _attach_pending(soup, el, pending)

    _transfer_wrapper_ids(root)
    if chapter_anchor:
        _ensure_chapter_anchor(soup, root, chapter_anchor)
    if pending:
        LOG.debug("Dropping %d anchor(s) with no following heading: %s", len(pending), ", ".join(pending))
    return pending
