"""Global link indexes built before any section is rendered."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set
from urllib.parse import unquote

from .anchors import normalize_reference, slugify_anchor, split_fragment
from .models import Section
from .normalize import HEADING_TAGS, content_root, normalize_section_markup, parse_markup
from .policies import WHITESPACE_RE, FootnotePolicy, TitlePolicy, plain_text

LOG = logging.getLogger("epub2obsidian")

BLOCK_ID_TAGS = ("p", "li", "blockquote")


@dataclass(frozen=True)
class LinkIndex:
    chapter_anchors: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    heading_text: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    block_ids: FrozenSet[str] = frozenset()
    footnote_refs: FrozenSet[str] = frozenset()

    def chapter_anchor_for(self, section: Section) -> Optional[str]:
        anchor = self.chapter_anchors.get(section.id) if section.id else None
        if anchor:
            return anchor
        normalized = normalize_reference(section.href)
        return self.chapter_anchors.get(normalized) if normalized else None

    def resolve_chapter(self, href: str) -> Optional[str]:
        normalized = normalize_reference(href)
        if not normalized:
            return None
        return self.chapter_anchors.get(normalized)


def read_section(section: Section) -> str:
    try:
        return section.read() or ""
    except Exception as exc:
        LOG.warning("Unable to read section %s (%s): %s", section.id, section.href, exc)
        return ""


def build_chapter_anchor_map(sections: Iterable[Section]) -> Dict[str, str]:
    anchors: Dict[str, str] = {}
    used: Set[str] = set()
    for section in sections:
        normalized = normalize_reference(section.href)
        base = slugify_anchor(normalized) or slugify_anchor(section.id or "")
        if not base:
            LOG.debug("No usable anchor for section %r (%s)", section.id, section.href)
            continue
        anchor = base
        counter = 1
        while anchor in used:
            anchor = f"{base}-{counter}"
            counter += 1
        used.add(anchor)
        if normalized:
            anchors[normalized] = anchor
        if section.id:
            anchors[section.id] = anchor
    return anchors


def heading_label(heading, footnote_policy: Optional[FootnotePolicy] = None, section_href: str = "") -> str:
    """Visible heading text without the footnote reference markers it carries."""
    if footnote_policy is None:
        return plain_text(heading)
    parts: List[str] = []
    for node in heading.find_all(string=True):
        if any(footnote_policy.is_reference(link, section_href) for link in node.find_parents("a")):
            continue
        parts.append(str(node))
    return WHITESPACE_RE.sub(" ", "".join(parts)).strip()


def index_headings(
    root,
    heading_text: Dict[str, str],
    footnote_policy: Optional[FootnotePolicy] = None,
    section_href: str = "",
) -> None:
    for heading in root.find_all(HEADING_TAGS):
        label = heading_label(heading, footnote_policy, section_href)
        if not label:
            continue
        if heading.get("id"):
            heading_text[heading["id"]] = label
        for carrier in heading.find_all(id=True):
            heading_text[carrier["id"]] = label


def build_link_index(
    sections: List[Section],
    chapter_anchors: Mapping[str, str],
    *,
    footnote_policy: Optional[FootnotePolicy] = None,
    title_policy: Optional[TitlePolicy] = None,
) -> LinkIndex:
    """Scan every section once and snapshot the heading, block and footnote ids.

    Must complete before rendering starts: a link in an early section may
    target a heading that only appears in a later one.
    """
    footnotes = footnote_policy or FootnotePolicy()
    snapshot_anchors = MappingProxyType(dict(chapter_anchors))
    lookup = LinkIndex(chapter_anchors=snapshot_anchors)
    heading_text: Dict[str, str] = {}
    paragraph_ids: Set[str] = set()
    definition_block_ids: Set[str] = set()
    footnote_refs: Set[str] = set()

    for section in sections:
        markup = read_section(section)
        if not markup:
            continue
        soup = parse_markup(markup)
        normalize_section_markup(soup, lookup.chapter_anchor_for(section), title_policy)
        root = content_root(soup)
        index_headings(root, heading_text, footnotes, section.href)

        for link in root.find_all("a", href=True):
            if footnotes.is_reference(link, section.href):
                footnote_refs.add(split_fragment(unquote(link["href"]))[1])
        for block in root.find_all(True, id=True):
            if footnotes.looks_like_definition(block):
                if block.name in BLOCK_ID_TAGS:
                    definition_block_ids.add(block["id"])
            elif block.name in BLOCK_ID_TAGS and plain_text(block):
                paragraph_ids.add(block["id"])

    block_ids = paragraph_ids | set(snapshot_anchors.values())
    if footnotes.require_reference:
        block_ids |= definition_block_ids - footnote_refs
    LOG.debug(
        "Indexed %d heading label(s), %d block id(s), %d footnote reference(s)",
        len(heading_text),
        len(block_ids),
        len(footnote_refs),
    )
    return LinkIndex(
        chapter_anchors=snapshot_anchors,
        heading_text=MappingProxyType(heading_text),
        block_ids=frozenset(block_ids),
        footnote_refs=frozenset(footnote_refs),
    )
