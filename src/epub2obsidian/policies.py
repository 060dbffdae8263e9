"""Heuristic policies used to recover structure the source markup leaves implicit.

Both policies are deliberately approximate:

* ``FootnotePolicy`` treats an id-bearing block whose text opens with ``[n]``
  or ``n.`` as a footnote body when it is either explicitly typed as a note
  (``epub:type``/``role``/``class`` mentioning footnote, endnote or rearnote)
  or shorter than ``max_length`` characters. Long numbered prose without a note
  marker is a false negative by design of the threshold; short numbered
  paragraphs that are not notes (numbered steps with anchors) are the known
  false positives. Blocks that wrap a heading or an id-bearing block are never
  notes, and ``div``/``section`` candidates need the explicit note marker.
  ``require_reference`` narrows definitions to ids that some
  footnote reference actually points at.
* ``TitlePolicy`` promotes ``<p>`` elements whose class tokens match one of the
  ``class_levels`` patterns to headings. Classes outside the allowlist are never
  promoted, whatever they look like.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import AbstractSet, Optional, Tuple
from urllib.parse import unquote

from .anchors import normalize_reference, split_fragment

WHITESPACE_RE = re.compile(r"\s+")
FOOTNOTE_REF_TEXT_RE = re.compile(r"^\s*(?:\[\d+\]|\d+)\s*$")
DEFINITION_LEAD_RE = re.compile(r"^\s*(?:\[\d+\][.):]?|\d+[.):]|\d+(?=\s))")
NOTE_TYPE_RE = re.compile(r"footnote|endnote|rearnote", re.IGNORECASE)

DEFAULT_FOOTNOTE_MAX_LENGTH = 400
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
DEFINITION_TAGS = ("p", "div", "li", "aside", "section")
MARKER_REQUIRED_TAGS = ("div", "section")
NESTED_BLOCK_TAGS = ("p", "div", "li", "aside", "section", "blockquote", "ul", "ol", "table")
NOTE_TYPE_ATTRS = ("epub:type", "role", "class")

DEFAULT_TITLE_CLASSES: Tuple[Tuple[str, int], ...] = (
    (r"^sub-?sub-?title$|sub-?section[-_]?title", 3),
    (r"^sub-?title$|^section[-_]?title|^subhead", 2),
    (r"^(?:chapter|part|book)?[-_]?title$|^chapter[-_]?(?:title|head|name)", 1),
)


def plain_text(el) -> str:
    return WHITESPACE_RE.sub(" ", el.get_text()).strip()


def _attr_tokens(el, name: str) -> Tuple[str, ...]:
    value = el.get(name)
    if not value:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return tuple(str(value).split())


@dataclass(frozen=True)
class FootnotePolicy:
    max_length: int = DEFAULT_FOOTNOTE_MAX_LENGTH
    require_reference: bool = False

    def is_reference(self, el, section_href: str = "") -> bool:
        if getattr(el, "name", None) != "a":
            return False
        href = el.get("href")
        if not href:
            return False
        file_part, fragment = split_fragment(unquote(href))
        if not fragment:
            return False
        if file_part and normalize_reference(file_part) != normalize_reference(section_href):
            return False
        return bool(FOOTNOTE_REF_TEXT_RE.match(el.get_text()))

    def has_note_marker(self, el) -> bool:
        for attr in NOTE_TYPE_ATTRS:
            if any(NOTE_TYPE_RE.search(token) for token in _attr_tokens(el, attr)):
                return True
        return False

    def looks_like_definition(self, el) -> bool:
        name = getattr(el, "name", None)
        if name not in DEFINITION_TAGS or not el.get("id"):
            return False
        # Headings and id-bearing blocks inside the candidate are link targets of their own.
        if el.find(HEADING_TAGS) is not None or el.find(NESTED_BLOCK_TAGS, id=True) is not None:
            return False
        marked = self.has_note_marker(el)
        if name in MARKER_REQUIRED_TAGS and not marked:
            return False
        text = plain_text(el)
        if not DEFINITION_LEAD_RE.match(text):
            return False
        return marked or len(text) < self.max_length

    def is_definition(self, el, referenced: Optional[AbstractSet[str]] = None) -> bool:
        if not self.looks_like_definition(el):
            return False
        if self.require_reference and referenced is not None:
            return el.get("id") in referenced
        return True


@dataclass(frozen=True)
class TitlePolicy:
    class_levels: Tuple[Tuple[str, int], ...] = DEFAULT_TITLE_CLASSES

    def level_for(self, el) -> Optional[int]:
        if getattr(el, "name", None) != "p":
            return None
        for token in _attr_tokens(el, "class"):
            lowered = token.lower()
            for pattern, level in self.class_levels:
                if re.search(pattern, lowered):
                    return level
        return None
