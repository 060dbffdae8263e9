"""Per-section rewrite and body assembly."""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Callable, List, Optional

from .indexer import read_section
from .models import Section
from .normalize import content_root, normalize_section_markup, parse_markup
from .policies import TitlePolicy
from .rules import RenderContext, RuleSet, WikiMarkdownConverter, build_default_rules

LOG = logging.getLogger("epub2obsidian")

SECTION_SEPARATOR = "\n\n---\n\n"
HARD_BREAK = "  "
FENCE_RE = re.compile(r"^\s*(?:```|~~~)")

ProgressCallback = Callable[[int, int, str], None]


def tidy_markdown(md_text: str) -> str:
    """Drop trailing blanks and collapse blank-line runs outside fenced code.

    A two-space hard break is kept when the next line continues the paragraph.
    """
    lines = md_text.split("\n")
    out: List[str] = []
    in_code = False
    for pos, raw in enumerate(lines):
        if FENCE_RE.match(raw):
            in_code = not in_code
            out.append(raw.rstrip())
            continue
        if in_code:
            out.append(raw)
            continue
        line = raw.rstrip(" \t")
        following = lines[pos + 1] if pos + 1 < len(lines) else ""
        if line and raw[len(line):] == HARD_BREAK and following.strip():
            line += HARD_BREAK
        if not line and out and not out[-1]:
            continue
        out.append(line)
    return "\n".join(out).strip()


def render_section(
    markup: str,
    section: Section,
    context: RenderContext,
    rules: Optional[RuleSet] = None,
    title_policy: Optional[TitlePolicy] = None,
) -> str:
    soup = parse_markup(markup)
    normalize_section_markup(soup, context.index.chapter_anchor_for(section), title_policy)
    section_context = dataclasses.replace(context, section_href=section.href)
    converter = WikiMarkdownConverter(rules if rules is not None else build_default_rules(), section_context)
    return tidy_markdown(converter.convert_soup(content_root(soup)))


def render_body(
    sections: List[Section],
    context: RenderContext,
    *,
    rules: Optional[RuleSet] = None,
    title_policy: Optional[TitlePolicy] = None,
    progress: Optional[ProgressCallback] = None,
) -> str:
    if not sections:
        LOG.warning("Reading order is empty; no chapters to convert")
        return ""

    rule_set = rules if rules is not None else build_default_rules()
    parts: List[str] = []
    total = len(sections)
    for position, section in enumerate(sections, start=1):
        markup = read_section(section)
        text = render_section(markup, section, context, rule_set, title_policy) if markup else ""
        if text:
            parts.append(text + SECTION_SEPARATOR)
        if progress is not None:
            progress(position, total, section.href or section.id)
    return "".join(parts)
