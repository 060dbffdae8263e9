"""Node replacement rules plugged into markdownify's conversion pass."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import unquote

from markdownify import ATX, MarkdownConverter

from .anchors import is_external_href, split_fragment
from .indexer import LinkIndex
from .normalize import heading_level, is_heading
from .policies import FootnotePolicy

LOG = logging.getLogger("epub2obsidian")

DEFAULT_ASSETS_DIR = "assets"
IMAGE_SOURCE_ATTRS = ("src", "xlink:href", "href")
BLOCK_TAGS = ("p", "li", "blockquote")

_NUMERAL = r"\\?\[?\d+\\?\]?"
LEADING_NOTE_MARKER_RE = re.compile(
    rf"^\s*(?:\[\^[^\]]+\]|\[\[#[^\]|]*\|\s*{_NUMERAL}\s*\]\]|\\?\[\d+\\?\]|\d+)\s*\\?[.):]?\s*"
)
TRAILING_BACKLINK_RE = re.compile(
    rf"\s*(?:\[\[#[^\]|]*\|\s*(?:↩[\ufe0e\ufe0f]?|back|return|{_NUMERAL})\s*\]\]|\[\^[^\]]+\]|↩[\ufe0e\ufe0f]?)\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class RenderContext:
    index: LinkIndex = field(default_factory=LinkIndex)
    renames: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    assets_dir: str = DEFAULT_ASSETS_DIR
    section_href: str = ""
    footnote_policy: FootnotePolicy = field(default_factory=FootnotePolicy)


Predicate = Callable[..., bool]
Replacement = Callable[..., str]


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Predicate
    replacement: Replacement


class RuleSet:
    """Ordered registry of ``(predicate, replacement)`` pairs; the first match wins.

    ``predicate(el, ctx)`` decides whether the rule applies to a node and
    ``replacement(text, el, ctx)`` receives the already converted child text.
    """

    def __init__(self) -> None:
        self._rules: List[Rule] = []

    def add(self, name: str, predicate: Predicate, replacement: Replacement) -> None:
        self._rules.append(Rule(name=name, predicate=predicate, replacement=replacement))

    def match(self, el, ctx: RenderContext) -> Optional[Rule]:
        for rule in self._rules:
            if rule.predicate(el, ctx):
                return rule
        return None

    def names(self) -> List[str]:
        return [rule.name for rule in self._rules]

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)


class WikiMarkdownConverter(MarkdownConverter):
    def __init__(self, rules: RuleSet, context: RenderContext, **options) -> None:
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        super().__init__(**options)
        self.rules = rules
        self.context = context

    def get_conv_fn(self, tag_name):
        fallback = super().get_conv_fn(tag_name)

        def convert(el, text, parent_tags=None):
            rule = self.rules.match(el, self.context)
            if rule is not None:
                return rule.replacement(text, el, self.context)
            if fallback is None:
                return text
            return fallback(el, text, parent_tags=parent_tags)

        return convert


def heading_link(label: str, text: str = "") -> str:
    return f"[[#{label}|{text or label}]]"


def block_link(ident: str, text: str = "") -> str:
    if text:
        return f"[[#^{ident}|{text}]]"
    return f"[[#^{ident}]]"


# Images


def _image_source(el) -> str:
    for attr in IMAGE_SOURCE_ATTRS:
        value = el.get(attr)
        if value:
            return str(value)
    return ""


def resolve_asset_name(src: str, ctx: RenderContext) -> str:
    path = unquote(src.split("?", 1)[0].split("#", 1)[0])
    if ctx.section_href and not path.startswith("/"):
        joined = posixpath.normpath(posixpath.join(posixpath.dirname(unquote(ctx.section_href)), path))
        if joined in ctx.renames:
            return ctx.renames[joined]
    basename = posixpath.basename(path)
    return ctx.renames.get(basename, basename)


def is_image(el, ctx: RenderContext) -> bool:
    return el.name in ("img", "image")


def render_image(text: str, el, ctx: RenderContext) -> str:
    src = _image_source(el)
    if not src:
        return ""
    alt = el.get("alt") or ""
    return f"\n\n![{alt}]({ctx.assets_dir}/{resolve_asset_name(src, ctx)})\n\n"


# Links


def is_link(el, ctx: RenderContext) -> bool:
    return el.name == "a" and bool(el.get("href"))


def _chapter_link(file_part: str, text: str, ctx: RenderContext) -> Optional[str]:
    anchor = ctx.index.resolve_chapter(file_part)
    if not anchor:
        return None
    label = ctx.index.heading_text.get(anchor)
    if label:
        return heading_link(label, text)
    return block_link(anchor, text or anchor)


def _padding(text: str) -> Tuple[str, str]:
    prefix = " " if text[:1].isspace() else ""
    suffix = " " if text[-1:].isspace() else ""
    return prefix, suffix


def render_link(text: str, el, ctx: RenderContext) -> str:
    prefix, suffix = _padding(text)
    return prefix + _render_link(text.strip(), el, ctx) + suffix


def _render_link(text: str, el, ctx: RenderContext) -> str:
    raw_href = str(el.get("href") or "")
    if is_external_href(raw_href):
        return f"[{text or raw_href}]({raw_href})"
    href = unquote(raw_href).strip()
    if not href:
        return text
    file_part, fragment = split_fragment(href)
    if fragment:
        label = ctx.index.heading_text.get(fragment)
        if label:
            return heading_link(label, text)
        if fragment in ctx.index.block_ids:
            return block_link(fragment, text)
    if file_part:
        chapter = _chapter_link(file_part, text, ctx)
        if chapter is not None:
            return chapter
    return text


# Block identifiers


def is_identified_block(el, ctx: RenderContext) -> bool:
    if is_heading(el):
        return True
    return el.name in BLOCK_TAGS and bool(el.get("id"))


def _suffix_first_line(lines: List[str], ident: str) -> List[str]:
    return [f"{lines[0]} ^{ident}"] + lines[1:]


def render_identified_block(text: str, el, ctx: RenderContext) -> str:
    ident = el.get("id")
    if is_heading(el):
        content = " ".join(text.split())
        if ident and content and ident not in ctx.index.heading_text:
            LOG.warning("Heading id %r was not indexed before rendering (%s)", ident, ctx.section_href)
        if not content:
            return ""
        return f"\n\n{'#' * heading_level(el)} {content}\n\n"

    body = text.strip("\n").strip()
    if not body:
        return ""
    lines = body.split("\n")
    if el.name == "li":
        lines = _suffix_first_line(lines, ident)
        rest = [f"  {line}" if line.strip() else line for line in lines[1:]]
        return "- " + "\n".join([lines[0]] + rest) + "\n"
    if el.name == "blockquote":
        lines[-1] = f"{lines[-1]} ^{ident}"
        quoted = [f"> {line}" if line.strip() else ">" for line in lines]
        return "\n\n" + "\n".join(quoted) + "\n\n"
    lines[-1] = f"{lines[-1]} ^{ident}"
    return "\n\n" + "\n".join(lines) + "\n\n"


# Footnotes


def is_footnote_reference(el, ctx: RenderContext) -> bool:
    return ctx.footnote_policy.is_reference(el, ctx.section_href)


def render_footnote_reference(text: str, el, ctx: RenderContext) -> str:
    _, fragment = split_fragment(unquote(str(el.get("href"))))
    return f"[^{fragment}]"


def is_footnote_definition(el, ctx: RenderContext) -> bool:
    return ctx.footnote_policy.is_definition(el, ctx.index.footnote_refs)


def strip_note_markers(text: str) -> str:
    body = LEADING_NOTE_MARKER_RE.sub("", text.strip(), count=1)
    previous = None
    while previous != body:
        previous = body
        body = TRAILING_BACKLINK_RE.sub("", body)
    return body.strip()


def render_footnote_definition(text: str, el, ctx: RenderContext) -> str:
    body = strip_note_markers(text)
    lines = [line.strip() for line in body.split("\n") if line.strip()]
    return f"\n\n[^{el['id']}]: " + "\n    ".join(lines) + "\n\n"


def build_default_rules() -> RuleSet:
    rules = RuleSet()
    rules.add("footnote-reference", is_footnote_reference, render_footnote_reference)
    rules.add("footnote-definition", is_footnote_definition, render_footnote_definition)
    rules.add("image", is_image, render_image)
    rules.add("internal-link", is_link, render_link)
    rules.add("block-identifier", is_identified_block, render_identified_block)
    return rules
