"""YAML frontmatter for the generated note."""

from __future__ import annotations

from typing import Optional, Sequence

from .models import BookMetadata

DEFAULT_TAGS = ("epub", "book")


def quote_value(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_frontmatter(
    metadata: Optional[BookMetadata],
    cover: Optional[str] = None,
    tags: Sequence[str] = DEFAULT_TAGS,
) -> str:
    if metadata is None:
        return ""
    lines = ["---"]
    fields = (
        ("title", metadata.title),
        ("author", metadata.creator),
        ("publisher", metadata.publisher),
        ("language", metadata.language),
        ("date", metadata.date),
        ("cover", cover),
    )
    for key, value in fields:
        if value:
            lines.append(f"{key}: {quote_value(value.strip())}")
    lines.append(f"tags: [{', '.join(tags)}]")
    lines.append("---")
    return "\n".join(lines) + "\n\n"


def render_title_heading(metadata: Optional[BookMetadata]) -> str:
    if metadata is None or not metadata.title:
        return ""
    return f"# {metadata.title.strip()}\n\n"
