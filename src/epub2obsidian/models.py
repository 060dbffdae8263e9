"""Book records handed over by the document reader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class Section:
    id: str
    href: str
    fetch: Callable[[], str] = field(repr=False, compare=False)

    def read(self) -> str:
        return self.fetch()


@dataclass(frozen=True)
class BookMetadata:
    title: Optional[str] = None
    creator: Optional[str] = None
    publisher: Optional[str] = None
    language: Optional[str] = None
    date: Optional[str] = None
    cover_id: Optional[str] = None


@dataclass(frozen=True)
class AssetItem:
    id: str
    media_type: str
    href: str
    fetch: Callable[[], bytes] = field(repr=False, compare=False)

    @property
    def is_image(self) -> bool:
        return (self.media_type or "").lower().startswith("image/")

    def read(self) -> bytes:
        return self.fetch()


@dataclass
class Book:
    metadata: BookMetadata = field(default_factory=BookMetadata)
    assets: Dict[str, AssetItem] = field(default_factory=dict)
    sections: List[Section] = field(default_factory=list)
