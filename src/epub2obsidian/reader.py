"""EPUB container reader built on ebooklib."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .models import AssetItem, Book, BookMetadata, Section

LOG = logging.getLogger("epub2obsidian")


class BookOpenError(RuntimeError):
    """The EPUB container could not be opened or parsed."""


def _metadata(book: Any, namespace: str, name: str) -> List[Tuple[Any, Dict[str, Any]]]:
    try:
        return list(book.get_metadata(namespace, name) or [])
    except KeyError:
        return []


def _first_dc(book: Any, name: str) -> Optional[str]:
    for value, _attrs in _metadata(book, "DC", name):
        if value and str(value).strip():
            return str(value).strip()
    return None


def _find_cover_id(book: Any, cover_type: int) -> Optional[str]:
    for key in ("cover", "meta"):
        for _value, attrs in _metadata(book, "OPF", key):
            if not attrs:
                continue
            if key == "meta" and str(attrs.get("name") or "").lower() != "cover":
                continue
            cover_id = attrs.get("content")
            if cover_id and book.get_item_with_id(cover_id) is not None:
                return cover_id
    for item in book.get_items():
        if item.get_type() == cover_type:
            return item.get_id()
        properties = getattr(item, "properties", None) or []
        if isinstance(properties, str):
            properties = properties.split()
        if "cover-image" in properties:
            return item.get_id()
    return None


def _decode_item(item: Any) -> str:
    return item.get_content().decode("utf-8", errors="replace")


def _spine_idref(entry: Any) -> str:
    if isinstance(entry, (list, tuple)):
        return str(entry[0]) if entry else ""
    return str(entry or "")


def open_book(path: Path) -> Book:
    try:
        import ebooklib  # type: ignore
        from ebooklib import epub  # type: ignore
    except Exception as exc:
        raise RuntimeError(f"ebooklib not available: {exc}") from exc

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise BookOpenError(f"Unable to open EPUB {path}: {exc}") from exc

    metadata = BookMetadata(
        title=_first_dc(book, "title"),
        creator=_first_dc(book, "creator"),
        publisher=_first_dc(book, "publisher"),
        language=_first_dc(book, "language"),
        date=_first_dc(book, "date"),
        cover_id=_find_cover_id(book, ebooklib.ITEM_COVER),
    )

    assets: Dict[str, AssetItem] = {}
    for item in book.get_items():
        assets[item.get_id()] = AssetItem(
            id=item.get_id(),
            media_type=str(getattr(item, "media_type", "") or ""),
            href=item.get_name(),
            fetch=item.get_content,
        )
    if not assets:
        LOG.warning("EPUB manifest is empty: %s", path)

    sections: List[Section] = []
    for entry in book.spine or []:
        idref = _spine_idref(entry)
        item = book.get_item_with_id(idref)
        if item is None:
            LOG.warning("Spine entry %r is missing from the manifest", idref)
            continue
        if item.get_type() != ebooklib.ITEM_DOCUMENT:
            continue
        sections.append(Section(id=idref, href=item.get_name(), fetch=lambda item=item: _decode_item(item)))

    LOG.info("Opened %s: %d section(s), %d manifest item(s)", path.name, len(sections), len(assets))
    return Book(metadata=metadata, assets=assets, sections=sections)
