"""Reference normalization and anchor slug helpers."""

from __future__ import annotations

import posixpath
import re
from typing import Tuple
from urllib.parse import unquote

DOCUMENT_EXT_RE = re.compile(r"\.x?html?$", re.IGNORECASE)
NON_SLUG_RE = re.compile(r"[^A-Za-z0-9_-]+")
EXTERNAL_SCHEMES = ("http:", "https:", "mailto:")


def normalize_reference(ref: str) -> str:
    if not ref:
        return ""
    path = ref.split("#", 1)[0].split("?", 1)[0]
    return posixpath.basename(unquote(path))


def slugify_anchor(raw: str) -> str:
    if not raw:
        return ""
    stem = DOCUMENT_EXT_RE.sub("", raw)
    return NON_SLUG_RE.sub("-", stem).strip("-")


def split_fragment(href: str) -> Tuple[str, str]:
    if "#" not in href:
        return href, ""
    file_part, fragment = href.split("#", 1)
    return file_part, fragment


def is_external_href(href: str) -> bool:
    return href.strip().lower().startswith(EXTERNAL_SCHEMES)
