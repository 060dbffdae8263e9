"""Image extraction into the flat assets directory."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Dict, Iterable, Set
from urllib.parse import unquote

from .models import AssetItem

LOG = logging.getLogger("epub2obsidian")


def unique_asset_name(basename: str, used: Set[str]) -> str:
    stem, ext = posixpath.splitext(basename)
    candidate = basename
    counter = 1
    while candidate in used:
        candidate = f"{stem}_{counter}{ext}"
        counter += 1
    used.add(candidate)
    return candidate


def asset_keys(href: str) -> Iterable[str]:
    decoded = unquote(href.split("?", 1)[0])
    yield posixpath.normpath(decoded)
    yield posixpath.basename(decoded)


def extract_assets(assets: Iterable[AssetItem], dest_dir: Path) -> Dict[str, str]:
    """Write every image asset into ``dest_dir`` and return the rename map.

    The map is keyed by the decoded original basename and by the decoded
    manifest path, so images sharing a basename stay distinguishable.
    """
    renames: Dict[str, str] = {}
    used: Set[str] = set()
    dest_dir.mkdir(parents=True, exist_ok=True)
    for item in assets:
        if not item.is_image:
            continue
        basename = posixpath.basename(unquote(item.href.split("?", 1)[0]))
        if not basename:
            LOG.warning("Skipping image %s: empty file name", item.id)
            continue
        try:
            data = item.read()
            filename = unique_asset_name(basename, used)
            (dest_dir / filename).write_bytes(data)
        except Exception as exc:
            LOG.warning("Could not extract image %s (%s): %s", item.id, item.href, exc)
            continue
        for key in asset_keys(item.href):
            renames[key] = filename
        if filename != basename:
            LOG.debug("Renamed image %s -> %s", item.href, filename)
    LOG.info("Extracted %d image(s) to %s", len(set(renames.values())), dest_dir)
    return renames
