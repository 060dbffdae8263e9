"""epub2obsidian: convert EPUB books into a single Obsidian-ready Markdown file."""

from .version import __version__

__all__ = ["__version__"]
