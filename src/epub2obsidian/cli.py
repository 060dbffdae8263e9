"""Command-line interface for epub2obsidian."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .version import __version__


def _get_usage() -> str:
    return (
        f"epub2obsidian {__version__}\n"
        "Usage:\n"
        "  epub2obsidian [--help] [--version|--ver]\n"
        "  epub2obsidian --input BOOK.epub [--to-dir TO_DIR] [options]\n\n"
        "Options:\n"
        "  --to-dir DIR                 Output directory (default: directory of the EPUB)\n"
        "  --assets-dir NAME            Image subdirectory name (default: assets)\n"
        "  --no-frontmatter             Emit a title heading instead of YAML frontmatter\n"
        "  --footnote-max-length N      Longest unmarked numbered paragraph treated as a footnote (default: 400)\n"
        "  --require-footnote-reference Only treat referenced ids as footnote definitions\n"
        "  --verbose                    Verbose progress logs\n"
        "  --debug                      Debug logs"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--ver", action="store_true")
    parser.add_argument("--input", "-i", help="EPUB file to convert")
    parser.add_argument("--to-dir", "-o", help="Output directory")
    parser.add_argument("--assets-dir", default="assets", help="Name of the image subdirectory")
    parser.add_argument("--no-frontmatter", action="store_true", help="Disable frontmatter generation")
    parser.add_argument(
        "--footnote-max-length",
        type=int,
        default=400,
        help="Maximum text length of an unmarked numbered paragraph treated as a footnote (default: 400)",
    )
    parser.add_argument(
        "--require-footnote-reference",
        action="store_true",
        help="Render footnote definitions only for ids targeted by a footnote reference",
    )
    parser.add_argument("--verbose", action="store_true", help="Verbose progress logs")
    parser.add_argument("--debug", action="store_true", help="Debug logs")
    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print(_get_usage())
        return 2

    if not argv or args.help:
        print(_get_usage())
        return 0

    if args.version or args.ver:
        print(__version__)
        return 0

    if args.footnote_max_length is None or args.footnote_max_length <= 0:
        print("Invalid value for --footnote-max-length: must be > 0", file=sys.stderr)
        return 6

    if not args.input:
        print(_get_usage())
        print("Option --input is required unless --help or --version/--ver is used", file=sys.stderr)
        return 6

    input_path = Path(args.input).expanduser().resolve()
    if not input_path.exists() or not input_path.is_file():
        print(f"File not found: {input_path}", file=sys.stderr)
        return 6

    to_dir = Path(args.to_dir).expanduser().resolve() if args.to_dir else input_path.parent
    if to_dir.exists() and not to_dir.is_dir():
        print(f"Output path is not a directory: {to_dir}", file=sys.stderr)
        return 7

    try:
        from epub2obsidian import core
        from epub2obsidian.policies import FootnotePolicy
    except Exception as exc:
        print(f"Unable to import epub2obsidian core: {exc}", file=sys.stderr)
        return 6

    core.setup_logging(args.verbose, args.debug)

    try:
        config = core.ConversionConfig(
            assets_dir=str(args.assets_dir),
            frontmatter=not args.no_frontmatter,
            verbose=bool(args.verbose),
            debug=bool(args.debug),
            footnote_policy=FootnotePolicy(
                max_length=int(args.footnote_max_length),
                require_reference=bool(args.require_footnote_reference),
            ),
        )
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 6

    try:
        md_path = core.run_conversion(input_path=input_path, out_dir=to_dir, config=config)
    except OSError as exc:
        print(f"Unable to write output to {to_dir}: {exc}", file=sys.stderr)
        return 7
    except RuntimeError as exc:
        print(f"Conversion failed: {exc}", file=sys.stderr)
        return 6

    print(f"Saved Markdown to: {md_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
