import logging

from epub2obsidian import core
from epub2obsidian.models import BookMetadata
from epub2obsidian.pipeline import SECTION_SEPARATOR, render_body, tidy_markdown
from epub2obsidian.rules import RenderContext

from helpers import failing_section, make_asset, make_book, make_context, make_section


def test_empty_reading_order_warns_once(caplog):
    with caplog.at_level(logging.WARNING):
        body = render_body([], RenderContext())

    assert body == ""
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1


def test_sections_are_joined_and_empty_ones_skipped():
    sections = [
        make_section("c1", "c1.xhtml", "<h1>One</h1><p>First.</p>"),
        make_section("c2", "c2.xhtml", ""),
        make_section("c3", "c3.xhtml", "<h1>Three</h1><p>Third.</p>"),
    ]

    body = render_body(sections, make_context(sections))

    assert body.count(SECTION_SEPARATOR) == 2
    assert body.index("# One") < body.index("# Three")
    assert body.endswith(SECTION_SEPARATOR)


def test_failed_section_is_skipped_without_separator(caplog):
    sections = [failing_section("bad", "bad.xhtml"), make_section("ok", "ok.xhtml", "<h1>Ok</h1>")]

    body = render_body(sections, make_context(sections))

    assert body == "# Ok" + SECTION_SEPARATOR
    assert any(r.levelno == logging.WARNING and "bad" in r.getMessage() for r in caplog.records)


def test_progress_callback_receives_every_section():
    sections = [make_section("c1", "c1.xhtml", "<p>a</p>"), make_section("c2", "c2.xhtml", "<p>b</p>")]
    calls = []

    render_body(sections, make_context(sections), progress=lambda cur, tot, detail: calls.append((cur, tot, detail)))

    assert calls == [(1, 2, "c1.xhtml"), (2, 2, "c2.xhtml")]


def test_tidy_markdown_collapses_blank_runs():
    assert tidy_markdown("\n\nA  \n\n\n\nB\n\n") == "A\n\nB"


def test_render_book_forward_reference_and_frontmatter():
    sections = [
        make_section("front", "Text/front.xhtml", '<h1>Preface</h1><p>Skip to <a href="ch9.xhtml#end">the end</a>.</p>'),
        make_section("ch9", "Text/ch9.xhtml", '<h1>Nine</h1><h2 id="end">The End</h2>'),
    ]
    assets = [make_asset("cover-img", "Images/cover.jpg", media_type="image/jpeg")]
    metadata = BookMetadata(title='The "Best" Book', creator="Ann Author", language="en", cover_id="cover-img")
    book = make_book(sections, assets, metadata)

    text = core.render_book(book, {"Images/cover.jpg": "cover_1.jpg"}, core.ConversionConfig())

    assert text.startswith('---\ntitle: "The \\"Best\\" Book"\nauthor: "Ann Author"\nlanguage: "en"\n')
    assert 'cover: "assets/cover_1.jpg"' in text
    assert "tags: [epub, book]" in text
    assert "[[#The End|the end]]" in text
    assert text.endswith("---\n")


def test_render_book_without_frontmatter_uses_title_heading():
    sections = [make_section("c1", "c1.xhtml", "<p>Only text.</p>")]
    book = make_book(sections, metadata=BookMetadata(title="Plain"))

    text = core.render_book(book, {}, core.ConversionConfig(frontmatter=False))

    assert text.startswith("# Plain\n\n")
    assert "---\ntitle" not in text


def test_convert_book_writes_markdown_and_assets(tmp_path):
    sections = [make_section("c1", "Text/c1.xhtml", '<h1>Pics</h1><p><img src="../img/a.png" alt="a"/></p>')]
    assets = [
        make_asset("a", "img/a.png", b"first"),
        make_asset("style", "css/main.css", b"body{}", media_type="text/css"),
    ]
    book = make_book(sections, assets, BookMetadata(title="Pics"))

    md_path = core.convert_book(book, out_dir=tmp_path / "out", stem="My Book", config=core.ConversionConfig())

    assert md_path == tmp_path / "out" / "My Book.md"
    assert (tmp_path / "out" / "assets" / "a.png").read_bytes() == b"first"
    assert not (tmp_path / "out" / "assets" / "main.css").exists()
    assert "![a](assets/a.png)" in md_path.read_text(encoding="utf-8")


def test_tidy_markdown_keeps_hard_breaks_and_code_blocks():
    md_text = "Line one  \nLine two   \n\n\n```\ncode  \n\n\n\nmore\n```\nEnd  "

    assert tidy_markdown(md_text) == "Line one  \nLine two\n\n```\ncode  \n\n\n\nmore\n```\nEnd"


def test_line_breaks_survive_section_rendering():
    sections = [make_section("c1", "c1.xhtml", "<h1>Poem</h1><p>Roses are red<br/>Violets are blue</p>")]

    body = render_body(sections, make_context(sections))

    assert "Roses are red  \nViolets are blue" in body


def test_convert_book_keeps_non_ascii_stems_apart(tmp_path):
    config = core.ConversionConfig()
    first = make_book([make_section("c1", "c1.xhtml", "<h1>Neko</h1>")])
    second = make_book([make_section("c1", "c1.xhtml", "<h1>Kokoro</h1>")])

    neko = core.convert_book(first, out_dir=tmp_path, stem="吾輩は猫である", config=config)
    kokoro = core.convert_book(second, out_dir=tmp_path, stem="こころ", config=config)

    assert neko == tmp_path / "吾輩は猫である.md"
    assert kokoro == tmp_path / "こころ.md"
    assert "# Neko" in neko.read_text(encoding="utf-8")
    assert "# Kokoro" in kokoro.read_text(encoding="utf-8")


def test_slugify_filename_replaces_only_path_separators():
    assert core.slugify_filename("Vol. 1: Dune") == "Vol. 1: Dune"
    assert core.slugify_filename("a/b\\c\x00d") == "a_b_c_d"
    assert core.slugify_filename("  ") == "book"
    assert core.slugify_filename("..") == "book"
