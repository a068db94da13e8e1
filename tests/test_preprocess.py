from models import Reference
from preprocess import (
    DEFAULT_REFERENCE_TITLE,
    normalize_whitespace,
    preprocess_content,
    preprocess_references,
    strip_markup,
    truncate,
)


def test_normalize_whitespace() -> None:
    assert normalize_whitespace("  a\n\n b\t c  ") == "a b c"
    assert normalize_whitespace("") == ""


def test_truncate_marks_the_cut() -> None:
    assert truncate("abcdef  ghi", 8) == "abcdef..."
    assert truncate("short", 10) == "short"
    assert truncate("exactly", 7) == "exactly"


def test_strip_markup_returns_visible_text() -> None:
    assert strip_markup("<p>Hello <b>world</b></p>\n<p>Again</p>") == "Hello world Again"
    assert strip_markup("") == ""


def test_preprocess_content_normalizes_then_truncates() -> None:
    content = "<p>One   two</p>\n\n<p>three four five</p>"

    assert preprocess_content(content, 1000) == "<p>One two</p> <p>three four five</p>"
    assert preprocess_content(content, 10) == "<p>One two..."


def test_preprocess_references_cleans_and_drops_empty() -> None:
    references = [
        Reference(title="  Guide \n to bots ", url=" https://a.example/1 ", content="<h2>Bots</h2><p>Helpful text here.</p>"),
        Reference(title="Empty", url="https://b.example/2", content="<div> </div>"),
        Reference(title="", url="https://c.example/3", content="<p>" + "x" * 50 + "</p>"),
    ]

    processed = preprocess_references(references, max_length=20)

    assert [r.url for r in processed] == ["https://a.example/1", "https://c.example/3"]
    assert processed[0].title == "Guide to bots"
    assert processed[0].content == "Bots Helpful text he..."
    assert processed[1].title == DEFAULT_REFERENCE_TITLE
    assert processed[1].content == "x" * 20 + "..."
