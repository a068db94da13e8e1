import json

import pytest

from response_processor import (
    DEFAULT_SUMMARY,
    clean_generated_content,
    collapse_blank_lines,
    generate_summary,
    markdown_headings_to_html,
    parse_envelope,
    process_response,
    strip_code_fences,
    strip_document_declarations,
    validate_html_structure,
)

_HTML = "<h1>Customer Support Chatbots</h1>\n<h2>Why they matter</h2>\n<p>They answer questions quickly.</p>"


@pytest.mark.parametrize("fence", ["```", "```html", "```HTML", "```xml"])
def test_fenced_html_cleans_back_to_html(fence: str) -> None:
    wrapped = f"{fence}\n{_HTML}\n```"

    assert clean_generated_content(wrapped) == _HTML


def test_fences_with_windows_line_endings_are_stripped() -> None:
    assert clean_generated_content("```html\r\n<h1>x</h1>\r\n```\r\n") == "<h1>x</h1>"


def test_cleaning_clean_html_is_a_no_op() -> None:
    assert clean_generated_content(_HTML) == _HTML
    assert clean_generated_content(clean_generated_content(_HTML)) == _HTML


def test_strip_code_fences_keeps_wrapped_text() -> None:
    assert strip_code_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}\n'


def test_markdown_headings_map_to_matching_levels() -> None:
    text = "# Title\n## Section\n###### Deep\nNot # a heading"

    assert markdown_headings_to_html(text) == (
        "<h1>Title</h1>\n<h2>Section</h2>\n<h6>Deep</h6>\nNot # a heading"
    )


def test_document_declarations_are_removed() -> None:
    text = '<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE html>\n<h1>x</h1>'

    assert strip_document_declarations(text) == "\n\n<h1>x</h1>"
    assert clean_generated_content(text) == "<h1>x</h1>"


def test_collapse_blank_lines() -> None:
    assert collapse_blank_lines("a\n\n\n\nb\n\nc") == "a\n\nb\n\nc"


def test_process_response_reads_fenced_json_envelope() -> None:
    envelope = {
        "content": _HTML,
        "summary": "Chatbots help support teams.",
        "seo_analysis": {"score": 82, "checklist": [], "keyword_gaps": []},
    }
    raw = "```json\n" + json.dumps(envelope) + "\n```"

    result = process_response(raw)

    assert result.parsed is True
    assert result.content == _HTML
    assert result.summary == "Chatbots help support teams."
    assert result.model_seo_analysis == {"score": 82, "checklist": [], "keyword_gaps": []}
    assert result.warnings == ()


def test_process_response_finds_json_inside_chatter() -> None:
    raw = 'Here you go: {"content": "<h1>A</h1><p>First sentence. Second one.</p>"} Enjoy!'

    result = process_response(raw)

    assert result.parsed is True
    assert result.content == "<h1>A</h1><p>First sentence. Second one.</p>"
    # No summary in the envelope: derived from the first sentence.
    assert result.summary == "A First sentence."


def test_process_response_falls_back_to_raw_text() -> None:
    raw = "## Heading\n<p>The model ignored the JSON instructions.</p>"

    result = process_response(raw)

    assert result.parsed is False
    assert result.content == "<h2>Heading</h2>\n<p>The model ignored the JSON instructions.</p>"
    assert result.summary == DEFAULT_SUMMARY
    assert "Missing <h1> heading" in result.warnings


def test_parse_envelope_rejects_objects_without_content() -> None:
    assert parse_envelope('{"summary": "only a summary"}') is None
    assert parse_envelope('{"content": "   "}') is None
    assert parse_envelope("[1, 2, 3]") is None


def test_validate_html_structure_reports_problems() -> None:
    warnings = validate_html_structure("<h1>a</h1><h1>b</h1><p>open paragraph<ul><li>x</li></ul>")

    assert "Multiple <h1> headings found (2)" in warnings
    assert "Unbalanced <p> tags: 1 opened, 0 closed" in warnings
    assert not any("<ul>" in w for w in warnings)


def test_validate_html_structure_accepts_balanced_markup() -> None:
    assert validate_html_structure(_HTML) == []


def test_generate_summary_caps_length() -> None:
    sentence = "word " * 60 + "end."

    summary = generate_summary(f"<p>{sentence}</p>")

    assert len(summary) <= 160
    assert summary.endswith("...")


def test_generate_summary_uses_default_for_empty_content() -> None:
    assert generate_summary("<p> </p>") == DEFAULT_SUMMARY
