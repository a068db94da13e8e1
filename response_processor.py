"""Clean, parse and sanity-check raw model output."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from json import JSONDecodeError
from typing import Any

from errors import ErrorKind
from preprocess import strip_markup

DEFAULT_SUMMARY = "Enhanced SEO version."
SUMMARY_MAX_LENGTH = 160

_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w-]*[ \t]*\r?$\n?", re.MULTILINE)
_MARKDOWN_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*$", re.MULTILINE)
_XML_DECLARATION_RE = re.compile(r"<\?xml[^>]*\?>", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_FIRST_SENTENCE_RE = re.compile(r"^[^.!?]+[.!?]")

_H1_RE = re.compile(r"<h1[\s>]", re.IGNORECASE)
_TRACKED_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "ul", "ol", "li", "strong", "em", "div", "section")

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessedResponse:
    content: str
    summary: str
    parsed: bool
    model_seo_analysis: dict[str, Any] | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)


def strip_code_fences(text: str) -> str:
    """Drop ``` / ```json / ```html fence lines, keeping what they wrap."""
    return _FENCE_LINE_RE.sub("", text)


def markdown_headings_to_html(text: str) -> str:
    """Turn `#`..`######` heading lines into the matching <h1>..<h6> tags."""

    def replace(match: re.Match[str]) -> str:
        level = len(match.group(1))
        return f"<h{level}>{match.group(2)}</h{level}>"

    return _MARKDOWN_HEADING_RE.sub(replace, text)


def strip_document_declarations(text: str) -> str:
    return _DOCTYPE_RE.sub("", _XML_DECLARATION_RE.sub("", text))


def collapse_blank_lines(text: str) -> str:
    return _BLANK_LINES_RE.sub("\n\n", text)


def clean_generated_content(text: str) -> str:
    """Apply every cleanup step; running it on already clean HTML changes nothing."""
    cleaned = strip_code_fences(text)
    cleaned = strip_document_declarations(cleaned)
    cleaned = markdown_headings_to_html(cleaned)
    cleaned = collapse_blank_lines(cleaned)
    return cleaned.strip()


def parse_envelope(text: str) -> dict[str, Any] | None:
    """Return the {content, summary, seo_analysis} object, or None if there is none."""
    try:
        parsed = json.loads(text)
    except JSONDecodeError:
        parsed = _extract_first_json_object(text)

    if not isinstance(parsed, dict):
        return None
    if not isinstance(parsed.get("content"), str) or not parsed["content"].strip():
        return None
    return parsed


def _extract_first_json_object(content: str) -> dict[str, Any] | None:
    """Extract the first decodable JSON object from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "{":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            return candidate
    return None


def validate_html_structure(html: str) -> list[str]:
    """Non-fatal structural warnings for generated HTML."""
    warnings: list[str] = []

    h1_count = len(_H1_RE.findall(html))
    if h1_count == 0:
        warnings.append("Missing <h1> heading")
    elif h1_count > 1:
        warnings.append(f"Multiple <h1> headings found ({h1_count})")

    for tag in _TRACKED_TAGS:
        opened = len(re.findall(rf"<{tag}(?:\s[^>]*)?>", html, re.IGNORECASE))
        closed = len(re.findall(rf"</{tag}\s*>", html, re.IGNORECASE))
        if opened != closed:
            warnings.append(f"Unbalanced <{tag}> tags: {opened} opened, {closed} closed")

    return warnings


def generate_summary(html: str, max_length: int = SUMMARY_MAX_LENGTH) -> str:
    """First sentence of the visible text, capped for use as a meta description."""
    text = strip_markup(html)
    if not text:
        return DEFAULT_SUMMARY

    match = _FIRST_SENTENCE_RE.match(text)
    summary = match.group(0).strip() if match else text
    if len(summary) > max_length:
        summary = summary[: max_length - 3].rstrip() + "..."
    return summary


def process_response(raw_text: str) -> ProcessedResponse:
    """Turn raw model text into cleaned HTML, a summary and structural warnings."""
    envelope = parse_envelope(clean_generated_content(raw_text))
    if envelope is None:
        LOGGER.warning("%s: model output was not a JSON envelope; using the raw text as content", ErrorKind.PARSE_ERROR.value)
        content = clean_generated_content(raw_text)
        summary = DEFAULT_SUMMARY
        seo_analysis = None
        parsed = False
    else:
        content = clean_generated_content(envelope["content"])
        raw_summary = envelope.get("summary")
        summary = raw_summary.strip() if isinstance(raw_summary, str) and raw_summary.strip() else ""
        summary = summary or generate_summary(content)
        seo_analysis = envelope.get("seo_analysis") or envelope.get("seoAnalysis")
        seo_analysis = seo_analysis if isinstance(seo_analysis, dict) else None
        parsed = True

    warnings = validate_html_structure(content)
    for warning in warnings:
        LOGGER.warning("Generated HTML: %s", warning)

    return ProcessedResponse(
        content=content,
        summary=summary,
        parsed=parsed,
        model_seo_analysis=seo_analysis,
        warnings=tuple(warnings),
    )
