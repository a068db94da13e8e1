"""Normalization and truncation of article and reference text before prompting."""

from __future__ import annotations

import re
from collections.abc import Iterable

from bs4 import BeautifulSoup

from models import Reference

ELLIPSIS = "..."
DEFAULT_REFERENCE_TITLE = "Untitled Reference"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def truncate(text: str, max_length: int) -> str:
    """Cut `text` to `max_length` characters and mark the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + ELLIPSIS


def strip_markup(html: str) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    return normalize_whitespace(soup.get_text(" "))


def preprocess_content(content: str, max_length: int) -> str:
    return truncate(normalize_whitespace(content), max_length)


def preprocess_references(references: Iterable[Reference], max_length: int) -> list[Reference]:
    """Plain-text, length-capped copies of the references; empty ones are dropped."""
    processed: list[Reference] = []
    for ref in references:
        text = strip_markup(ref.content)
        if not text:
            continue
        processed.append(
            Reference(
                title=normalize_whitespace(ref.title) or DEFAULT_REFERENCE_TITLE,
                url=ref.url.strip(),
                content=truncate(text, max_length),
            )
        )
    return processed
