"""Rule-based SEO and readability scoring of enhanced content.

Every function here is deterministic: the same HTML, title and references
always produce the same score, checklist and keyword gaps.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence

from models import ChecklistItem, ContentMetrics, Reference, SeoAnalysis

MAX_SCORE = 100
MAX_KEYWORD_GAPS = 8
MIN_GAP_TOKEN_LENGTH = 5
LONG_PARAGRAPH_WORDS = 80
LONG_SENTENCE_WORDS = 25
WORDS_PER_MINUTE = 200

PASS = "pass"
WARN = "warn"
FAIL = "fail"

GAP_STOPWORDS: frozenset[str] = frozenset({
    "the", "and", "for", "with", "that", "this", "how", "what", "why", "guide",
    "best", "top", "review", "your", "from", "about", "their", "which", "these",
    "those", "there", "where", "while", "would", "could", "should", "using",
    "complete", "ultimate", "things", "tips", "2023", "2024", "2025", "2026",
})

TITLE_STOPWORDS: frozenset[str] = frozenset({
    "the", "and", "for", "with", "you", "your", "are", "how", "what", "why",
    "when", "who", "our", "its", "can", "not", "but", "all", "from", "into",
})

PRIORITY_BY_IMPACT: dict[str, str] = {"high": "critical", "medium": "important", "low": "optional"}
_PRIORITY_ORDER: dict[str, int] = {"critical": 0, "important": 1, "optional": 2}

_TAG_RE = re.compile(r"<[^>]*>")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_HEADING_RE = re.compile(r"<h([1-6])(?:\s[^>]*)?>(.*?)</h\1\s*>", re.IGNORECASE | re.DOTALL)
_SYLLABLE_RE = re.compile(r"[aeiouy]+")
_TOKEN_RE = re.compile(r"[a-z0-9]+")


# ── Text helpers ──────────────────────────────────────────────────────────


def visible_text(html: str) -> str:
    """Tags replaced by spaces, whitespace collapsed."""
    return " ".join(_TAG_RE.sub(" ", html or "").split())


def _count(pattern: str, html: str) -> int:
    return len(re.findall(pattern, html, re.IGNORECASE))


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _avg_sentence_length(word_total: int, sentence_total: int) -> int:
    return _round_half_up(word_total / sentence_total) if sentence_total else 0


# ── Individual checks ─────────────────────────────────────────────────────
# Each check returns the checklist item and the penalty it costs.


def check_title_length(title: str) -> tuple[ChecklistItem, int]:
    length = len(title.strip())
    if length < 30:
        return ChecklistItem(
            id="title_len",
            label="Title Length",
            status=WARN,
            message=f"Title is too short ({length} characters).",
            impact="high",
            suggestion="Expand the title to 30-60 characters and include the primary keyword.",
        ), 10
    if length > 60:
        return ChecklistItem(
            id="title_len",
            label="Title Length",
            status=WARN,
            message=f"Title is too long ({length} characters) and may be truncated in search results.",
            impact="medium",
            suggestion="Shorten the title to at most 60 characters.",
        ), 5
    return ChecklistItem(
        id="title_len",
        label="Title Length",
        status=PASS,
        message=f"Title length is good ({length} characters).",
        impact="high",
    ), 0


def check_word_count(word_total: int) -> tuple[ChecklistItem, int]:
    if word_total < 300:
        return ChecklistItem(
            id="word_count",
            label="Content Length",
            status=FAIL,
            message=f"Content is thin ({word_total} words).",
            impact="high",
            suggestion="Expand the article to at least 600 words; 1000+ is better for competitive topics.",
        ), 25
    if word_total < 600:
        return ChecklistItem(
            id="word_count",
            label="Content Length",
            status=WARN,
            message=f"Content is short ({word_total} words).",
            impact="high",
            suggestion="Add examples, data or an FAQ section to reach 1000+ words.",
        ), 15
    if word_total < 1000:
        return ChecklistItem(
            id="word_count",
            label="Content Length",
            status=WARN,
            message=f"Content length is acceptable ({word_total} words).",
            impact="medium",
            suggestion="Deepen the coverage to 1000+ words to compete on comprehensive queries.",
        ), 5
    return ChecklistItem(
        id="word_count",
        label="Content Length",
        status=PASS,
        message=f"Content length is excellent ({word_total} words).",
        impact="high",
    ), 0


def check_h2_structure(h2_total: int) -> tuple[ChecklistItem, int]:
    if h2_total < 2:
        return ChecklistItem(
            id="structure_h2",
            label="Content Structure (H2)",
            status=FAIL,
            message=f"Only {h2_total} H2 heading(s) found.",
            impact="high",
            suggestion="Break the content into at least 4 sections with descriptive H2 headings.",
        ), 15
    if h2_total < 4:
        return ChecklistItem(
            id="structure_h2",
            label="Content Structure (H2)",
            status=WARN,
            message=f"{h2_total} H2 headings found.",
            impact="medium",
            suggestion="Add more H2 sections so readers can scan the article.",
        ), 5
    return ChecklistItem(
        id="structure_h2",
        label="Content Structure (H2)",
        status=PASS,
        message=f"Good heading structure ({h2_total} H2 headings).",
        impact="high",
    ), 0


def check_links(link_total: int) -> tuple[ChecklistItem, int]:
    if link_total == 0:
        return ChecklistItem(
            id="links",
            label="Internal & External Links",
            status=FAIL,
            message="No links found.",
            impact="medium",
            suggestion="Link to related articles and to authoritative sources.",
        ), 10
    if link_total < 3:
        return ChecklistItem(
            id="links",
            label="Internal & External Links",
            status=WARN,
            message=f"Only {link_total} link(s) found.",
            impact="medium",
            suggestion="Add a few more internal and external links.",
        ), 5
    return ChecklistItem(
        id="links",
        label="Internal & External Links",
        status=PASS,
        message=f"Good linking ({link_total} links).",
        impact="medium",
    ), 0


def check_images(image_total: int) -> tuple[ChecklistItem, int]:
    if image_total == 0:
        return ChecklistItem(
            id="images",
            label="Visual Content",
            status=WARN,
            message="No images found.",
            impact="medium",
            suggestion="Add at least one relevant image with descriptive alt text.",
        ), 8
    return ChecklistItem(
        id="images",
        label="Visual Content",
        status=PASS,
        message=f"{image_total} image(s) found.",
        impact="medium",
    ), 0


def check_sentence_length(avg_words: int) -> tuple[ChecklistItem, int]:
    if avg_words > LONG_SENTENCE_WORDS:
        return ChecklistItem(
            id="readability_sentence",
            label="Sentence Length",
            status=WARN,
            message=f"Average sentence length is {avg_words} words.",
            impact="medium",
            suggestion="Split long sentences; aim for 15-20 words on average.",
        ), 8
    return ChecklistItem(
        id="readability_sentence",
        label="Sentence Length",
        status=PASS,
        message=f"Average sentence length is {avg_words} words.",
        impact="medium",
    ), 0


def check_paragraph_length(html: str) -> tuple[ChecklistItem, int]:
    long_paragraphs = sum(
        1 for inner in _PARAGRAPH_RE.findall(html) if len(visible_text(inner).split()) > LONG_PARAGRAPH_WORDS
    )
    if long_paragraphs:
        return ChecklistItem(
            id="paragraph_length",
            label="Paragraph Length",
            status=WARN,
            message=f"{long_paragraphs} paragraph(s) exceed {LONG_PARAGRAPH_WORDS} words.",
            impact="low",
            suggestion="Break long paragraphs into 2-4 sentence blocks.",
        ), 5
    return ChecklistItem(
        id="paragraph_length",
        label="Paragraph Length",
        status=PASS,
        message="Paragraphs are easy to scan.",
        impact="low",
    ), 0


def check_title_keyword(
    title: str,
    body_text: str,
    focus_keywords: Sequence[str] | None = None,
) -> tuple[ChecklistItem, int]:
    """With focus keywords the title must contain one; otherwise a significant title word must appear in the body."""
    title_lower = title.lower()
    if focus_keywords:
        present = any(kw.lower().strip() and kw.lower().strip() in title_lower for kw in focus_keywords)
    else:
        body_tokens = set(_TOKEN_RE.findall(body_text.lower()))
        title_tokens = [
            t for t in _TOKEN_RE.findall(title_lower) if len(t) >= 3 and t not in TITLE_STOPWORDS
        ]
        present = any(t in body_tokens for t in title_tokens)

    if not present:
        return ChecklistItem(
            id="title_keyword",
            label="Keyword in Title",
            status=WARN,
            message="The title does not contain a primary keyword of the article.",
            impact="high",
            suggestion="Put the main keyword near the start of the title.",
        ), 5
    return ChecklistItem(
        id="title_keyword",
        label="Keyword in Title",
        status=PASS,
        message="The title contains a primary keyword.",
        impact="high",
    ), 0


# ── Analysis entry points ─────────────────────────────────────────────────


def analyze_seo(
    html_content: str,
    title: str,
    references: Iterable[Reference] = (),
    focus_keywords: Sequence[str] | None = None,
) -> SeoAnalysis:
    """Score content from 100 down by per-check penalties, clamped to [0, 100]."""
    text = visible_text(html_content)
    word_total = len(text.split())
    avg_words = _avg_sentence_length(word_total, len(_sentences(text)))

    results = [
        check_title_length(title),
        check_word_count(word_total),
        check_h2_structure(_count(r"<h2", html_content)),
        check_links(_count(r"<a\s", html_content)),
        check_images(_count(r"<img\s", html_content)),
        check_sentence_length(avg_words),
        check_paragraph_length(html_content),
        check_title_keyword(title, text, focus_keywords),
    ]

    penalty = sum(cost for _, cost in results)
    score = max(0, min(MAX_SCORE, MAX_SCORE - penalty))
    return SeoAnalysis(
        score=score,
        checklist=tuple(item for item, _ in results),
        keyword_gaps=tuple(keyword_gaps(html_content, references)),
    )


def keyword_gaps(html_content: str, references: Iterable[Reference], limit: int = MAX_KEYWORD_GAPS) -> list[str]:
    """Significant reference-title words missing from the content, in first-seen order."""
    content_lower = visible_text(html_content).lower()
    gaps: list[str] = []
    for ref in references:
        for token in re.sub(r"[^\w\s]", "", ref.title.lower()).split():
            if len(token) < MIN_GAP_TOKEN_LENGTH or token in GAP_STOPWORDS:
                continue
            if token in content_lower or token in gaps:
                continue
            gaps.append(token)
            if len(gaps) >= limit:
                return gaps
    return gaps


def improvement_suggestions(checklist: Iterable[ChecklistItem]) -> list[dict[str, str]]:
    """Actionable suggestions for failing checks, most important first."""
    suggestions = [
        {
            "id": item.id,
            "label": item.label,
            "priority": PRIORITY_BY_IMPACT.get(item.impact, "optional"),
            "suggestion": item.suggestion,
        }
        for item in checklist
        if item.status != PASS and item.suggestion
    ]
    return sorted(suggestions, key=lambda s: _PRIORITY_ORDER[s["priority"]])


def extract_headings(html: str) -> list[tuple[int, str]]:
    """Ordered (level, text) outline of the headings in `html`."""
    return [(int(level), visible_text(inner)) for level, inner in _HEADING_RE.findall(html)]


def content_metrics(html_content: str, original_html: str = "") -> ContentMetrics:
    text = visible_text(html_content)
    words = text.split()
    sentence_total = len(_sentences(text))

    return ContentMetrics(
        word_count=len(words),
        original_word_count=len(visible_text(original_html).split()),
        character_count=len(text),
        paragraph_count=_count(r"<p[\s>]", html_content),
        h1_count=_count(r"<h1[\s>]", html_content),
        h2_count=_count(r"<h2[\s>]", html_content),
        h3_count=_count(r"<h3[\s>]", html_content),
        list_count=_count(r"<(?:ul|ol)[\s>]", html_content),
        link_count=_count(r"<a\s", html_content),
        image_count=_count(r"<img\s", html_content),
        avg_sentence_length=_avg_sentence_length(len(words), sentence_total),
        reading_time_minutes=max(1, math.ceil(len(words) / WORDS_PER_MINUTE)),
        readability_score=readability_score(words, sentence_total),
    )


def readability_score(words: Sequence[str], sentence_total: int) -> float:
    """Flesch reading ease with vowel-group syllable counting, clamped to [0, 100]."""
    if not words or not sentence_total:
        return 0.0
    syllables = sum(max(1, len(_SYLLABLE_RE.findall(word.lower()))) for word in words)
    score = 206.835 - 1.015 * (len(words) / sentence_total) - 84.6 * (syllables / len(words))
    return round(max(0.0, min(100.0, score)), 1)
