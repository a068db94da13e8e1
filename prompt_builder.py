"""Prompt construction for the article rewrite step.

Everything here is pure: identical arguments always produce byte-identical
prompts, which the cache relies on.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from config import Settings
from models import Reference
from preprocess import strip_markup

PROMPT_VERSION = "v2.0"

MIN_TARGET_WORDS = 300
MIN_TARGET_UPPER_WORDS = 500

SAFETY_CATEGORIES: tuple[str, ...] = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
DEFAULT_SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"

_PROMPT_TEMPLATE = """You are a senior content strategist and SEO editor.
Rewrite the ORIGINAL ARTICLE below into a more useful, better structured and search-optimized article.
Use the REFERENCE ARTICLES only as supporting material: add facts, examples and angles they cover,
but never copy sentences from them.

AUDIENCE: {audience}
GOALS: {goals}
TONE: {tone}
FOCUS KEYWORDS: {keywords}

LENGTH:
- Write between {min_words} and {max_words} words.

STRUCTURE:
- Exactly one <h1> holding the article title.
- Use <h2> for main sections and <h3> for subsections; never skip a heading level.
- Keep paragraphs short (2-4 sentences) inside <p> tags.
- Use <ul>/<ol> with <li> for steps, lists and comparisons.
- Wrap key terms and takeaways in <strong>.
- End with a section titled <h2>Sources & Further Reading</h2> that lists every reference
  as a link: <a href="URL">Title</a>.

OUTPUT RULES:
- The "content" value must be HTML only: no markdown, no code fences, no <html>, <head> or <body> tags.
- Respond with a single JSON object and nothing else, following this schema:
{{
  "content": "<h1>...</h1> ... full HTML article ...",
  "summary": "One or two sentence meta description, at most 160 characters.",
  "seo_analysis": {{
    "score": 0,
    "checklist": [{{"label": "", "status": "pass|warn|fail", "message": ""}}],
    "keyword_gaps": []
  }}
}}

ORIGINAL ARTICLE:
{content}

REFERENCE ARTICLES:
{references}
"""


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Sampling parameters and safety thresholds sent with the prompt."""

    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192
    stop_sequences: tuple[str, ...] = ()
    safety_settings: tuple[tuple[str, str], ...] = tuple(
        (category, DEFAULT_SAFETY_THRESHOLD) for category in SAFETY_CATEGORIES
    )

    def generation_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
            "stopSequences": list(self.stop_sequences),
        }

    def safety_payload(self) -> list[dict[str, str]]:
        return [{"category": category, "threshold": threshold} for category, threshold in self.safety_settings]


@dataclass(frozen=True, slots=True)
class PromptOptions:
    """Editorial knobs plus generation overrides for one rewrite."""

    focus_keywords: tuple[str, ...] = ()
    target_audience: str = "general audience"
    content_goals: str = "comprehensive information"
    tone_style: str = "professional and authoritative"
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> PromptOptions:
        generation = GenerationConfig(
            temperature=settings.temperature,
            top_k=settings.top_k,
            top_p=settings.top_p,
            max_output_tokens=settings.max_output_tokens,
            safety_settings=(
                ("HARM_CATEGORY_HARASSMENT", settings.safety_harassment),
                ("HARM_CATEGORY_HATE_SPEECH", settings.safety_hate_speech),
                ("HARM_CATEGORY_SEXUALLY_EXPLICIT", settings.safety_sexual),
                ("HARM_CATEGORY_DANGEROUS_CONTENT", settings.safety_dangerous),
            ),
        )
        return cls(generation=generation, **overrides)


@dataclass(frozen=True, slots=True)
class PromptRequest:
    prompt: str
    generation_config: GenerationConfig
    min_words: int
    max_words: int


def word_count(text: str) -> int:
    return len(strip_markup(text).split())


def target_word_band(original_words: int) -> tuple[int, int]:
    """Target length for the rewrite: 80%..150% of the original, with floors."""
    return (
        max(MIN_TARGET_WORDS, _round_half_up(original_words * 0.8)),
        max(MIN_TARGET_UPPER_WORDS, _round_half_up(original_words * 1.5)),
    )


def format_references(references: Sequence[Reference]) -> str:
    if not references:
        return "No references provided."
    blocks = []
    for index, ref in enumerate(references, start=1):
        blocks.append(
            f"--- REFERENCE {index} ---\n"
            f"Title: {ref.title}\n"
            f"URL: {ref.url}\n"
            f"Content:\n{ref.content}\n"
        )
    return "\n".join(blocks)


def build_prompt(
    content: str,
    references: Sequence[Reference],
    options: PromptOptions | None = None,
) -> PromptRequest:
    """Assemble the rewrite prompt and its generation config."""
    options = options or PromptOptions()
    min_words, max_words = target_word_band(word_count(content))
    keywords = ", ".join(options.focus_keywords) if options.focus_keywords else "derive them from the article topic"

    prompt = _PROMPT_TEMPLATE.format(
        min_words=min_words,
        max_words=max_words,
        audience=options.target_audience,
        goals=options.content_goals,
        tone=options.tone_style,
        keywords=keywords,
        content=content,
        references=format_references(references),
    )
    return PromptRequest(
        prompt=prompt,
        generation_config=options.generation,
        min_words=min_words,
        max_words=max_words,
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
