"""Search provider adapters: Serper web search and a deterministic offline stand-in."""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

import requests

from models import SearchResult

SERPER_API_URL = "https://google.serper.dev/search"
REQUEST_TIMEOUT_SECONDS = 15
DEFAULT_RESULT_COUNT = 5
DEFAULT_KEYWORD = "content-marketing"

STOPWORDS: frozenset[str] = frozenset({
    "a", "an", "and", "are", "at", "but", "by", "for", "from", "how", "in", "is",
    "of", "on", "or", "the", "to", "we", "what", "why", "with", "you", "your",
})

_MOCK_SOURCES: tuple[tuple[str, str], ...] = (
    ("Complete Guide to {keyword}: Best Practices and Strategies", "https://www.hubspot.com/blog/{slug}"),
    ("Understanding {keyword}: What You Need to Know", "https://www.forbes.com/advisor/{slug}"),
    ("{keyword} Explained: Expert Tips and Insights", "https://techcrunch.com/article/{slug}"),
    ("The Practical {keyword} Handbook", "https://www.entrepreneur.com/article/{slug}"),
)

_MOCK_PARAGRAPHS: tuple[str, ...] = (
    "Teams that invest in {keyword} consistently report clearer priorities and more measurable results.",
    "The most effective programs start with a specific audience, a defined problem and a plan for measuring progress over time.",
    "Practitioners recommend documenting each experiment so that lessons learned can be reused by the wider organization.",
    "Common mistakes include chasing every new trend, neglecting existing customers and skipping regular performance reviews.",
    "Automation helps with repetitive work, but human judgment remains essential for strategy and messaging decisions.",
    "Case studies show that small, consistent improvements tend to outperform occasional large overhauls.",
    "Before scaling an approach, validate it with a limited pilot and compare the outcome against a clear baseline.",
)

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")

LOGGER = logging.getLogger(__name__)


class SearchProvider(Protocol):
    def search(self, query: str) -> list[SearchResult]: ...


class SearchError(RuntimeError):
    """Raised when the search provider call fails."""


def extract_keywords(query: str) -> list[str]:
    """Lower-cased, stopword-filtered tokens of a query, in order of appearance."""
    keywords: list[str] = []
    for token in _TOKEN_RE.findall(query.lower()):
        if token in STOPWORDS or len(token) < 2 or token in keywords:
            continue
        keywords.append(token)
    return keywords


class SerperSearchProvider:
    """Google results through the Serper API."""

    def __init__(
        self,
        api_key: str,
        result_count: int = DEFAULT_RESULT_COUNT,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.result_count = result_count
        self.timeout = timeout

    def search(self, query: str) -> list[SearchResult]:
        headers = {
            "X-API-KEY": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {"q": query, "num": self.result_count}
        try:
            response = requests.post(SERPER_API_URL, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SearchError(f"Serper search failed for {query!r}: {exc}") from exc
        return _parse_organic_results(body)


def _parse_organic_results(body: Any) -> list[SearchResult]:
    if not isinstance(body, dict):
        return []
    organic = body.get("organic")
    if not isinstance(organic, list):
        return []

    results: list[SearchResult] = []
    for item in organic:
        if not isinstance(item, dict):
            continue
        link = item.get("link")
        if not isinstance(link, str) or not link:
            continue
        results.append(
            SearchResult(
                title=str(item.get("title") or ""),
                link=link,
                snippet=str(item.get("snippet") or ""),
            )
        )
    return results


class MockSearchProvider:
    """Deterministic results built from the query keywords; never touches the network.

    Each result carries its own content, so the collector does not scrape it.
    """

    def __init__(self, result_count: int = 3) -> None:
        self.result_count = min(result_count, len(_MOCK_SOURCES))

    def search(self, query: str) -> list[SearchResult]:
        keywords = extract_keywords(query)
        keyword = keywords[0] if keywords else DEFAULT_KEYWORD
        slug = "-".join(keywords[:3]) or DEFAULT_KEYWORD
        display = keyword.replace("-", " ").title()

        results: list[SearchResult] = []
        for title_template, link_template in _MOCK_SOURCES[: self.result_count]:
            results.append(
                SearchResult(
                    title=title_template.format(keyword=display),
                    link=link_template.format(slug=slug),
                    snippet=f"Expert insights and practical information about {display.lower()}.",
                    content=mock_content(display),
                )
            )
        return results


def mock_content(keyword: str) -> str:
    paragraphs = "\n".join(f"<p>{text.format(keyword=keyword.lower())}</p>" for text in _MOCK_PARAGRAPHS)
    return f"<h2>{keyword} in practice</h2>\n{paragraphs}"
