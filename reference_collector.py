"""Find and scrape external references for an article."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlparse

from models import Reference, SearchResult
from scraper import ScrapingClient
from search_client import MockSearchProvider, SearchError, SearchProvider

LOGGER = logging.getLogger(__name__)


class ReferenceCollector:
    """Search, filter out the article's own site, then scrape in ranked order.

    `search_provider=None` means no credentials: the deterministic mock
    provider is used instead. Provider errors also fall back to the mock.
    """

    def __init__(
        self,
        search_provider: SearchProvider | None,
        scraper: ScrapingClient,
        *,
        fallback_provider: SearchProvider | None = None,
        own_domains: Iterable[str] = (),
        max_workers: int = 1,
    ) -> None:
        self.search_provider = search_provider
        self.fallback_provider = fallback_provider or MockSearchProvider()
        self.scraper = scraper
        self.own_domains = tuple(domain_of(d) for d in own_domains if d)
        self.max_workers = max(1, max_workers)

    def collect(self, query: str, limit: int, exclude_domains: Iterable[str] = ()) -> list[Reference]:
        if limit <= 0:
            return []

        results = self._search(query)
        blocked = self.own_domains + tuple(domain_of(d) for d in exclude_domains if d)
        candidates = [r for r in results if not _belongs_to(r.link, blocked)]
        LOGGER.info(
            "Search for %r: results=%s candidates=%s (excluded %s own-domain)",
            query,
            len(results),
            len(candidates),
            len(results) - len(candidates),
        )

        references: list[Reference] = []
        position = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            while len(references) < limit and position < len(candidates):
                window = candidates[position : position + min(limit - len(references), self.max_workers)]
                position += len(window)
                # map() yields in submission order, so ranking is preserved.
                for result, content in zip(window, pool.map(self._fetch, window)):
                    if content is None:
                        continue
                    references.append(Reference(title=result.title, url=result.link, content=content))

        LOGGER.info("Collected %s/%s references for %r", len(references), limit, query)
        return references

    def _search(self, query: str) -> list[SearchResult]:
        if self.search_provider is None:
            LOGGER.info("No search credentials configured; using mock references")
            return self.fallback_provider.search(query)
        try:
            return self.search_provider.search(query)
        except SearchError as exc:
            LOGGER.warning("Search provider failed, falling back to mock references: %s", exc)
            return self.fallback_provider.search(query)

    def _fetch(self, result: SearchResult) -> str | None:
        if result.content is not None:
            return result.content
        content = self.scraper.scrape(result.link)
        if content is None:
            LOGGER.info("Skipping reference without usable content: %s", result.link)
        return content


def domain_of(url: str) -> str:
    """Host of a URL (or bare domain) without a leading www."""
    if "//" not in url:
        url = f"//{url}"
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _belongs_to(url: str, domains: tuple[str, ...]) -> bool:
    host = domain_of(url)
    if not host:
        return True
    return any(host == d or host.endswith("." + d) for d in domains)
