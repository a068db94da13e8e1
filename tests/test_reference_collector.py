from unittest.mock import MagicMock

from models import SearchResult
from reference_collector import ReferenceCollector, domain_of
from search_client import SearchError

_RESULTS = [
    SearchResult(title="Own post", link="https://www.myblog.com/post"),
    SearchResult(title="Own subdomain", link="https://help.myblog.com/x"),
    SearchResult(title="Broken page", link="https://broken.example/a"),
    SearchResult(title="Good one", link="https://good.example/b"),
    SearchResult(title="Good two", link="https://www.second.example/c"),
    SearchResult(title="Good three", link="https://third.example/d"),
]


def _provider(results: list[SearchResult]) -> MagicMock:
    provider = MagicMock()
    provider.search.return_value = results
    return provider


def _scraper() -> MagicMock:
    scraper = MagicMock()
    scraper.scrape.side_effect = lambda url: None if "broken" in url else f"<p>content of {url}</p>"
    return scraper


def test_collect_skips_own_domain_and_failed_scrapes() -> None:
    scraper = _scraper()
    collector = ReferenceCollector(_provider(_RESULTS), scraper, own_domains=("myblog.com",))

    references = collector.collect("chatbots", limit=2)

    assert [r.url for r in references] == ["https://good.example/b", "https://www.second.example/c"]
    assert references[0].title == "Good one"
    assert references[0].content == "<p>content of https://good.example/b</p>"
    scraped = [call.args[0] for call in scraper.scrape.call_args_list]
    assert not any("myblog" in url for url in scraped)
    assert "https://third.example/d" not in scraped


def test_collect_preserves_ranking_with_parallel_scrapes() -> None:
    collector = ReferenceCollector(
        _provider(_RESULTS), _scraper(), own_domains=("myblog.com",), max_workers=3
    )

    references = collector.collect("chatbots", limit=3)

    assert [r.title for r in references] == ["Good one", "Good two", "Good three"]


def test_collect_excludes_article_source_domain() -> None:
    collector = ReferenceCollector(_provider(_RESULTS), _scraper())

    references = collector.collect("chatbots", limit=5, exclude_domains=("https://myblog.com/original",))

    assert all("myblog" not in r.url for r in references)
    assert len(references) == 3


def test_collect_without_provider_uses_mock_results() -> None:
    scraper = _scraper()
    collector = ReferenceCollector(None, scraper)

    references = collector.collect("Chatbots for customer support", limit=2)

    assert len(references) == 2
    assert references[0].url == "https://www.hubspot.com/blog/chatbots-customer-support"
    scraper.scrape.assert_not_called()


def test_collect_falls_back_to_mock_when_search_fails() -> None:
    provider = MagicMock()
    provider.search.side_effect = SearchError("Serper search failed")
    collector = ReferenceCollector(provider, _scraper())

    references = collector.collect("Chatbots for customer support", limit=2)

    assert [r.url.split("/")[2] for r in references] == ["www.hubspot.com", "www.forbes.com"]


def test_collect_returns_empty_when_nothing_usable() -> None:
    scraper = MagicMock()
    scraper.scrape.return_value = None
    collector = ReferenceCollector(_provider(_RESULTS), scraper)

    assert collector.collect("chatbots", limit=2) == []
    assert collector.collect("chatbots", limit=0) == []


def test_domain_of_normalizes_hosts() -> None:
    assert domain_of("https://www.Example.com/path") == "example.com"
    assert domain_of("example.com") == "example.com"
    assert domain_of("") == ""
