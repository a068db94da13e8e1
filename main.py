"""CLI entrypoint for the content enhancement batch run."""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from article_store import ArticleStore, HttpArticleStore, JsonArticleStore
from cache import EnhancementCache, InMemoryCache, JsonFileCache
from config import Settings, load_settings
from enhancement_client import build_client
from errors import ArticleStoreError
from pipeline import EnhancementPipeline, run_batch
from prompt_builder import PromptOptions
from reference_collector import ReferenceCollector
from report import format_batch_summary, format_seo_report, write_run_report
from scraper import ScrapingClient
from search_client import MockSearchProvider, SerperSearchProvider


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Enhance pending articles with references and an LLM rewrite")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of pending articles to process")
    parser.add_argument("--article-id", default=None, help="Enhance a single article by id (even if already enhanced)")
    parser.add_argument(
        "--store",
        choices=["api", "file"],
        default="api",
        help="Where articles are read from and written back to (default: the article API)",
    )
    parser.add_argument("--articles-file", default="articles.json", help="JSON file used with --store file")
    parser.add_argument(
        "--keywords",
        default="",
        help="Comma-separated focus keywords for the rewrite and the title keyword check",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list pending articles and their references, without LLM calls or writes",
    )
    parser.add_argument("--report", action="store_true", help="Print an SEO report for every produced record")
    parser.add_argument("--report-csv", default=None, help="Write a per-article CSV run report to this path")
    return parser.parse_args(argv)


def build_store(args: argparse.Namespace, settings: Settings) -> ArticleStore:
    if args.store == "file":
        return JsonArticleStore(args.articles_file)
    return HttpArticleStore(settings.article_api_url)


def build_collector(settings: Settings) -> ReferenceCollector:
    search_provider = (
        SerperSearchProvider(
            settings.serper_api_key,
            result_count=settings.search_result_count,
            timeout=settings.search_timeout_seconds,
        )
        if settings.serper_api_key
        else None
    )
    return ReferenceCollector(
        search_provider,
        ScrapingClient(timeout=settings.scrape_timeout_seconds),
        fallback_provider=MockSearchProvider(),
        own_domains=(settings.site_domain,) if settings.site_domain else (),
        max_workers=settings.scrape_workers,
    )


def build_pipeline(settings: Settings, focus_keywords: tuple[str, ...] = ()) -> EnhancementPipeline:
    backend = JsonFileCache(settings.cache_path) if settings.cache_path else InMemoryCache()
    return EnhancementPipeline(
        build_collector(settings),
        build_client(settings),
        EnhancementCache(backend, ttl_seconds=settings.cache_ttl_seconds),
        options=PromptOptions.from_settings(settings, focus_keywords=focus_keywords),
        reference_limit=settings.reference_limit,
        max_content_length=settings.max_content_length,
        max_reference_length=settings.max_reference_length,
    )


def run(args: argparse.Namespace, settings: Settings) -> int:
    """Run one batch cycle; returns the process exit code."""
    store = build_store(args, settings)
    limit = args.limit if args.limit is not None else settings.batch_size

    articles = None
    if args.article_id:
        article = store.get(args.article_id)
        if article is None:
            logging.error("Article %s not found", args.article_id)
            return 1
        articles = [article]

    if args.dry_run:
        collector = build_collector(settings)
        for article in articles if articles is not None else store.list_pending(limit):
            references = collector.collect(
                article.title, settings.reference_limit, exclude_domains=(article.source_url,)
            )
            logging.info("[dry-run] Would enhance: %s (%s references)", article.title, len(references))
            for ref in references:
                logging.info("[dry-run]   reference: %s <%s>", ref.title, ref.url)
        return 0

    keywords = tuple(k.strip() for k in args.keywords.split(",") if k.strip())
    pipeline = build_pipeline(settings, focus_keywords=keywords)
    summary = run_batch(store, pipeline, limit, articles=articles)

    if args.report:
        for outcome in summary.outcomes:
            if outcome.record is not None:
                print(format_seo_report(outcome.title or f"Article {outcome.article_id}", outcome.record))
    if args.report_csv:
        write_run_report(summary.outcomes, args.report_csv)

    print(format_batch_summary(summary))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the pipeline."""
    load_dotenv()
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    args = parse_args(argv)
    try:
        return run(args, settings)
    except ArticleStoreError as exc:
        logging.error("Article store unavailable: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
