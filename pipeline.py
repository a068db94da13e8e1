"""Per-article enhancement state machine and the batch runner around it."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from article_store import ArticleStore
from cache import EnhancementCache, fingerprint
from enhancement_client import EnhancementClient
from errors import ArticleStoreError, EnhancementError, ErrorKind
from models import Article, EnhancementRecord, Reference
from preprocess import ELLIPSIS, preprocess_content, preprocess_references, strip_markup, truncate
from prompt_builder import PROMPT_VERSION, PromptOptions, build_prompt
from quality_analyzer import analyze_seo, content_metrics
from reference_collector import ReferenceCollector
from response_processor import generate_summary, process_response

DEFAULT_REFERENCE_LIMIT = 2
DEFAULT_BATCH_SIZE = 5
MAX_CONTENT_LENGTH = 15000
MAX_REFERENCE_LENGTH = 1200
FALLBACK_SUMMARY_LENGTH = 160

LOGGER = logging.getLogger(__name__)


class PipelineState(str, Enum):
    COLLECTING_REFERENCES = "collecting_references"
    PREPROCESSING = "preprocessing"
    PROMPTING = "prompting"
    GENERATING = "generating"
    PROCESSING = "processing"
    SCORING = "scoring"
    SKIPPED = "skipped"
    CACHED = "cached"
    FRESH = "fresh"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    """Terminal result for one article; every state but SKIPPED carries a record."""

    article_id: str
    state: PipelineState
    record: EnhancementRecord | None = None
    reason: str = ""
    title: str = ""


@dataclass(slots=True)
class BatchSummary:
    processed: int = 0
    fresh: int = 0
    cached: int = 0
    fallback: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: list[PipelineOutcome] = field(default_factory=list)


class EnhancementPipeline:
    """References → prompt → LLM → cleanup → scoring, with caching and fallback."""

    def __init__(
        self,
        collector: ReferenceCollector,
        client: EnhancementClient,
        cache: EnhancementCache | None = None,
        *,
        options: PromptOptions | None = None,
        reference_limit: int = DEFAULT_REFERENCE_LIMIT,
        max_content_length: int = MAX_CONTENT_LENGTH,
        max_reference_length: int = MAX_REFERENCE_LENGTH,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.collector = collector
        self.client = client
        self.cache = cache or EnhancementCache()
        self.options = options or PromptOptions()
        self.reference_limit = reference_limit
        self.max_content_length = max_content_length
        self.max_reference_length = max_reference_length
        self.clock = clock

    def enhance(self, article: Article) -> PipelineOutcome:
        """Run one article to a terminal state; never raises."""
        return replace(self._run(article), title=article.title)

    def _run(self, article: Article) -> PipelineOutcome:
        self._enter(article, PipelineState.COLLECTING_REFERENCES)
        try:
            references = self.collector.collect(
                article.title,
                self.reference_limit,
                exclude_domains=(article.source_url,) if article.source_url else (),
            )
        except Exception as exc:  # broad: a broken search stack must not crash the batch
            LOGGER.exception("Reference collection crashed for article_id=%s", article.id)
            references = []
            reason = f"{ErrorKind.NO_REFERENCES_FOUND.value}: {exc}"
        else:
            reason = ErrorKind.NO_REFERENCES_FOUND.value

        if not references:
            LOGGER.warning("Skipping article_id=%s: no usable references", article.id)
            return PipelineOutcome(article.id, PipelineState.SKIPPED, reason=reason)

        try:
            return self._enhance_with_references(article, references)
        except Exception as exc:  # broad: any late failure still yields a fallback record
            LOGGER.exception("Enhancement crashed for article_id=%s", article.id)
            record = self._fallback_record(article, references, f"Unexpected error: {exc}")
            return PipelineOutcome(article.id, PipelineState.FALLBACK, record, reason=record.error or "")

    def _enhance_with_references(self, article: Article, references: Sequence[Reference]) -> PipelineOutcome:
        self._enter(article, PipelineState.PREPROCESSING)
        processed_refs = preprocess_references(references, self.max_reference_length)
        if not article.content.strip():
            record = self._fallback_record(article, processed_refs, "Empty content provided")
            return PipelineOutcome(article.id, PipelineState.FALLBACK, record, reason=record.error or "")

        content = preprocess_content(article.content, self.max_content_length)
        key = fingerprint(self.client.model, content, processed_refs, PROMPT_VERSION)
        cached = self.cache.get(key)
        if cached is not None:
            LOGGER.info("Serving cached enhancement for article_id=%s", article.id)
            # The key ignores the title, so title-dependent checks are rescored.
            seo = analyze_seo(cached.content, article.title, processed_refs, self.options.focus_keywords or None)
            return PipelineOutcome(article.id, PipelineState.CACHED, replace(cached, seo_analysis=seo))

        self._enter(article, PipelineState.PROMPTING)
        request = build_prompt(content, processed_refs, self.options)
        LOGGER.info(
            "Prompt for article_id=%s: %s chars, target %s-%s words",
            article.id,
            len(request.prompt),
            request.min_words,
            request.max_words,
        )

        self._enter(article, PipelineState.GENERATING)
        try:
            generation = self.client.invoke(request.prompt, request.generation_config)
        except EnhancementError as exc:
            LOGGER.warning("Falling back to original content for article_id=%s: %s", article.id, exc)
            record = self._fallback_record(article, processed_refs, str(exc))
            return PipelineOutcome(article.id, PipelineState.FALLBACK, record, reason=exc.kind.value)

        self._enter(article, PipelineState.PROCESSING)
        response = process_response(generation.text)
        if not response.content:
            record = self._fallback_record(
                article, processed_refs, f"{ErrorKind.EMPTY_RESPONSE.value}: content cleaning produced no output"
            )
            return PipelineOutcome(article.id, PipelineState.FALLBACK, record, reason=ErrorKind.EMPTY_RESPONSE.value)

        self._enter(article, PipelineState.SCORING)
        seo = analyze_seo(response.content, article.title, processed_refs, self.options.focus_keywords or None)
        metadata: dict[str, Any] = {
            "usage": dict(generation.usage_metadata),
            "safetyRatings": list(generation.safety_ratings),
            "structureWarnings": list(response.warnings),
            "parsedEnvelope": response.parsed,
        }
        if response.model_seo_analysis:
            metadata["modelSeoAnalysis"] = response.model_seo_analysis

        record = EnhancementRecord(
            content=response.content,
            summary=response.summary,
            references=tuple(processed_refs),
            generated_at=self.clock(),
            model=self.client.model,
            prompt_version=PROMPT_VERSION,
            seo_analysis=seo,
            finish_reason=generation.finish_reason,
            quality_metrics=content_metrics(response.content, article.content),
            metadata=metadata,
        )
        self.cache.put(key, record)
        LOGGER.info("Enhanced article_id=%s seo_score=%s", article.id, seo.score)
        return PipelineOutcome(article.id, PipelineState.FRESH, record)

    def _fallback_record(self, article: Article, references: Sequence[Reference], error: str) -> EnhancementRecord:
        text = strip_markup(article.content)
        if text:
            summary = truncate(text, FALLBACK_SUMMARY_LENGTH - len(ELLIPSIS))
        else:
            summary = generate_summary(article.content)
        return EnhancementRecord(
            content=article.content,
            summary=summary,
            references=tuple(references),
            generated_at=self.clock(),
            model=self.client.model,
            prompt_version=PROMPT_VERSION,
            is_fallback=True,
            error=error,
        )

    @staticmethod
    def _enter(article: Article, state: PipelineState) -> None:
        LOGGER.debug("article_id=%s -> %s", article.id, state.value)


def run_batch(
    store: ArticleStore,
    pipeline: EnhancementPipeline,
    limit: int = DEFAULT_BATCH_SIZE,
    *,
    articles: Sequence[Article] | None = None,
    stop: Callable[[], bool] | None = None,
) -> BatchSummary:
    """Enhance pending articles one at a time and write each record back once.

    `stop` is checked between articles; a running article always finishes.
    """
    pending = list(articles) if articles is not None else store.list_pending(limit)
    LOGGER.info("Found %s pending articles (limit=%s)", len(pending), limit)
    summary = BatchSummary()

    for article in pending:
        if stop is not None and stop():
            LOGGER.info("Stop requested; %s articles left unprocessed", len(pending) - summary.processed)
            break

        summary.processed += 1
        LOGGER.info("Enhancing article_id=%s: %s", article.id, article.title)

        try:
            outcome = pipeline.enhance(article)
            summary.outcomes.append(outcome)
            if outcome.record is not None:
                store.update(article.id, outcome.record)
        except ArticleStoreError as exc:
            summary.failed += 1
            LOGGER.error("Write-back failed for article_id=%s: %s", article.id, exc)
            continue
        except Exception as exc:  # broad: one bad article must not stop the batch
            summary.failed += 1
            LOGGER.exception("Failed processing article_id=%s: %s", article.id, exc)
            continue

        if outcome.state is PipelineState.SKIPPED:
            summary.skipped += 1
        elif outcome.state is PipelineState.CACHED:
            summary.cached += 1
        elif outcome.state is PipelineState.FALLBACK:
            summary.fallback += 1
        else:
            summary.fresh += 1

    LOGGER.info(
        "Batch complete. processed=%s fresh=%s cached=%s fallback=%s skipped=%s failed=%s",
        summary.processed,
        summary.fresh,
        summary.cached,
        summary.fallback,
        summary.skipped,
        summary.failed,
    )
    return summary
