import json
from datetime import UTC, datetime
from unittest.mock import MagicMock

from cache import EnhancementCache, InMemoryCache
from enhancement_client import EnhancementClient
from errors import ArticleStoreError
from models import Article, GenerationFailure, GenerationResult, GenerationSuccess, Reference
from pipeline import EnhancementPipeline, PipelineState, run_batch
from prompt_builder import GenerationConfig, PromptOptions

_NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)

_ARTICLE = Article(
    id="42",
    title="Customer Support Chatbots",
    content="<h1>Customer Support Chatbots</h1><p>Chatbots answer common questions. They never sleep.</p>",
    source_url="https://myblog.com/chatbots",
)

_REFERENCES = [
    Reference(
        title="Bot Guide",
        url="https://a.example/guide",
        content="<h2>Why bots</h2><p>Bots reduce wait times for customers.</p>",
    ),
    Reference(title="Metrics", url="https://b.example/metrics", content="<p>Track deflection and CSAT.</p>"),
]

_ENVELOPE = json.dumps({
    "content": "```html\n<h1>Customer Support Chatbots</h1>\n<h2>Benefits</h2>\n<p>Bots help teams scale.</p>\n```",
    "summary": "How chatbots help support teams scale.",
    "seo_analysis": {"score": 90, "checklist": [], "keyword_gaps": []},
})


class FakeProvider:
    name = "fake"
    model = "fake-model"

    def __init__(self, results: list[GenerationResult]) -> None:
        self.results = results
        self.prompts: list[str] = []

    def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult:
        self.prompts.append(prompt)
        return self.results[min(len(self.prompts), len(self.results)) - 1]


def _collector(references: list[Reference]) -> MagicMock:
    collector = MagicMock()
    collector.collect.return_value = references
    return collector


def _pipeline(
    provider: FakeProvider,
    references: list[Reference] | None = None,
    backend: InMemoryCache | None = None,
) -> EnhancementPipeline:
    return EnhancementPipeline(
        _collector(_REFERENCES if references is None else references),
        EnhancementClient(provider, max_attempts=2, sleep=lambda _: None),
        EnhancementCache(backend if backend is not None else InMemoryCache()),
        clock=lambda: _NOW,
    )


def test_fresh_enhancement_builds_full_record() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE, usage_metadata={"totalTokenCount": 321})])
    pipeline = _pipeline(provider)

    outcome = pipeline.enhance(_ARTICLE)

    assert outcome.state is PipelineState.FRESH
    assert outcome.title == "Customer Support Chatbots"
    record = outcome.record
    assert record is not None
    assert record.is_fallback is False
    assert record.content == "<h1>Customer Support Chatbots</h1>\n<h2>Benefits</h2>\n<p>Bots help teams scale.</p>"
    assert record.summary == "How chatbots help support teams scale."
    assert record.model == "fake-model"
    assert record.prompt_version == "v2.0"
    assert record.generated_at == _NOW
    assert record.finish_reason == "STOP"
    assert record.seo_analysis is not None
    assert 0 <= record.seo_analysis.score <= 100
    assert record.quality_metrics is not None
    assert record.metadata["usage"] == {"totalTokenCount": 321}
    assert record.metadata["parsedEnvelope"] is True
    assert record.metadata["modelSeoAnalysis"]["score"] == 90
    # References are stored as the preprocessed plain text sent to the model.
    assert record.references[0].content == "Why bots Bots reduce wait times for customers."
    assert "Bots reduce wait times for customers." in provider.prompts[0]


def test_collector_excludes_the_article_source() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    pipeline = _pipeline(provider)

    pipeline.enhance(_ARTICLE)

    pipeline.collector.collect.assert_called_once_with(
        "Customer Support Chatbots", 2, exclude_domains=("https://myblog.com/chatbots",)
    )


def test_second_run_is_served_from_cache() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    pipeline = _pipeline(provider)

    first = pipeline.enhance(_ARTICLE)
    second = pipeline.enhance(_ARTICLE)

    assert second.state is PipelineState.CACHED
    assert second.record == first.record
    assert len(provider.prompts) == 1


def test_changed_references_miss_the_cache() -> None:
    backend = InMemoryCache()
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])

    _pipeline(provider, backend=backend).enhance(_ARTICLE)
    outcome = _pipeline(provider, references=_REFERENCES[:1], backend=backend).enhance(_ARTICLE)

    assert outcome.state is PipelineState.FRESH
    assert len(provider.prompts) == 2


def test_cache_hit_rescores_for_the_new_title() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    pipeline = _pipeline(provider)
    short_title = Article(id="1", title="Chatbots", content=_ARTICLE.content)
    good_title = Article(
        id="2", title="Customer Support Chatbots That Answer Every Question", content=_ARTICLE.content
    )

    first = pipeline.enhance(short_title)
    second = pipeline.enhance(good_title)

    assert (first.state, second.state) == (PipelineState.FRESH, PipelineState.CACHED)
    assert len(provider.prompts) == 1
    assert first.record is not None and second.record is not None
    assert second.record.content == first.record.content

    def title_status(outcome) -> str:
        return next(i.status for i in outcome.record.seo_analysis.checklist if i.id == "title_len")

    assert title_status(first) == "warn"
    assert title_status(second) == "pass"


def test_rate_limited_on_every_attempt_makes_three_calls_then_falls_back() -> None:
    provider = FakeProvider([GenerationFailure("Too many requests", status_code=429)])
    sleeps: list[float] = []
    pipeline = EnhancementPipeline(
        _collector(_REFERENCES),
        EnhancementClient(provider, sleep=sleeps.append),
        clock=lambda: _NOW,
    )

    outcome = pipeline.enhance(_ARTICLE)

    assert len(provider.prompts) == 3
    assert sleeps == [2.0, 4.0]
    assert outcome.state is PipelineState.FALLBACK
    assert outcome.reason == "all_attempts_exhausted"
    assert outcome.record is not None and outcome.record.is_fallback is True


def test_long_fallback_summary_is_marked_as_truncated() -> None:
    provider = FakeProvider([GenerationSuccess(text="", finish_reason="SAFETY")])
    article = Article(id="9", title="Long", content="<p>" + "support " * 100 + "</p>")

    outcome = _pipeline(provider).enhance(article)

    assert outcome.record is not None
    assert outcome.record.summary.endswith("...")
    assert len(outcome.record.summary) <= 160


def test_safety_block_produces_uncached_fallback() -> None:
    backend = InMemoryCache()
    provider = FakeProvider([GenerationSuccess(text="", finish_reason="SAFETY")])

    outcome = _pipeline(provider, backend=backend).enhance(_ARTICLE)

    assert outcome.state is PipelineState.FALLBACK
    assert outcome.reason == "safety_blocked"
    record = outcome.record
    assert record is not None
    assert record.is_fallback is True
    assert record.content == _ARTICLE.content
    assert record.summary == "Customer Support Chatbots Chatbots answer common questions. They never sleep."
    assert record.error is not None and record.error.startswith("safety_blocked")
    assert record.seo_analysis is None
    assert len(backend) == 0
    assert len(provider.prompts) == 1


def test_exhausted_retries_produce_fallback() -> None:
    provider = FakeProvider([GenerationFailure("Service unavailable", status_code=503)])

    outcome = _pipeline(provider).enhance(_ARTICLE)

    assert outcome.state is PipelineState.FALLBACK
    assert outcome.reason == "all_attempts_exhausted"
    assert len(provider.prompts) == 2


def test_output_that_cleans_to_nothing_falls_back() -> None:
    provider = FakeProvider([GenerationSuccess(text="```\n```")])

    outcome = _pipeline(provider).enhance(_ARTICLE)

    assert outcome.state is PipelineState.FALLBACK
    assert outcome.reason == "empty_response"


def test_no_references_skips_without_calling_the_model() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])

    outcome = _pipeline(provider, references=[]).enhance(_ARTICLE)

    assert outcome.state is PipelineState.SKIPPED
    assert outcome.record is None
    assert outcome.reason == "no_references_found"
    assert provider.prompts == []


def test_collector_crash_is_a_skip() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    pipeline = _pipeline(provider)
    pipeline.collector.collect.side_effect = RuntimeError("search stack broken")

    outcome = pipeline.enhance(_ARTICLE)

    assert outcome.state is PipelineState.SKIPPED
    assert "search stack broken" in outcome.reason


def test_empty_article_content_falls_back() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    article = Article(id="7", title="Blank", content="   ")

    outcome = _pipeline(provider).enhance(article)

    assert outcome.state is PipelineState.FALLBACK
    assert outcome.record is not None
    assert outcome.record.error == "Empty content provided"
    assert provider.prompts == []


def test_focus_keywords_reach_prompt_and_scoring() -> None:
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    pipeline = EnhancementPipeline(
        _collector(_REFERENCES),
        EnhancementClient(provider, sleep=lambda _: None),
        options=PromptOptions(focus_keywords=("pricing",)),
        clock=lambda: _NOW,
    )

    outcome = pipeline.enhance(_ARTICLE)

    assert "FOCUS KEYWORDS: pricing" in provider.prompts[0]
    assert outcome.record is not None and outcome.record.seo_analysis is not None
    title_keyword = next(i for i in outcome.record.seo_analysis.checklist if i.id == "title_keyword")
    assert title_keyword.status == "warn"


# ---------------------------------------------------------------------------
# Batch runner
# ---------------------------------------------------------------------------


def _articles() -> list[Article]:
    return [
        Article(id="1", title="First", content="<p>First article body text.</p>"),
        Article(id="2", title="Second", content="<p>Second article body text.</p>"),
        Article(id="3", title="Third", content="<p>Third article body text.</p>"),
    ]


def test_run_batch_writes_each_record_once() -> None:
    store = MagicMock()
    store.list_pending.return_value = _articles()
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    pipeline = _pipeline(provider)
    pipeline.collector.collect.side_effect = [_REFERENCES, [], _REFERENCES]

    summary = run_batch(store, pipeline, limit=3)

    store.list_pending.assert_called_once_with(3)
    assert [call.args[0] for call in store.update.call_args_list] == ["1", "3"]
    assert (summary.processed, summary.fresh, summary.skipped, summary.failed) == (3, 2, 1, 0)
    assert [o.state for o in summary.outcomes] == [
        PipelineState.FRESH,
        PipelineState.SKIPPED,
        PipelineState.FRESH,
    ]


def test_run_batch_counts_write_failures_and_continues() -> None:
    store = MagicMock()
    store.list_pending.return_value = _articles()
    store.update.side_effect = [ArticleStoreError("PUT failed"), None, None]
    provider = FakeProvider([GenerationSuccess(text="", finish_reason="SAFETY")])

    summary = run_batch(store, _pipeline(provider), limit=3)

    assert summary.processed == 3
    assert summary.failed == 1
    assert summary.fallback == 2
    assert store.update.call_count == 3


def test_run_batch_stops_between_articles() -> None:
    store = MagicMock()
    provider = FakeProvider([GenerationSuccess(text=_ENVELOPE)])
    calls = iter([False, True])

    summary = run_batch(store, _pipeline(provider), articles=_articles(), stop=lambda: next(calls))

    store.list_pending.assert_not_called()
    assert summary.processed == 1
    assert store.update.call_count == 1
