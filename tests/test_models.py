from datetime import UTC, datetime

from models import (
    Article,
    ChecklistItem,
    ContentMetrics,
    EnhancementRecord,
    Reference,
    SeoAnalysis,
)


def test_article_from_dict_accepts_api_shapes() -> None:
    article = Article.from_dict({
        "id": 12,
        "title": None,
        "content": "<p>x</p>",
        "original_url": "https://blog.example/x",
        "enhanced_version": "not a dict",
    })

    assert article.id == "12"
    assert article.title == ""
    assert article.source_url == "https://blog.example/x"
    assert article.enhanced_version is None


def test_enhancement_record_serializes_with_camel_case_keys() -> None:
    record = EnhancementRecord(
        content="<h1>T</h1>",
        summary="S.",
        references=(Reference(title="R", url="https://r.example", content="c"),),
        generated_at=datetime(2026, 4, 2, 8, 15, tzinfo=UTC),
        model="gemini-2.5-flash",
        prompt_version="v2.0",
        seo_analysis=SeoAnalysis(
            score=77,
            checklist=(ChecklistItem("links", "Links", "warn", "1 link", "important", "Add links"),),
            keyword_gaps=("pricing",),
        ),
        finish_reason="STOP",
        quality_metrics=ContentMetrics(
            word_count=900,
            original_word_count=400,
            character_count=5400,
            paragraph_count=12,
            h1_count=1,
            h2_count=4,
            h3_count=2,
            list_count=1,
            link_count=1,
            image_count=0,
            avg_sentence_length=14,
            reading_time_minutes=5,
            readability_score=61.2,
        ),
        metadata={"parsedEnvelope": True},
    )

    data = record.to_dict()

    assert data["generatedAt"] == "2026-04-02T08:15:00+00:00"
    assert data["promptVersion"] == "v2.0"
    assert data["isFallback"] is False
    assert data["seoAnalysis"]["keywordGaps"] == ["pricing"]
    assert data["seoAnalysis"]["checklist"][0]["suggestion"] == "Add links"
    assert data["qualityMetrics"]["readingTimeMinutes"] == 5
    assert "error" not in data
    assert EnhancementRecord.from_dict(data) == record


def test_fallback_record_serializes_error_and_null_analysis() -> None:
    record = EnhancementRecord(
        content="<p>original</p>",
        summary="original",
        references=(),
        generated_at=datetime(2026, 4, 2, tzinfo=UTC),
        model="gpt-4o-mini",
        prompt_version="v2.0",
        is_fallback=True,
        error="auth_error: OpenAI API key not configured",
    )

    data = record.to_dict()

    assert data["isFallback"] is True
    assert data["seoAnalysis"] is None
    assert data["error"].startswith("auth_error")
    assert "qualityMetrics" not in data
