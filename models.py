"""Shared typed models for the enhancement pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from errors import ErrorKind


@dataclass(frozen=True, slots=True)
class Article:
    """Article as read from the store; only `enhanced_version` is ever written back."""

    id: str
    title: str
    content: str
    source_url: str = ""
    enhanced_version: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Article:
        enhanced = data.get("enhanced_version")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            source_url=str(data.get("source_url") or data.get("original_url") or ""),
            enhanced_version=enhanced if isinstance(enhanced, dict) else None,
        )


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One ranked hit from a search provider."""

    title: str
    link: str
    snippet: str = ""
    content: str | None = None


@dataclass(frozen=True, slots=True)
class Reference:
    """Scraped external source used as grounding material."""

    title: str
    url: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url, "content": self.content}


@dataclass(frozen=True, slots=True)
class ChecklistItem:
    id: str
    label: str
    status: str
    message: str
    impact: str
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "status": self.status,
            "message": self.message,
            "impact": self.impact,
        }
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChecklistItem:
        return cls(
            id=data["id"],
            label=data["label"],
            status=data["status"],
            message=data["message"],
            impact=data["impact"],
            suggestion=data.get("suggestion"),
        )


@dataclass(frozen=True, slots=True)
class SeoAnalysis:
    """Deterministic rule-based SEO appraisal of a piece of content."""

    score: int
    checklist: tuple[ChecklistItem, ...]
    keyword_gaps: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "checklist": [item.to_dict() for item in self.checklist],
            "keywordGaps": list(self.keyword_gaps),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SeoAnalysis:
        return cls(
            score=int(data["score"]),
            checklist=tuple(ChecklistItem.from_dict(item) for item in data.get("checklist", [])),
            keyword_gaps=tuple(data.get("keywordGaps", [])),
        )


@dataclass(frozen=True, slots=True)
class ContentMetrics:
    word_count: int
    original_word_count: int
    character_count: int
    paragraph_count: int
    h1_count: int
    h2_count: int
    h3_count: int
    list_count: int
    link_count: int
    image_count: int
    avg_sentence_length: int
    reading_time_minutes: int
    readability_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "wordCount": self.word_count,
            "originalWordCount": self.original_word_count,
            "characterCount": self.character_count,
            "paragraphCount": self.paragraph_count,
            "h1Count": self.h1_count,
            "h2Count": self.h2_count,
            "h3Count": self.h3_count,
            "listCount": self.list_count,
            "linkCount": self.link_count,
            "imageCount": self.image_count,
            "avgSentenceLength": self.avg_sentence_length,
            "readingTimeMinutes": self.reading_time_minutes,
            "readabilityScore": self.readability_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentMetrics:
        return cls(
            word_count=data["wordCount"],
            original_word_count=data["originalWordCount"],
            character_count=data["characterCount"],
            paragraph_count=data["paragraphCount"],
            h1_count=data["h1Count"],
            h2_count=data["h2Count"],
            h3_count=data["h3Count"],
            list_count=data["listCount"],
            link_count=data["linkCount"],
            image_count=data["imageCount"],
            avg_sentence_length=data["avgSentenceLength"],
            reading_time_minutes=data["readingTimeMinutes"],
            readability_score=data["readabilityScore"],
        )


@dataclass(frozen=True, slots=True)
class EnhancementRecord:
    """Result of one pipeline run, persisted as the article's enhanced version.

    A fallback record carries the original article content unchanged and
    usually no SEO analysis.
    """

    content: str
    summary: str
    references: tuple[Reference, ...]
    generated_at: datetime
    model: str
    prompt_version: str
    seo_analysis: SeoAnalysis | None = None
    is_fallback: bool = False
    error: str | None = None
    finish_reason: str | None = None
    quality_metrics: ContentMetrics | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "content": self.content,
            "summary": self.summary,
            "references": [ref.to_dict() for ref in self.references],
            "seoAnalysis": self.seo_analysis.to_dict() if self.seo_analysis else None,
            "generatedAt": self.generated_at.isoformat(),
            "model": self.model,
            "promptVersion": self.prompt_version,
            "isFallback": self.is_fallback,
            "metadata": self.metadata,
        }
        if self.error:
            data["error"] = self.error
        if self.finish_reason:
            data["finishReason"] = self.finish_reason
        if self.quality_metrics:
            data["qualityMetrics"] = self.quality_metrics.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnhancementRecord:
        seo = data.get("seoAnalysis")
        metrics = data.get("qualityMetrics")
        return cls(
            content=data["content"],
            summary=data["summary"],
            references=tuple(
                Reference(title=ref["title"], url=ref["url"], content=ref["content"])
                for ref in data.get("references", [])
            ),
            generated_at=datetime.fromisoformat(data["generatedAt"]),
            model=data["model"],
            prompt_version=data["promptVersion"],
            seo_analysis=SeoAnalysis.from_dict(seo) if seo else None,
            is_fallback=bool(data.get("isFallback", False)),
            error=data.get("error"),
            finish_reason=data.get("finishReason"),
            quality_metrics=ContentMetrics.from_dict(metrics) if metrics else None,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    record: EnhancementRecord
    expires_at: float


@dataclass(frozen=True, slots=True)
class GenerationSuccess:
    """Provider returned a candidate (its text may still be empty or blocked)."""

    text: str
    finish_reason: str = "STOP"
    safety_ratings: tuple[dict[str, Any], ...] = ()
    usage_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GenerationFailure:
    """Provider call failed; `kind` is set when the adapter already knows it."""

    message: str
    status_code: int | None = None
    kind: ErrorKind | None = None


GenerationResult = GenerationSuccess | GenerationFailure
