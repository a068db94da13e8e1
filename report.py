"""Post-run reporting: human-readable SEO reports and a per-run CSV summary."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from pathlib import Path

from models import EnhancementRecord
from pipeline import BatchSummary, PipelineOutcome
from quality_analyzer import extract_headings, improvement_suggestions

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Output schema
# ---------------------------------------------------------------------------

REPORT_COLUMNS = [
    "article_id",
    "state",
    "seo_score",
    "word_count",
    "readability",
    "reference_count",
    "keyword_gaps",
    "is_fallback",
    "error",
]

_STATUS_MARKS = {"pass": "[ok]", "warn": "[!!]", "fail": "[xx]"}


def format_seo_report(title: str, record: EnhancementRecord) -> str:
    """Render score, checklist, suggestions and outline of one record as text."""
    lines = [f"== {title} =="]
    if record.is_fallback:
        lines.append(f"Fallback record (original content kept): {record.error}")
        return "\n".join(lines)

    seo = record.seo_analysis
    if seo is None:
        lines.append("No SEO analysis available.")
        return "\n".join(lines)

    lines.append(f"SEO score: {seo.score}/100")
    for item in seo.checklist:
        lines.append(f"  {_STATUS_MARKS.get(item.status, '[??]')} {item.label}: {item.message}")

    suggestions = improvement_suggestions(seo.checklist)
    if suggestions:
        lines.append("Suggestions:")
        for suggestion in suggestions:
            lines.append(f"  - ({suggestion['priority']}) {suggestion['suggestion']}")

    if seo.keyword_gaps:
        lines.append(f"Keyword gaps: {', '.join(seo.keyword_gaps)}")

    outline = extract_headings(record.content)
    if outline:
        lines.append("Outline:")
        for level, text in outline:
            lines.append(f"  {'  ' * (level - 1)}h{level} {text}")

    metrics = record.quality_metrics
    if metrics is not None:
        lines.append(
            f"Words: {metrics.word_count} (was {metrics.original_word_count}), "
            f"reading time {metrics.reading_time_minutes} min, readability {metrics.readability_score}"
        )
    return "\n".join(lines)


def format_batch_summary(summary: BatchSummary) -> str:
    return (
        f"processed={summary.processed} fresh={summary.fresh} cached={summary.cached} "
        f"fallback={summary.fallback} skipped={summary.skipped} failed={summary.failed}"
    )


def _report_row(outcome: PipelineOutcome) -> dict[str, str]:
    record = outcome.record
    seo = record.seo_analysis if record else None
    metrics = record.quality_metrics if record else None
    return {
        "article_id": outcome.article_id,
        "state": outcome.state.value,
        "seo_score": str(seo.score) if seo else "",
        "word_count": str(metrics.word_count) if metrics else "",
        "readability": str(metrics.readability_score) if metrics else "",
        "reference_count": str(len(record.references)) if record else "0",
        "keyword_gaps": "; ".join(seo.keyword_gaps) if seo else "",
        "is_fallback": str(record.is_fallback) if record else "",
        "error": (record.error or "") if record else outcome.reason,
    }


def write_run_report(outcomes: Iterable[PipelineOutcome], path: str | Path) -> int:
    """Write one CSV row per outcome; returns the number of rows written."""
    rows = [_report_row(outcome) for outcome in outcomes]
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    LOGGER.info("Wrote run report with %s rows to %s", len(rows), target)
    return len(rows)
