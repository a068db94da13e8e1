"""Environment-driven settings for the enhancement pipeline."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_MODELS: dict[str, str] = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-5",
}

SAFETY_THRESHOLDS: frozenset[str] = frozenset({
    "BLOCK_NONE",
    "BLOCK_ONLY_HIGH",
    "BLOCK_MEDIUM_AND_ABOVE",
    "BLOCK_LOW_AND_ABOVE",
})


@dataclass(frozen=True, slots=True)
class Settings:
    llm_provider: str = "gemini"
    model: str = DEFAULT_MODELS["gemini"]
    gemini_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    serper_api_key: str = ""

    search_timeout_seconds: float = 15.0
    scrape_timeout_seconds: float = 10.0
    llm_timeout_seconds: float = 60.0
    search_result_count: int = 5
    reference_limit: int = 2
    scrape_workers: int = 1

    max_content_length: int = 15000
    max_reference_length: int = 1200

    cache_ttl_seconds: int = 3600
    cache_path: str = ""

    retry_attempts: int = 3
    backoff_base_seconds: float = 2.0
    backoff_max_seconds: float = 20.0

    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192
    safety_harassment: str = "BLOCK_MEDIUM_AND_ABOVE"
    safety_hate_speech: str = "BLOCK_MEDIUM_AND_ABOVE"
    safety_sexual: str = "BLOCK_MEDIUM_AND_ABOVE"
    safety_dangerous: str = "BLOCK_MEDIUM_AND_ABOVE"

    site_domain: str = ""
    article_api_url: str = "http://127.0.0.1:8000/api/v1"
    batch_size: int = 5
    log_level: str = "INFO"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables (defaults to os.environ)."""
    source = os.environ if env is None else env

    provider = source.get("LLM_PROVIDER", "gemini").strip().lower() or "gemini"
    if provider not in DEFAULT_MODELS:
        raise ValueError(f"LLM_PROVIDER must be one of {sorted(DEFAULT_MODELS)}, got {provider!r}")

    return Settings(
        llm_provider=provider,
        model=source.get("LLM_MODEL", "").strip() or DEFAULT_MODELS[provider],
        gemini_api_key=source.get("GEMINI_API_KEY", ""),
        openai_api_key=source.get("OPENAI_API_KEY", ""),
        anthropic_api_key=source.get("ANTHROPIC_API_KEY", ""),
        serper_api_key=source.get("SERPER_API_KEY", ""),
        search_timeout_seconds=_float(source, "SEARCH_TIMEOUT_SECONDS", 15.0),
        scrape_timeout_seconds=_float(source, "SCRAPE_TIMEOUT_SECONDS", 10.0),
        llm_timeout_seconds=_float(source, "LLM_TIMEOUT_SECONDS", 60.0),
        search_result_count=_int(source, "SEARCH_RESULT_COUNT", 5),
        reference_limit=_int(source, "REFERENCE_LIMIT", 2),
        scrape_workers=max(1, _int(source, "SCRAPE_WORKERS", 1)),
        max_content_length=_int(source, "MAX_CONTENT_LENGTH", 15000),
        max_reference_length=_int(source, "MAX_REFERENCE_LENGTH", 1200),
        cache_ttl_seconds=_int(source, "CACHE_TTL_SECONDS", 3600),
        cache_path=source.get("CACHE_PATH", ""),
        retry_attempts=max(1, _int(source, "RETRY_ATTEMPTS", 3)),
        backoff_base_seconds=_float(source, "BACKOFF_BASE_SECONDS", 2.0),
        backoff_max_seconds=_float(source, "BACKOFF_MAX_SECONDS", 20.0),
        temperature=_float(source, "GENERATION_TEMPERATURE", 0.7),
        top_k=_int(source, "GENERATION_TOP_K", 40),
        top_p=_float(source, "GENERATION_TOP_P", 0.95),
        max_output_tokens=_int(source, "GENERATION_MAX_TOKENS", 8192),
        safety_harassment=_threshold(source, "SAFETY_HARASSMENT"),
        safety_hate_speech=_threshold(source, "SAFETY_HATE_SPEECH"),
        safety_sexual=_threshold(source, "SAFETY_SEXUAL"),
        safety_dangerous=_threshold(source, "SAFETY_DANGEROUS"),
        site_domain=source.get("SITE_DOMAIN", "").strip().lower(),
        article_api_url=source.get("ARTICLE_API_URL", "http://127.0.0.1:8000/api/v1").rstrip("/"),
        batch_size=_int(source, "BATCH_SIZE", 5),
        log_level=source.get("LOG_LEVEL", "INFO").upper(),
    )


def _int(source: Mapping[str, str], name: str, default: int) -> int:
    raw = source.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _float(source: Mapping[str, str], name: str, default: float) -> float:
    raw = source.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _threshold(source: Mapping[str, str], name: str) -> str:
    value = source.get(name, "").strip().upper() or "BLOCK_MEDIUM_AND_ABOVE"
    if value not in SAFETY_THRESHOLDS:
        raise ValueError(f"{name} must be one of {sorted(SAFETY_THRESHOLDS)}, got {value!r}")
    return value
