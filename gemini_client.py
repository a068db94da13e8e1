"""Gemini generateContent adapter over plain HTTP."""

from __future__ import annotations

import logging
from typing import Any

import requests

from errors import ErrorKind
from models import GenerationFailure, GenerationResult, GenerationSuccess
from prompt_builder import GenerationConfig

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_MODEL = "gemini-2.5-flash"
REQUEST_TIMEOUT_SECONDS = 60

LOGGER = logging.getLogger(__name__)


class GeminiProvider:
    """Calls Gemini and maps the response to a generation result; never raises."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult:
        if not self.api_key:
            return GenerationFailure("Gemini API key not configured", kind=ErrorKind.AUTH_ERROR)

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": config.generation_payload(),
            "safetySettings": config.safety_payload(),
        }
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

        LOGGER.debug("Calling Gemini model=%s prompt_chars=%s", self.model, len(prompt))
        try:
            response = self.session.post(
                GEMINI_API_URL.format(model=self.model),
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return GenerationFailure(f"Gemini request failed: {exc}", kind=ErrorKind.NETWORK_ERROR)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code != 200:
            return GenerationFailure(
                f"Gemini API returned {response.status_code}: {_error_message(body, response.text)}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            return GenerationFailure("Gemini returned a non-JSON body", status_code=response.status_code)
        return parse_generate_response(body)


def parse_generate_response(body: dict[str, Any]) -> GenerationResult:
    """Map a generateContent body to a success (possibly blocked or empty) or failure."""
    usage = body.get("usageMetadata") if isinstance(body.get("usageMetadata"), dict) else {}
    candidates = body.get("candidates")

    if not isinstance(candidates, list) or not candidates:
        feedback = body.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            return GenerationSuccess(
                text="",
                finish_reason="SAFETY",
                safety_ratings=tuple(feedback.get("safetyRatings") or ()),
                usage_metadata=usage,
            )
        return GenerationFailure("Gemini response contained no candidates")

    try:
        candidate = candidates[0]
        finish_reason = candidate.get("finishReason") or "STOP"
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    except (AttributeError, IndexError, TypeError) as exc:
        return GenerationFailure(f"Unexpected Gemini response shape: {exc}")

    if finish_reason in ("SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"):
        finish_reason = "SAFETY"

    return GenerationSuccess(
        text=text,
        finish_reason=finish_reason,
        safety_ratings=tuple(candidate.get("safetyRatings") or ()),
        usage_metadata=usage,
    )


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message") or fallback)
    return fallback[:500]
