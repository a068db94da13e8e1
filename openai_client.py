"""OpenAI chat-completions adapter for the rewrite step."""

from __future__ import annotations

import logging
from typing import Any

import openai
from openai import OpenAI

from errors import ErrorKind
from models import GenerationFailure, GenerationResult, GenerationSuccess
from prompt_builder import GenerationConfig

OPENAI_MODEL = "gpt-4o-mini"
REQUEST_TIMEOUT_SECONDS = 60

_FINISH_REASONS: dict[str, str] = {
    "stop": "STOP",
    "length": "MAX_TOKENS",
    "content_filter": "SAFETY",
}

LOGGER = logging.getLogger(__name__)


class OpenAIProvider:
    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_MODEL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: OpenAI | None = None

    def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult:
        if not self.api_key:
            return GenerationFailure("OpenAI API key not configured", kind=ErrorKind.AUTH_ERROR)

        kwargs: dict[str, Any] = {
            "model": self.model,
            "temperature": config.temperature,
            "top_p": config.top_p,
            "max_completion_tokens": config.max_output_tokens,
            "response_format": {"type": "json_object"},
            "messages": [{"role": "user", "content": prompt}],
        }
        if config.stop_sequences:
            kwargs["stop"] = list(config.stop_sequences)

        LOGGER.debug("Calling OpenAI model=%s prompt_chars=%s", self.model, len(prompt))
        try:
            response = self._get_client().chat.completions.create(**kwargs)
        except openai.APIError as exc:
            return failure_from_exception(exc)

        try:
            choice = response.choices[0]
            text = choice.message.content or ""
            finish_reason = _FINISH_REASONS.get(choice.finish_reason or "stop", str(choice.finish_reason).upper())
        except (AttributeError, IndexError, TypeError) as exc:
            return GenerationFailure(f"Unexpected OpenAI response shape: {exc}")

        usage = response.usage.model_dump() if getattr(response, "usage", None) is not None else {}
        return GenerationSuccess(text=text, finish_reason=finish_reason, usage_metadata=usage)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            # The retry loop lives in EnhancementClient, so SDK retries are off.
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client


def failure_from_exception(exc: openai.APIError) -> GenerationFailure:
    """Translate an OpenAI SDK exception into a classified failure."""
    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, openai.RateLimitError):
        kind = ErrorKind.RATE_LIMITED
    elif isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        kind = ErrorKind.AUTH_ERROR
    elif isinstance(exc, (openai.BadRequestError, openai.NotFoundError, openai.UnprocessableEntityError)):
        kind = ErrorKind.INVALID_REQUEST
    elif isinstance(exc, (openai.APIConnectionError, openai.InternalServerError)):
        kind = ErrorKind.NETWORK_ERROR
    else:
        kind = None
    return GenerationFailure(f"OpenAI request failed: {exc}", status_code=status_code, kind=kind)
