"""Thin adapter around the Anthropic Messages API for the rewrite step."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from errors import ErrorKind
from models import GenerationFailure, GenerationResult, GenerationSuccess
from prompt_builder import GenerationConfig

CLAUDE_MODEL = "claude-sonnet-4-5"
REQUEST_TIMEOUT_SECONDS = 60

_STOP_REASONS: dict[str, str] = {
    "end_turn": "STOP",
    "stop_sequence": "STOP",
    "max_tokens": "MAX_TOKENS",
    "refusal": "SAFETY",
}

LOGGER = logging.getLogger(__name__)


class AnthropicProvider:
    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = CLAUDE_MODEL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: anthropic.Anthropic | None = None

    def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult:
        """Call Claude once and map the reply to a generation result.

        Safety thresholds only apply to Gemini and are not sent here; top_p is
        left out because recent Claude models reject it alongside temperature.
        """
        if not self.api_key:
            return GenerationFailure("Anthropic API key not configured", kind=ErrorKind.AUTH_ERROR)

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": config.max_output_tokens,
            "temperature": config.temperature,
            "top_k": config.top_k,
            "messages": [{"role": "user", "content": prompt}],
        }
        if config.stop_sequences:
            kwargs["stop_sequences"] = list(config.stop_sequences)

        LOGGER.debug("Calling Claude model=%s max_tokens=%s", self.model, config.max_output_tokens)
        try:
            response = self._get_client().messages.create(**kwargs)
        except anthropic.APIError as exc:
            return failure_from_exception(exc)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        stop_reason = response.stop_reason or "end_turn"
        usage: dict[str, Any] = {}
        if getattr(response, "usage", None) is not None:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        return GenerationSuccess(
            text=text,
            finish_reason=_STOP_REASONS.get(stop_reason, stop_reason.upper()),
            usage_metadata=usage,
        )

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client


def failure_from_exception(exc: anthropic.APIError) -> GenerationFailure:
    """Translate an Anthropic SDK exception into a classified failure."""
    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, anthropic.RateLimitError):
        kind = ErrorKind.RATE_LIMITED
    elif isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        kind = ErrorKind.AUTH_ERROR
    elif isinstance(exc, (anthropic.BadRequestError, anthropic.NotFoundError, anthropic.UnprocessableEntityError)):
        kind = ErrorKind.INVALID_REQUEST
    elif isinstance(exc, (anthropic.APIConnectionError, anthropic.InternalServerError)):
        kind = ErrorKind.NETWORK_ERROR
    else:
        kind = None
    return GenerationFailure(f"Anthropic request failed: {exc}", status_code=status_code, kind=kind)
