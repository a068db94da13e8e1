"""Provider-agnostic LLM invocation with classified retries and backoff."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from config import Settings
from errors import EnhancementError, ErrorKind
from models import GenerationFailure, GenerationResult, GenerationSuccess
from prompt_builder import GenerationConfig

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 2.0
BACKOFF_MAX_SECONDS = 20.0

_AUTH_MARKERS = ("api key", "api_key", "auth", "permission denied")
_INVALID_MARKERS = ("invalid", "400")
_RATE_LIMIT_MARKERS = ("exhausted", "rate limit", "quota")

LOGGER = logging.getLogger(__name__)


class LLMProvider(Protocol):
    name: str
    model: str

    def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult: ...


def backoff_delay(
    attempt: int,
    base_delay: float = BACKOFF_BASE_SECONDS,
    max_delay: float = BACKOFF_MAX_SECONDS,
) -> float:
    """Seconds to wait after failed `attempt` (1-based): exponential, capped."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)


def classify_failure(failure: GenerationFailure) -> ErrorKind:
    """Map a provider failure to an error kind; adapter-supplied kinds win."""
    if failure.kind is not None:
        return failure.kind

    status = failure.status_code
    message = failure.message.lower()
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status in (401, 403) or any(marker in message for marker in _AUTH_MARKERS):
        return ErrorKind.AUTH_ERROR
    if status == 400 or any(marker in message for marker in _INVALID_MARKERS):
        return ErrorKind.INVALID_REQUEST
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.NETWORK_ERROR


class EnhancementClient:
    """Runs one prompt through a provider with bounded, classified retries."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BACKOFF_BASE_SECONDS,
        max_delay: float = BACKOFF_MAX_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.sleep = sleep

    @property
    def model(self) -> str:
        return self.provider.model

    def invoke(self, prompt: str, config: GenerationConfig) -> GenerationSuccess:
        """Return the first usable generation or raise a classified EnhancementError.

        Safety blocks, auth and invalid-request errors stop immediately.
        Network errors, rate limits and empty responses are retried after
        `backoff_delay(attempt)`; running out of attempts raises
        ALL_ATTEMPTS_EXHAUSTED with the last error attached.
        """
        last_error: EnhancementError | None = None

        for attempt in range(1, self.max_attempts + 1):
            result = self.provider.generate(prompt, config)
            error = self._check(result, attempt)
            if error is None and isinstance(result, GenerationSuccess):
                if result.finish_reason == "MAX_TOKENS":
                    LOGGER.warning("Generation hit the output token limit; content may be truncated")
                LOGGER.info(
                    "Generation succeeded with %s model=%s on attempt %s/%s",
                    self.provider.name,
                    self.model,
                    attempt,
                    self.max_attempts,
                )
                return result

            last_error = error
            if not error.retryable:
                LOGGER.warning("Generation failed with non-retryable error: %s", error)
                raise error

            LOGGER.warning(
                "Generation failed on attempt %s/%s: %s",
                attempt,
                self.max_attempts,
                error,
            )
            if attempt < self.max_attempts:
                delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                LOGGER.info("Retrying in %.1fs", delay)
                self.sleep(delay)

        raise EnhancementError(
            ErrorKind.ALL_ATTEMPTS_EXHAUSTED,
            f"Generation failed after {self.max_attempts} attempts: {last_error}",
            attempts=self.max_attempts,
            cause=last_error,
        )

    def _check(self, result: GenerationResult, attempt: int) -> EnhancementError | None:
        if isinstance(result, GenerationFailure):
            return EnhancementError(classify_failure(result), result.message, attempts=attempt)
        if result.finish_reason == "SAFETY":
            return EnhancementError(
                ErrorKind.SAFETY_BLOCKED,
                "Content generation was blocked by safety filters",
                attempts=attempt,
            )
        if not result.text.strip():
            return EnhancementError(ErrorKind.EMPTY_RESPONSE, "Provider returned empty text", attempts=attempt)
        return None


def build_provider(settings: Settings) -> LLMProvider:
    """Instantiate the provider adapter selected by LLM_PROVIDER."""
    if settings.llm_provider == "openai":
        from openai_client import OpenAIProvider  # noqa: PLC0415

        return OpenAIProvider(settings.openai_api_key, model=settings.model, timeout=settings.llm_timeout_seconds)
    if settings.llm_provider == "anthropic":
        from anthropic_client import AnthropicProvider  # noqa: PLC0415

        return AnthropicProvider(settings.anthropic_api_key, model=settings.model, timeout=settings.llm_timeout_seconds)

    from gemini_client import GeminiProvider  # noqa: PLC0415

    return GeminiProvider(settings.gemini_api_key, model=settings.model, timeout=settings.llm_timeout_seconds)


def build_client(settings: Settings, sleep: Callable[[float], None] = time.sleep) -> EnhancementClient:
    return EnhancementClient(
        build_provider(settings),
        max_attempts=settings.retry_attempts,
        base_delay=settings.backoff_base_seconds,
        max_delay=settings.backoff_max_seconds,
        sleep=sleep,
    )
