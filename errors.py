"""Error taxonomy shared by the enhancement pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classified failure kinds for reference collection and generation."""

    NETWORK_ERROR = "network_error"
    RATE_LIMITED = "rate_limited"
    AUTH_ERROR = "auth_error"
    INVALID_REQUEST = "invalid_request"
    SAFETY_BLOCKED = "safety_blocked"
    EMPTY_RESPONSE = "empty_response"
    PARSE_ERROR = "parse_error"
    NO_REFERENCES_FOUND = "no_references_found"
    ALL_ATTEMPTS_EXHAUSTED = "all_attempts_exhausted"


RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.NETWORK_ERROR,
    ErrorKind.RATE_LIMITED,
    ErrorKind.EMPTY_RESPONSE,
})


class EnhancementError(RuntimeError):
    """Raised when content generation fails with a classified error."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        attempts: int = 0,
        cause: EnhancementError | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.attempts = attempts
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.args[0]}"


class ArticleStoreError(RuntimeError):
    """Raised when the article store cannot be read or updated."""
