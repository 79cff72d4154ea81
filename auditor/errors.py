"""
Error taxonomy for the analysis pipeline.

Upstream providers are inconsistent about how they report quota and rate
limit problems, so classification is done on status, code and message text.
"""

from typing import Optional


QUOTA_MARKERS = (
    "insufficient_quota",
    "quota",
    "insufficient balance",
    "out of credit",
)
RATE_LIMIT_MARKERS = (
    "rate limit",
    "rate_limit",
    "too many requests",
    "resource has been exhausted",
)
TOKEN_LIMIT_MARKERS = (
    "maximum context length",
    "context_length_exceeded",
    "context length",
    "max_tokens",
    "too many tokens",
    "token limit",
)
NETWORK_MARKERS = (
    "load failed",
    "network",
    "fetch",
    "connection",
    "timed out",
    "timeout",
)


class AuditorError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(AuditorError):
    """Missing or invalid configuration (no credentials, bad settings)."""


class AllKeysExhausted(AuditorError):
    """Every credential in the pool has run out of quota."""

    def __init__(self, message: str = "Все API ключи исчерпали свои квоты"):
        super().__init__(message)


class UpstreamApiError(AuditorError):
    """
    Non-success answer from the model provider.

    Attributes:
        status: HTTP status, None for timeouts and connection failures
        code: provider error code or type, if any
        message: provider message
        retry_recommended: set by ModelGateway from the key pool's verdict
    """

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.retry_recommended: Optional[bool] = None

    @property
    def is_quota_exhausted(self) -> bool:
        if (self.code or "").lower() == "insufficient_quota":
            return True
        return _contains_any(self.message, QUOTA_MARKERS)

    @property
    def is_rate_limited(self) -> bool:
        if self.status == 429:
            return True
        if (self.code or "").lower() == "rate_limit_exceeded":
            return True
        return _contains_any(self.message, RATE_LIMIT_MARKERS)

    @property
    def is_network_error(self) -> bool:
        return self.status is None and self.code in ("timeout", "connection_error")

    def __repr__(self) -> str:
        return f"UpstreamApiError(status={self.status!r}, code={self.code!r}, message={self.message!r})"


class ChunkAnalysisFailed(AuditorError):
    """A chunk could not be analyzed within its retry budget."""

    def __init__(self, chunk_id: str, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Не удалось обработать чанк {chunk_id}{detail}")
        self.chunk_id = chunk_id
        self.cause = cause


class AnalysisError(AuditorError):
    """User-facing failure of a whole analysis invocation."""


def _contains_any(text: Optional[str], markers) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in markers)


def is_quota_error(error: BaseException) -> bool:
    if isinstance(error, UpstreamApiError):
        return error.is_quota_exhausted
    return _contains_any(str(error), QUOTA_MARKERS)


def is_rate_limit_error(error: BaseException) -> bool:
    if isinstance(error, UpstreamApiError):
        return error.is_rate_limited
    return _contains_any(str(error), RATE_LIMIT_MARKERS)


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, UpstreamApiError) and error.is_network_error:
        return True
    return _contains_any(str(error), NETWORK_MARKERS)


def is_token_limit_error(error: BaseException) -> bool:
    """Prompt or completion too long for the model; tokens-per-minute limits are rate limits."""
    if is_rate_limit_error(error):
        return False
    return _contains_any(str(error), TOKEN_LIMIT_MARKERS)
