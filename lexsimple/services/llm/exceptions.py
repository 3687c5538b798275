"""LLM Exception Hierarchy

Structured exception types for LLM execution errors.

- LLMError: Base class for every LLM failure (fatal unless subclassed below)
- LLMConnectionError: Invalid credentials, timeout, network failure (retryable)
- LLMRateLimitError: Local gate denial or provider 429 (retryable)
- LLMCancelledError: Caller cancelled before the next attempt
"""

from typing import Any, Dict, Mapping, Optional, Tuple, Type


class LLMError(Exception):
    """Base exception for all LLM errors.

    Carries a numeric code (HTTP-like where one applies) and a context
    dictionary with structured details for logging.
    """

    def __init__(
        self,
        message: str,
        code: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(message)

    def get_context(self) -> Dict[str, Any]:
        return dict(self.context)

    def add_context(self, key: str, value: Any) -> "LLMError":
        self.context[key] = value
        return self


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached or rejects credentials.

    This is a retryable error.
    """

    @classmethod
    def invalid_api_key(cls, provider: str) -> "LLMConnectionError":
        return cls(
            f"Invalid API key for provider: {provider}",
            code=401,
            context={"provider": provider, "error_type": "invalid_api_key"},
        )

    @classmethod
    def connection_timeout(
        cls, provider: str, timeout_seconds: float
    ) -> "LLMConnectionError":
        return cls(
            f"Connection timeout for provider {provider} after {timeout_seconds}s",
            code=408,
            context={
                "provider": provider,
                "timeout_seconds": timeout_seconds,
                "error_type": "timeout",
            },
        )

    @classmethod
    def network_error(cls, provider: str, details: str) -> "LLMConnectionError":
        return cls(
            f"Network error for provider {provider}: {details}",
            code=500,
            context={"provider": provider, "error_type": "network_error"},
        )


class LLMRateLimitError(LLMError):
    """Raised when a rate limit is exceeded.

    This is a retryable error - the caller should wait for
    retry_after seconds before retrying.

    Attributes:
        retry_after: Seconds to wait before retrying (if known)
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.retry_after = retry_after
        context = dict(context or {})
        context["retry_after"] = retry_after
        super().__init__(
            f"{message}. Retry after: {retry_after}s" if retry_after else message,
            code=429,
            context=context,
        )

    @classmethod
    def request_limit_exceeded(
        cls,
        provider: str,
        limit: int,
        window: str,
        retry_after: Optional[float] = None,
    ) -> "LLMRateLimitError":
        return cls(
            f"Request limit exceeded for {provider}: {limit} requests per {window}",
            retry_after=retry_after,
            context={
                "provider": provider,
                "limit": limit,
                "window": window,
                "limit_type": "requests",
            },
        )

    @classmethod
    def token_limit_exceeded(
        cls,
        provider: str,
        limit: int,
        window: str,
        retry_after: Optional[float] = None,
    ) -> "LLMRateLimitError":
        return cls(
            f"Token limit exceeded for {provider}: {limit} tokens per {window}",
            retry_after=retry_after,
            context={
                "provider": provider,
                "limit": limit,
                "window": window,
                "limit_type": "tokens",
            },
        )

    @classmethod
    def from_api_response(
        cls, provider: str, headers: Optional[Mapping[str, str]] = None
    ) -> "LLMRateLimitError":
        """Build from a provider 429 response, honoring Retry-After."""
        retry_after = None
        if headers:
            value = headers.get("retry-after") or headers.get("Retry-After")
            if value:
                try:
                    retry_after = float(value)
                except ValueError:
                    retry_after = None
        return cls(
            f"Rate limit exceeded for provider {provider}",
            retry_after=retry_after,
            context={"provider": provider, "limit_type": "provider"},
        )


class LLMCancelledError(LLMError):
    """Raised when a cancellation signal is observed between attempts.

    This is NOT retryable.
    """

    def __init__(self, operation_name: str, attempts: int):
        super().__init__(
            f"{operation_name} cancelled after {attempts} attempts",
            code=499,
            context={"operation": operation_name, "attempts": attempts},
        )


RETRYABLE_ERRORS: Tuple[Type[Exception], ...] = (
    LLMConnectionError,
    LLMRateLimitError,
)
