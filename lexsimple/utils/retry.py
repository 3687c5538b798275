"""Retry Handler Utility

Implements exponential backoff with jitter for retrying transient failures.

Features:
- Configurable retry attempts and delays, overridable per call
- Exponential backoff: delay = base * multiplier^(attempt-1), capped
- Respects retry-after hints from rate limit errors
- Cancellation checked between attempts
- Built-in structured logging for observability
"""

import asyncio
import random
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Type,
    TypeVar,
)

import structlog

from lexsimple.models.settings import RetryConfig
from lexsimple.services.llm.exceptions import (
    LLMCancelledError,
    LLMError,
    LLMRateLimitError,
)

logger = structlog.get_logger(__name__)


T = TypeVar("T")


@dataclass(frozen=True)
class RetryAttempt:
    """One failed attempt inside a single execute() call"""

    attempt: int
    delay_seconds: float
    error: Optional[Exception] = None


class RetryHandler:
    """Async retry handler with exponential backoff and jitter.

    Holds no mutable state beyond the attempt counter local to each
    execute() call, so one instance may be shared by concurrent callers.
    """

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        """Initialize retry handler with configuration.

        Args:
            config: Default retry policy; every value can be overridden per call
        """
        self.config = config or RetryConfig()

    def calculate_delay(
        self,
        attempt: int,
        retry_after: Optional[float] = None,
        base_delay: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
        max_delay: Optional[float] = None,
    ) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Number of the attempt that just failed (1-indexed)
            retry_after: Provider hint; replaces the computed backoff
            base_delay: Override for config.base_delay_seconds
            backoff_multiplier: Override for config.backoff_multiplier
            max_delay: Override for config.max_delay_seconds

        Returns:
            Delay in seconds, never above max_delay
        """
        base = self.config.base_delay_seconds if base_delay is None else base_delay
        multiplier = (
            self.config.backoff_multiplier
            if backoff_multiplier is None
            else backoff_multiplier
        )
        cap = self.config.max_delay_seconds if max_delay is None else max_delay

        if retry_after is not None and retry_after > 0:
            return min(retry_after, cap)

        delay = min(cap, base * (multiplier ** (attempt - 1)))
        delay += random.uniform(0.0, delay * self.config.jitter_factor)
        return min(delay, cap)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        retryable_exceptions: Iterable[Type[Exception]],
        operation_name: str = "operation",
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
        max_delay: Optional[float] = None,
        on_retry: Optional[Callable[[RetryAttempt], None]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Zero-argument coroutine function to execute
            retryable_exceptions: Exception types that should trigger retry
            operation_name: Name used in logs and wrapped error messages
            max_attempts: Override for config.max_attempts
            base_delay: Override for config.base_delay_seconds
            backoff_multiplier: Override for config.backoff_multiplier
            max_delay: Override for config.max_delay_seconds
            on_retry: Optional callback invoked before each retry sleep
            cancel_event: When set, no further attempts are started

        Returns:
            Result of the first successful attempt

        Raises:
            LLMError: Non-retryable failures, wrapped if outside the LLM taxonomy
            Exception: The last retryable exception once attempts are exhausted
            LLMCancelledError: If cancel_event is set between attempts
        """
        attempts = self.config.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        retryable = tuple(retryable_exceptions)

        for attempt in range(1, attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise LLMCancelledError(operation_name, attempt - 1)

            try:
                return await operation()
            except Exception as e:
                if not isinstance(e, retryable):
                    logger.error(
                        "operation_failed",
                        operation=operation_name,
                        attempt=attempt,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        will_retry=False,
                    )
                    if isinstance(e, LLMError):
                        raise
                    raise self._wrap(e, operation_name, attempt) from e

                if attempt >= attempts:
                    logger.error(
                        "retries_exhausted",
                        operation=operation_name,
                        attempts=attempt,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    )
                    if isinstance(e, LLMError):
                        raise
                    raise self._wrap(e, operation_name, attempt) from e

                retry_after = (
                    e.retry_after if isinstance(e, LLMRateLimitError) else None
                )
                delay = self.calculate_delay(
                    attempt,
                    retry_after=retry_after,
                    base_delay=base_delay,
                    backoff_multiplier=backoff_multiplier,
                    max_delay=max_delay,
                )

                logger.warning(
                    "retry_attempt",
                    operation=operation_name,
                    attempt=attempt,
                    max_attempts=attempts,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    delay_seconds=round(delay, 3),
                    retry_after=retry_after,
                    will_retry=True,
                )

                if on_retry is not None:
                    on_retry(RetryAttempt(attempt=attempt, delay_seconds=delay, error=e))

                await asyncio.sleep(delay)

        raise RuntimeError(  # pragma: no cover
            "Retry loop completed without result or exception"
        )

    @staticmethod
    def _wrap(error: Exception, operation_name: str, attempt: int) -> LLMError:
        return LLMError(
            f"{operation_name} failed after {attempt} attempts: {error}",
            context={
                "operation": operation_name,
                "attempts": attempt,
                "original_error": type(error).__name__,
            },
        )


class RetryContext:
    """Accumulates retry statistics across multiple execute() calls.

    Pass record_retry as the on_retry callback.
    """

    def __init__(self) -> None:
        """Initialize retry context."""
        self.total_attempts: int = 0
        self.total_retries: int = 0
        self.total_delay_seconds: float = 0.0
        self.last_error: Optional[Exception] = None
        self.history: List[RetryAttempt] = []

    def record_attempt(self) -> None:
        """Record a new attempt."""
        self.total_attempts += 1

    def record_retry(self, attempt: RetryAttempt) -> None:
        """Record a retry with its delay and triggering error."""
        self.total_retries += 1
        self.total_delay_seconds += attempt.delay_seconds
        self.last_error = attempt.error
        self.history.append(attempt)

    def reset(self) -> None:
        """Reset the context for reuse."""
        self.total_attempts = 0
        self.total_retries = 0
        self.total_delay_seconds = 0.0
        self.last_error = None
        self.history = []
