"""Windowed rate limiter for LLM provider governance

Tracks request and token consumption per provider in minute and hour
windows. A window resets when its period has elapsed since it opened;
counters are never reduced mid-window.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

import structlog

from lexsimple.models.settings import RateLimitConfig
from lexsimple.services.llm.exceptions import LLMRateLimitError

logger = structlog.get_logger()

WINDOW_PERIODS: Dict[str, float] = {"minute": 60.0, "hour": 3600.0}


@dataclass
class RateLimitWindow:
    """Request and token counters bound to one window period"""

    period_seconds: float
    started_at: float
    request_count: int = 0
    token_count: int = 0

    def expire(self, now: float) -> None:
        if now - self.started_at >= self.period_seconds:
            self.request_count = 0
            self.token_count = 0
            self.started_at = now

    def seconds_until_reset(self, now: float) -> float:
        return max(0.0, self.period_seconds - (now - self.started_at))


class RateLimiter:
    """Per-provider request/token rate limiter.

    The read-check-increment sequence runs under a lock, so concurrent
    callers (threads or tasks) can never jointly exceed a limit.
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, RateLimitConfig]] = None,
        default_limits: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._limits: Dict[str, RateLimitConfig] = dict(limits or {})
        self._default_limits = default_limits or RateLimitConfig()
        self._clock = clock
        self._windows: Dict[str, Dict[str, RateLimitWindow]] = {}
        self._lock = threading.Lock()

    def limits_for(self, provider: str) -> RateLimitConfig:
        return self._limits.get(provider, self._default_limits)

    def _provider_windows(self, provider: str, now: float) -> Dict[str, RateLimitWindow]:
        windows = self._windows.get(provider)
        if windows is None:
            windows = {
                name: RateLimitWindow(period_seconds=period, started_at=now)
                for name, period in WINDOW_PERIODS.items()
            }
            self._windows[provider] = windows
        for window in windows.values():
            window.expire(now)
        return windows

    def _find_violation(
        self, provider: str, estimated_tokens: int, now: float
    ) -> Optional[Tuple[str, str, int, float]]:
        """Return (kind, window, limit, retry_after) for the first violated limit."""
        limits = self.limits_for(provider)
        windows = self._provider_windows(provider, now)
        budgets = {
            "minute": (limits.requests_per_minute, limits.tokens_per_minute),
            "hour": (limits.requests_per_hour, limits.tokens_per_hour),
        }
        for name, (request_limit, token_limit) in budgets.items():
            window = windows[name]
            if window.request_count + 1 > request_limit:
                return "requests", name, request_limit, window.seconds_until_reset(now)
            if window.token_count + estimated_tokens > token_limit:
                return "tokens", name, token_limit, window.seconds_until_reset(now)
        return None

    def _consume(self, provider: str, estimated_tokens: int) -> None:
        for window in self._windows[provider].values():
            window.request_count += 1
            window.token_count += estimated_tokens

    def check_and_consume(self, provider: str, estimated_tokens: int = 0) -> bool:
        """Atomically check limits and consume one request plus tokens.

        Args:
            provider: Provider name the limits are keyed by
            estimated_tokens: Tokens the request is expected to use

        Returns:
            True if the request was admitted, False if any limit would be exceeded
        """
        return self._check(provider, estimated_tokens) is None

    def check_and_reserve(self, provider: str, estimated_tokens: int = 0) -> None:
        """Like check_and_consume, but raises on denial.

        Raises:
            LLMRateLimitError: With retry_after set to the time until the
                blocking window resets
        """
        violation = self._check(provider, estimated_tokens)
        if violation is None:
            return
        kind, window, limit, retry_after = violation
        if kind == "requests":
            raise LLMRateLimitError.request_limit_exceeded(
                provider, limit, window, retry_after=retry_after
            )
        raise LLMRateLimitError.token_limit_exceeded(
            provider, limit, window, retry_after=retry_after
        )

    def _check(
        self, provider: str, estimated_tokens: int
    ) -> Optional[Tuple[str, str, int, float]]:
        if estimated_tokens < 0:
            raise ValueError("estimated_tokens must be non-negative")
        with self._lock:
            now = self._clock()
            violation = self._find_violation(provider, estimated_tokens, now)
            if violation is None:
                self._consume(provider, estimated_tokens)
                return None

        kind, window, limit, retry_after = violation
        logger.warning(
            "rate_limit_exceeded",
            provider=provider,
            limit_type=kind,
            window=window,
            limit=limit,
            estimated_tokens=estimated_tokens,
            retry_after=round(retry_after, 3),
        )
        return violation

    def record_usage(
        self, provider: str, estimated_tokens: int, actual_tokens: int
    ) -> None:
        """Reconcile the token estimate with actual usage.

        Only adds tokens when usage exceeded the estimate; counters never
        shrink within a window.
        """
        extra = actual_tokens - estimated_tokens
        if extra <= 0:
            return
        with self._lock:
            windows = self._provider_windows(provider, self._clock())
            for window in windows.values():
                window.token_count += extra

    def get_usage_stats(self, provider: str) -> Dict[str, Dict[str, int]]:
        """Current usage per window with limits and remaining budget."""
        limits = self.limits_for(provider)
        with self._lock:
            windows = self._provider_windows(provider, self._clock())
            snapshot = {
                name: (window.request_count, window.token_count)
                for name, window in windows.items()
            }

        request_limits = {
            "minute": limits.requests_per_minute,
            "hour": limits.requests_per_hour,
        }
        token_limits = {
            "minute": limits.tokens_per_minute,
            "hour": limits.tokens_per_hour,
        }
        stats: Dict[str, Dict[str, int]] = {}
        for name, (requests, tokens) in snapshot.items():
            stats[f"requests_per_{name}"] = {
                "used": requests,
                "limit": request_limits[name],
                "remaining": max(0, request_limits[name] - requests),
            }
            stats[f"tokens_per_{name}"] = {
                "used": tokens,
                "limit": token_limits[name],
                "remaining": max(0, token_limits[name] - tokens),
            }
        return stats

    def reset(self, provider: Optional[str] = None) -> None:
        """Drop counters for one provider, or all providers."""
        with self._lock:
            if provider is None:
                self._windows.clear()
            else:
                self._windows.pop(provider, None)
