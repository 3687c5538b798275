"""Usage Metrics Module

Records LLM usage both as Prometheus metrics and as an in-memory aggregate
returned by LLMService.get_usage_stats().
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog

from lexsimple.observability.metrics import (
    LLM_COST_USD_TOTAL,
    LLM_ERRORS_TOTAL,
    LLM_REQUESTS_TOTAL,
    LLM_RETRIES_TOTAL,
    LLM_TOKENS_TOTAL,
    RATE_LIMIT_DENIALS,
)
from lexsimple.services.llm.exceptions import LLMRateLimitError
from lexsimple.services.llm.providers.base import LLMResponse

logger = structlog.get_logger()


@dataclass
class DocumentTypeUsage:
    """Usage tracking for a single document type."""

    requests: int = 0
    failures: int = 0
    tokens: int = 0
    cost_usd: float = 0.0


@dataclass
class UsageMetrics:
    """Aggregates LLM usage for one provider.

    Attributes:
        provider: Provider label used on every metric
        total_requests: Successful plus failed requests
        failed_requests: Requests that raised after retries
        total_retries: Retry attempts across all requests
        rate_limit_denials: Local gate denials
        by_document_type: Per-document-type breakdown
        errors_by_type: Failure counts keyed by exception class name
    """

    provider: str
    total_requests: int = 0
    failed_requests: int = 0
    total_retries: int = 0
    rate_limit_denials: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost_usd: float = 0.0
    total_execution_time_ms: float = 0.0
    by_document_type: Dict[str, DocumentTypeUsage] = field(default_factory=dict)
    errors_by_type: Dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _document_usage(self, document_type: Optional[str]) -> DocumentTypeUsage:
        key = document_type or "unknown"
        if key not in self.by_document_type:
            self.by_document_type[key] = DocumentTypeUsage()
        return self.by_document_type[key]

    def record_success(
        self, response: LLMResponse, document_type: Optional[str] = None
    ) -> None:
        """Record a completed request."""
        with self._lock:
            self.total_requests += 1
            self.input_tokens += response.input_tokens
            self.output_tokens += response.output_tokens
            self.total_cost_usd += response.cost_usd
            self.total_execution_time_ms += response.execution_time_ms
            usage = self._document_usage(document_type)
            usage.requests += 1
            usage.tokens += response.total_tokens
            usage.cost_usd += response.cost_usd

        LLM_REQUESTS_TOTAL.labels(provider=self.provider, status="success").inc()
        LLM_TOKENS_TOTAL.labels(provider=self.provider, type="input").inc(
            response.input_tokens
        )
        LLM_TOKENS_TOTAL.labels(provider=self.provider, type="output").inc(
            response.output_tokens
        )
        LLM_COST_USD_TOTAL.labels(provider=self.provider).inc(response.cost_usd)

        logger.debug(
            "usage_recorded",
            provider=self.provider,
            model=response.model,
            tokens=response.total_tokens,
            cost_usd=response.cost_usd,
            total_cost_usd=round(self.total_cost_usd, 6),
        )

    def record_failure(
        self, error: Exception, document_type: Optional[str] = None
    ) -> None:
        """Record a request that failed after retries."""
        error_type = type(error).__name__
        with self._lock:
            self.total_requests += 1
            self.failed_requests += 1
            self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1
            usage = self._document_usage(document_type)
            usage.requests += 1
            usage.failures += 1

        LLM_REQUESTS_TOTAL.labels(provider=self.provider, status="failed").inc()
        LLM_ERRORS_TOTAL.labels(provider=self.provider, error_type=error_type).inc()

    def record_retry(self, error: Optional[Exception]) -> None:
        error_type = type(error).__name__ if error is not None else "unknown"
        with self._lock:
            self.total_retries += 1
            if isinstance(error, LLMRateLimitError) and error.context.get(
                "limit_type"
            ) in ("requests", "tokens"):
                self.rate_limit_denials += 1
                RATE_LIMIT_DENIALS.labels(provider=self.provider).inc()
        LLM_RETRIES_TOTAL.labels(provider=self.provider, error_type=error_type).inc()

    def get_stats(self) -> Dict[str, Any]:
        """Get current usage summary."""
        with self._lock:
            successful = self.total_requests - self.failed_requests
            return {
                "provider": self.provider,
                "total_requests": self.total_requests,
                "successful_requests": successful,
                "failed_requests": self.failed_requests,
                "success_rate": (
                    successful / self.total_requests if self.total_requests else 0.0
                ),
                "total_retries": self.total_retries,
                "rate_limit_denials": self.rate_limit_denials,
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
                "total_tokens": self.input_tokens + self.output_tokens,
                "total_cost_usd": round(self.total_cost_usd, 6),
                "average_execution_time_ms": (
                    self.total_execution_time_ms / successful if successful else 0.0
                ),
                "by_document_type": {
                    name: {
                        "requests": usage.requests,
                        "failures": usage.failures,
                        "tokens": usage.tokens,
                        "cost_usd": round(usage.cost_usd, 6),
                    }
                    for name, usage in self.by_document_type.items()
                },
                "errors_by_type": dict(self.errors_by_type),
            }
