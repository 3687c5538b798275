"""Prometheus metrics definitions for the LLM orchestration core.

Defines counters, gauges, and histograms for monitoring:
- LLM request throughput, latency, retries and rate-limit denials
- Token usage and cost
- Prompt executions and response parsing outcomes

Usage:
    from lexsimple.observability.metrics import (
        LLM_REQUESTS_TOTAL,
        LLM_TOKENS_TOTAL,
        LLM_REQUEST_DURATION,
    )

    LLM_REQUESTS_TOTAL.labels(provider="claude", status="success").inc()

    with LLM_REQUEST_DURATION.labels(provider="claude").time():
        await adapter.execute(request)
"""

from typing import Any, Optional
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
)

# Custom registry to avoid conflicts with default registry
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS - Monotonically increasing values
# =============================================================================

LLM_REQUESTS_TOTAL = Counter(
    name="lexsimple_llm_requests_total",
    documentation="Total LLM requests",
    labelnames=["provider", "status"],  # claude/fake, success/failed
    registry=REGISTRY,
)

LLM_TOKENS_TOTAL = Counter(
    name="lexsimple_llm_tokens_total",
    documentation="Total LLM tokens used",
    labelnames=["provider", "type"],  # input/output
    registry=REGISTRY,
)

LLM_COST_USD_TOTAL = Counter(
    name="lexsimple_llm_cost_usd_total",
    documentation="Total LLM cost in USD",
    labelnames=["provider"],
    registry=REGISTRY,
)

LLM_RETRIES_TOTAL = Counter(
    name="lexsimple_llm_retries_total",
    documentation="Total retry attempts by triggering error",
    labelnames=["provider", "error_type"],
    registry=REGISTRY,
)

LLM_ERRORS_TOTAL = Counter(
    name="lexsimple_llm_errors_total",
    documentation="Total LLM failures after retries, by error class",
    labelnames=["provider", "error_type"],
    registry=REGISTRY,
)

RATE_LIMIT_DENIALS = Counter(
    name="lexsimple_rate_limit_denials_total",
    documentation="Requests denied by the local rate limiter",
    labelnames=["provider"],
    registry=REGISTRY,
)

PROMPT_EXECUTIONS = Counter(
    name="lexsimple_prompt_executions_total",
    documentation="Prompt executions by system and status",
    labelnames=["system", "status"],  # success/failed
    registry=REGISTRY,
)

RESPONSE_PARSES = Counter(
    name="lexsimple_response_parses_total",
    documentation="LLM response parses by outcome",
    labelnames=["outcome"],  # success, partial, failed
    registry=REGISTRY,
)

# =============================================================================
# GAUGES - Values that can go up and down
# =============================================================================

ACTIVE_REQUESTS = Gauge(
    name="lexsimple_active_llm_requests",
    documentation="LLM requests currently in flight",
    labelnames=["provider"],
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS - Distribution of values
# =============================================================================

LLM_REQUEST_DURATION = Histogram(
    name="lexsimple_llm_request_duration_seconds",
    documentation="LLM request duration in seconds, retries included",
    labelnames=["provider"],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
    registry=REGISTRY,
)

PROMPT_EXECUTION_DURATION = Histogram(
    name="lexsimple_prompt_execution_duration_seconds",
    documentation="Prompt execution duration in seconds (render to parse)",
    labelnames=["system"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
    registry=REGISTRY,
)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text format.

    Returns:
        UTF-8 encoded metrics in Prometheus exposition format.
    """
    return generate_latest(REGISTRY)


class MetricsContext:
    """Context manager for timing operations and updating metrics.

    Combines histogram timing with counter updates for common patterns.

    Example:
        with MetricsContext(
            histogram=PROMPT_EXECUTION_DURATION.labels(system="translation"),
            success_counter=PROMPT_EXECUTIONS.labels(system="translation", status="success"),
            failure_counter=PROMPT_EXECUTIONS.labels(system="translation", status="failed"),
        ) as ctx:
            result = await run()
            ctx.mark_success()
    """

    def __init__(
        self,
        histogram: Optional[Any] = None,
        success_counter: Optional[Any] = None,
        failure_counter: Optional[Any] = None,
    ):
        self._histogram = histogram
        self._success_counter = success_counter
        self._failure_counter = failure_counter
        self._timer: Any = None
        self._success = False

    def __enter__(self) -> "MetricsContext":
        """Start timing."""
        if self._histogram:
            self._timer = self._histogram.time()
            self._timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Stop timing and update counters."""
        if self._timer:
            self._timer.__exit__(exc_type, exc_val, exc_tb)

        if exc_type is None and self._success:
            if self._success_counter:
                self._success_counter.inc()
        elif self._failure_counter:
            # Exception, or exited without mark_success()
            self._failure_counter.inc()

    def mark_success(self) -> None:
        """Mark the operation as successful."""
        self._success = True
