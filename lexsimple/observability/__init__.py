"""Observability: correlation IDs, structured logging, Prometheus metrics.

Usage:
    from lexsimple.observability import (
        correlation_id_context,
        configure_logging,
        LLM_REQUESTS_TOTAL,
    )
"""

from lexsimple.observability.context import (
    get_correlation_id,
    correlation_id_context,
)
from lexsimple.observability.logging import (
    configure_logging,
    add_correlation_id_processor,
)
from lexsimple.observability.metrics import (
    # Counters
    LLM_REQUESTS_TOTAL,
    LLM_TOKENS_TOTAL,
    LLM_COST_USD_TOTAL,
    LLM_RETRIES_TOTAL,
    LLM_ERRORS_TOTAL,
    RATE_LIMIT_DENIALS,
    PROMPT_EXECUTIONS,
    RESPONSE_PARSES,
    # Gauges
    ACTIVE_REQUESTS,
    # Histograms
    LLM_REQUEST_DURATION,
    PROMPT_EXECUTION_DURATION,
    # Registry and utilities
    REGISTRY,
    MetricsContext,
    get_metrics_text,
)

__all__ = [
    # Context
    "get_correlation_id",
    "correlation_id_context",
    # Logging
    "configure_logging",
    "add_correlation_id_processor",
    # Counters
    "LLM_REQUESTS_TOTAL",
    "LLM_TOKENS_TOTAL",
    "LLM_COST_USD_TOTAL",
    "LLM_RETRIES_TOTAL",
    "LLM_ERRORS_TOTAL",
    "RATE_LIMIT_DENIALS",
    "PROMPT_EXECUTIONS",
    "RESPONSE_PARSES",
    # Gauges
    "ACTIVE_REQUESTS",
    # Histograms
    "LLM_REQUEST_DURATION",
    "PROMPT_EXECUTION_DURATION",
    # Utilities
    "REGISTRY",
    "MetricsContext",
    "get_metrics_text",
]
