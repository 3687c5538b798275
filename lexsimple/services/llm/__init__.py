"""LLM Service Package

This package provides:
- LLMService: Rate-limited, retried execution facade (lexsimple.services.llm.service)
- Adapter implementations (Anthropic, Fake)
- Cost calculation, model selection and usage metrics

Usage:
    from lexsimple.services.llm.factory import create_llm_service

The package namespace only re-exports the request/response types and the
error taxonomy, which have no dependencies on lexsimple.utils.
"""

from lexsimple.services.llm.providers.base import LLMAdapter, LLMRequest, LLMResponse
from lexsimple.services.llm.exceptions import (
    RETRYABLE_ERRORS,
    LLMCancelledError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
)

__all__ = [
    # Provider abstractions
    "LLMAdapter",
    "LLMRequest",
    "LLMResponse",
    # Exceptions
    "RETRYABLE_ERRORS",
    "LLMCancelledError",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
]
