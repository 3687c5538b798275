"""Abstract LLM Adapter Interface

This module defines:
- LLMRequest: Immutable request sent to a provider
- LLMResponse: Standardized immutable response
- LLMAdapter: Abstract base class for all provider adapters
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence


LEGAL_TRANSLATOR_SYSTEM_PROMPT = (
    "You are a legal document translator. Translate complex legal text into "
    "simple, understandable language while preserving all important legal "
    "meanings and implications."
)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token estimate used for rate limiting and cost previews."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class LLMRequest:
    """Generic request to any LLM provider.

    Attributes:
        content: User content to send
        system_prompt: Optional system instruction
        model: Optional model override (None = selected by the service)
        max_tokens: Maximum tokens to generate
        temperature: Sampling temperature (0.0 = deterministic)
        options: Provider-specific options
        metadata: Request type, document type, batch position, timestamps
    """

    content: str
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    max_tokens: int = 4096
    temperature: float = 0.1
    options: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_section_translation(
        cls,
        content: str,
        document_type: str = "legal",
        model: Optional[str] = None,
        **options: Any,
    ) -> "LLMRequest":
        return cls(
            content=content,
            system_prompt=LEGAL_TRANSLATOR_SYSTEM_PROMPT,
            model=model,
            options=dict(options),
            metadata={
                "request_type": "section_translation",
                "document_type": document_type,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    @classmethod
    def for_batch_translation(
        cls,
        content: str,
        batch_index: int,
        batch_total: int,
        document_type: str = "legal",
        model: Optional[str] = None,
        **options: Any,
    ) -> "LLMRequest":
        return cls(
            content=content,
            system_prompt=LEGAL_TRANSLATOR_SYSTEM_PROMPT,
            model=model,
            options=dict(options),
            metadata={
                "request_type": "batch_translation",
                "document_type": document_type,
                "batch_index": batch_index,
                "batch_total": batch_total,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    @property
    def estimated_input_tokens(self) -> int:
        """Estimated prompt tokens including the system prompt."""
        return estimate_tokens(self.content + (self.system_prompt or ""))

    def with_model(self, model: str) -> "LLMRequest":
        return replace(self, model=model)


@dataclass(frozen=True)
class LLMResponse:
    """Standardized response from any LLM provider.

    Attributes:
        content: The generated text content
        model: The model identifier used
        input_tokens: Number of input tokens consumed
        output_tokens: Number of output tokens generated
        execution_time_ms: Request latency in milliseconds
        cost_usd: Cost computed from the pricing table
        stop_reason: Why generation stopped (end_turn, max_tokens, ...)
        metadata: Raw provider metadata (response id, provider name)
    """

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    execution_time_ms: float
    cost_usd: float
    stop_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens

    def is_success(self) -> bool:
        return bool(self.content) and self.stop_reason != "error"

    def cost_per_token(self) -> float:
        return self.cost_usd / self.total_tokens if self.total_tokens else 0.0

    def tokens_per_second(self) -> float:
        if self.execution_time_ms <= 0:
            return 0.0
        return self.output_tokens / (self.execution_time_ms / 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "execution_time_ms": self.execution_time_ms,
            "cost_usd": self.cost_usd,
            "stop_reason": self.stop_reason,
            "metadata": dict(self.metadata),
        }


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters.

    Adapters raise LLMConnectionError or LLMRateLimitError for transient
    failures and plain LLMError for everything else.

    Implementations:
        - AnthropicAdapter: Claude models
        - FakeAdapter: Deterministic responses for tests and dry runs
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'claude', 'fake')."""
        pass  # pragma: no cover - abstract method, always overridden

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when a request carries no override."""
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    async def execute(self, request: LLMRequest) -> LLMResponse:
        """Send a single request.

        Raises:
            LLMConnectionError: Invalid credentials, timeout, network failure
            LLMRateLimitError: Provider reported 429
            LLMError: Any other failure (fatal)
        """
        pass  # pragma: no cover - abstract method, always overridden

    async def execute_batch(
        self, requests: Sequence[LLMRequest]
    ) -> List[LLMResponse]:
        """Send requests one after another, preserving order."""
        return [await self.execute(request) for request in requests]

    @abstractmethod
    async def validate_connection(self) -> bool:
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def get_supported_models(self) -> List[str]:
        pass  # pragma: no cover - abstract method, always overridden

    @abstractmethod
    def calculate_cost(
        self, input_tokens: int, output_tokens: int, model: Optional[str] = None
    ) -> float:
        """Calculate cost in USD for token usage."""
        pass  # pragma: no cover - abstract method, always overridden

    def count_tokens(self, text: str, model: Optional[str] = None) -> int:
        return estimate_tokens(text)

    def get_provider_name(self) -> str:
        return self.name
