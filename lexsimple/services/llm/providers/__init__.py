"""LLM Adapter Implementations

- LLMAdapter: Abstract base class defining the adapter contract
- AnthropicAdapter: Claude models
- FakeAdapter: Deterministic offline responses
"""

from lexsimple.services.llm.providers.base import LLMAdapter, LLMRequest, LLMResponse
from lexsimple.services.llm.providers.anthropic import AnthropicAdapter
from lexsimple.services.llm.providers.fake import FakeAdapter

__all__ = [
    "LLMAdapter",
    "LLMRequest",
    "LLMResponse",
    "AnthropicAdapter",
    "FakeAdapter",
]
