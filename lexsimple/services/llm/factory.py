"""Builds an LLMService from configuration."""

from typing import Any, Optional

import structlog

from lexsimple.models.settings import LLMSettings
from lexsimple.services.llm.providers.anthropic import AnthropicAdapter
from lexsimple.services.llm.providers.base import LLMAdapter
from lexsimple.services.llm.providers.fake import FakeAdapter
from lexsimple.services.llm.service import LLMService

logger = structlog.get_logger()


def create_adapter(
    settings: LLMSettings, provider: Optional[str] = None, client: Any = None
) -> LLMAdapter:
    """Instantiate the adapter for a provider name.

    Raises:
        ValueError: Unknown provider name
    """
    name = provider or settings.default_provider
    if name == "claude":
        return AnthropicAdapter(settings.provider_config("claude"), client=client)
    if name == "fake":
        return FakeAdapter()
    raise ValueError(f"Unknown LLM provider: {name}")


def create_llm_service(
    settings: LLMSettings, provider: Optional[str] = None, client: Any = None
) -> LLMService:
    adapter = create_adapter(settings, provider, client)
    logger.debug("llm_adapter_created", provider=adapter.name)
    return LLMService(adapter, settings)
