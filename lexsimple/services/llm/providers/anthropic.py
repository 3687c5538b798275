"""Anthropic (Claude) Adapter Implementation"""

import asyncio
import time
from typing import Any, List, Optional

import anthropic
import structlog

from lexsimple.models.settings import ProviderConfig
from lexsimple.services.llm.cost_calculator import CostCalculator
from lexsimple.services.llm.exceptions import (
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
)
from lexsimple.services.llm.providers.base import LLMAdapter, LLMRequest, LLMResponse

logger = structlog.get_logger()

CONNECTION_CHECK_TTL_SECONDS = 300.0
API_OPTION_KEYS = ("top_p", "top_k", "stop_sequences")


class AnthropicAdapter(LLMAdapter):
    """Anthropic Claude adapter.

    Maps SDK errors onto the LLM taxonomy:
    - 401 -> LLMConnectionError.invalid_api_key
    - 429 -> LLMRateLimitError (Retry-After honored)
    - timeouts -> LLMConnectionError.connection_timeout
    - connection failures -> LLMConnectionError.network_error
    - any other status -> LLMError (fatal)
    """

    def __init__(self, config: ProviderConfig, client: Any = None):
        """Initialize Anthropic adapter.

        Args:
            config: Provider configuration (key, models, pricing, timeout)
            client: Pre-built AsyncAnthropic-compatible client
        """
        self.config = config
        self.cost_calculator = CostCalculator(config.pricing, config.default_model)
        self._connection_checked_at: Optional[float] = None
        self._connection_ok = False

        if client is not None:
            self._client = client
        else:
            if not self.config.api_key:
                raise LLMConnectionError.invalid_api_key(self.name)
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )

    @property
    def name(self) -> str:
        """Provider name."""
        return "claude"

    @property
    def default_model(self) -> str:
        return self.config.default_model

    def get_supported_models(self) -> List[str]:
        return list(self.config.models)

    def validate_request(self, request: LLMRequest) -> None:
        """Reject requests that cannot succeed.

        Raises:
            LLMError: Empty content, unsupported model, bad sampling params
        """
        if not request.content.strip():
            raise LLMError("Request content cannot be empty", code=400)
        model = request.model or self.default_model
        if model not in self.config.models:
            raise LLMError(
                f"Unsupported model: {model}",
                code=400,
                context={"model": model, "supported": self.get_supported_models()},
            )
        if not 0.0 <= request.temperature <= 1.0:
            raise LLMError(
                f"Temperature must be between 0 and 1, got {request.temperature}",
                code=400,
            )
        if request.max_tokens < 1:
            raise LLMError("max_tokens must be at least 1", code=400)

    async def execute(self, request: LLMRequest) -> LLMResponse:
        """Send a request to the Messages API.

        Raises:
            LLMConnectionError: Invalid key, timeout, network failure
            LLMRateLimitError: 429 from the API
            LLMError: Validation failures and other API errors
        """
        self.validate_request(request)
        model = request.model or self.default_model

        params: dict = {
            "model": model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.content}],
        }
        if request.system_prompt:
            params["system"] = request.system_prompt
        params.update(
            {key: value for key, value in request.options.items() if key in API_OPTION_KEYS}
        )

        start_time = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**params),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise LLMConnectionError.connection_timeout(
                self.name, self.config.timeout_seconds
            )
        except anthropic.APIError as e:
            raise self._classify_error(e) from e

        execution_time_ms = (time.monotonic() - start_time) * 1000
        content = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        llm_response = LLMResponse(
            content=content,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            execution_time_ms=execution_time_ms,
            cost_usd=self.calculate_cost(input_tokens, output_tokens, model),
            stop_reason=response.stop_reason,
            metadata={"provider": self.name, "response_id": getattr(response, "id", None)},
        )

        logger.debug(
            "anthropic_execute_success",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            execution_time_ms=round(execution_time_ms, 2),
        )
        return llm_response

    def _classify_error(self, error: "anthropic.APIError") -> LLMError:
        """Classify SDK exception into the LLM error taxonomy."""
        if isinstance(error, anthropic.AuthenticationError):
            return LLMConnectionError.invalid_api_key(self.name)
        if isinstance(error, anthropic.RateLimitError):
            return LLMRateLimitError.from_api_response(
                self.name, dict(error.response.headers)
            )
        if isinstance(error, anthropic.APITimeoutError):
            return LLMConnectionError.connection_timeout(
                self.name, self.config.timeout_seconds
            )
        if isinstance(error, anthropic.APIConnectionError):
            return LLMConnectionError.network_error(self.name, str(error))
        if isinstance(error, anthropic.APIStatusError):
            return LLMError(
                f"API request failed with status {error.status_code}: {error.message}",
                code=error.status_code,
                context={"provider": self.name},
            )
        return LLMError(str(error), context={"provider": self.name})

    async def validate_connection(self) -> bool:
        """Probe the API with a one-token request; cached for five minutes."""
        now = time.monotonic()
        if (
            self._connection_checked_at is not None
            and now - self._connection_checked_at < CONNECTION_CHECK_TTL_SECONDS
        ):
            return self._connection_ok

        try:
            await self.execute(LLMRequest(content="ping", max_tokens=1))
            self._connection_ok = True
        except LLMError as e:
            logger.warning("connection_check_failed", provider=self.name, error=str(e))
            self._connection_ok = False
        self._connection_checked_at = now
        return self._connection_ok

    def calculate_cost(
        self, input_tokens: int, output_tokens: int, model: Optional[str] = None
    ) -> float:
        return self.cost_calculator.calculate(input_tokens, output_tokens, model)
