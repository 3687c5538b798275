"""LLM Service Orchestrator

Thin orchestrator that composes:
- ModelSelector: cheap vs strong model per request
- RateLimiter: per-provider request/token gate
- RetryHandler: backoff for connection and rate-limit errors
- LLMAdapter: provider-specific API calls
- UsageMetrics: Prometheus and in-memory usage aggregates

Each attempt passes the rate-limit gate before the adapter call, so a
local denial is retried with backoff like a provider 429.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog

from lexsimple.models.settings import LLMSettings
from lexsimple.observability.metrics import ACTIVE_REQUESTS, LLM_REQUEST_DURATION
from lexsimple.services.llm.exceptions import (
    RETRYABLE_ERRORS,
    LLMCancelledError,
    LLMError,
)
from lexsimple.services.llm.model_selector import Complexity, ModelSelector
from lexsimple.services.llm.providers.base import (
    LLMAdapter,
    LLMRequest,
    LLMResponse,
)
from lexsimple.services.llm.usage_metrics import UsageMetrics
from lexsimple.utils.rate_limiter import RateLimiter
from lexsimple.utils.retry import RetryHandler

logger = structlog.get_logger()


@dataclass
class BatchResult:
    """Outcome of a best-effort batch, in input order.

    Attributes:
        responses: One slot per request; None where the item failed
        errors: Failures keyed by input index
    """

    responses: List[Optional[LLMResponse]]
    errors: Dict[int, Exception] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[LLMResponse]:
        return [response for response in self.responses if response is not None]

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    def is_complete(self) -> bool:
        return not self.errors


class LLMService:
    """Facade over rate-limited, retried LLM execution.

    Safe to share between concurrent callers; the rate limiter is the only
    shared mutable state on the request path.
    """

    def __init__(
        self,
        adapter: LLMAdapter,
        settings: Optional[LLMSettings] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_handler: Optional[RetryHandler] = None,
        usage_metrics: Optional[UsageMetrics] = None,
        model_selector: Optional[ModelSelector] = None,
    ):
        self.adapter = adapter
        self.settings = settings or LLMSettings()
        self.provider_config = self.settings.provider_config(adapter.name)
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.rate_limits)
        self.retry_handler = retry_handler or RetryHandler(self.settings.retry)
        self.usage_metrics = usage_metrics or UsageMetrics(provider=adapter.name)
        self.model_selector = model_selector or ModelSelector(
            self.settings.model_selection, adapter.get_supported_models()
        )

        logger.info(
            "llm_service_initialized",
            provider=adapter.name,
            default_model=adapter.default_model,
            max_attempts=self.retry_handler.config.max_attempts,
        )

    @property
    def provider(self) -> str:
        return self.adapter.name

    async def execute(
        self,
        request: LLMRequest,
        complexity: Optional[Complexity] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> LLMResponse:
        """Execute one request under rate limiting and retry.

        Args:
            request: The request to send
            complexity: Optional caller-supplied complexity signal
            cancel_event: Stops further retry attempts once set

        Returns:
            LLMResponse from the adapter

        Raises:
            LLMError: Fatal errors immediately, or the last retryable
                error once attempts are exhausted
        """
        model = self.model_selector.select(request, self.adapter.default_model, complexity)
        if model != request.model:
            request = request.with_model(model)

        estimated_tokens = request.estimated_input_tokens
        document_type = request.metadata.get("document_type")

        async def attempt() -> LLMResponse:
            self.rate_limiter.check_and_reserve(self.provider, estimated_tokens)
            return await self.adapter.execute(request)

        ACTIVE_REQUESTS.labels(provider=self.provider).inc()
        try:
            with LLM_REQUEST_DURATION.labels(provider=self.provider).time():
                response = await self.retry_handler.execute(
                    attempt,
                    retryable_exceptions=RETRYABLE_ERRORS,
                    operation_name=f"{self.provider}:{request.metadata.get('request_type', 'request')}",
                    on_retry=lambda retry: self.usage_metrics.record_retry(retry.error),
                    cancel_event=cancel_event,
                )
        except LLMError as e:
            self.usage_metrics.record_failure(e, document_type)
            logger.error(
                "llm_request_failed",
                provider=self.provider,
                model=model,
                error_type=type(e).__name__,
                error=str(e),
                code=e.code,
            )
            raise
        finally:
            ACTIVE_REQUESTS.labels(provider=self.provider).dec()

        self.rate_limiter.record_usage(
            self.provider, estimated_tokens, response.total_tokens
        )
        self.usage_metrics.record_success(response, document_type)

        logger.info(
            "llm_request_completed",
            provider=self.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost_usd=response.cost_usd,
            execution_time_ms=round(response.execution_time_ms, 2),
        )
        return response

    async def execute_batch(
        self,
        requests: Sequence[LLMRequest],
        fail_fast: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """Execute requests with bounded parallelism, preserving input order.

        Args:
            requests: Requests to send
            fail_fast: Abort remaining items on the first non-retryable error
                (defaults to settings.batch.fail_fast)
            cancel_event: Caller cancellation; pending items are skipped

        Returns:
            BatchResult with responses in input order

        Raises:
            LLMError: With fail_fast, the first non-retryable error in input order
        """
        if fail_fast is None:
            fail_fast = self.settings.batch.fail_fast
        concurrency = min(
            self.settings.batch.max_concurrency, self.provider_config.max_concurrent
        )
        semaphore = asyncio.Semaphore(concurrency)
        abort = asyncio.Event()
        watcher = (
            asyncio.create_task(self._forward_cancel(cancel_event, abort))
            if cancel_event is not None
            else None
        )

        async def run(index: int, request: LLMRequest) -> LLMResponse:
            async with semaphore:
                if abort.is_set():
                    raise LLMCancelledError(f"batch item {index}", 0)
                try:
                    return await self.execute(request, cancel_event=abort)
                except LLMError as e:
                    if fail_fast and not isinstance(e, RETRYABLE_ERRORS):
                        abort.set()
                    raise

        logger.info(
            "llm_batch_started",
            provider=self.provider,
            size=len(requests),
            concurrency=concurrency,
            fail_fast=fail_fast,
        )
        try:
            outcomes = await asyncio.gather(
                *(run(index, request) for index, request in enumerate(requests)),
                return_exceptions=True,
            )
        finally:
            if watcher is not None:
                watcher.cancel()

        result = BatchResult(responses=[])
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                result.responses.append(None)
                result.errors[index] = outcome
            else:
                result.responses.append(outcome)

        if fail_fast:
            for error in result.errors.values():
                if not isinstance(error, (LLMCancelledError,) + RETRYABLE_ERRORS):
                    logger.error(
                        "llm_batch_aborted",
                        provider=self.provider,
                        completed=len(result.succeeded),
                        failed=result.failed_count,
                    )
                    raise error

        if result.errors:
            logger.warning(
                "llm_batch_partial_failure",
                provider=self.provider,
                failed_indices=sorted(result.errors),
                errors={
                    index: str(error) for index, error in sorted(result.errors.items())
                },
            )
        logger.info(
            "llm_batch_completed",
            provider=self.provider,
            succeeded=len(result.succeeded),
            failed=result.failed_count,
        )
        return result

    @staticmethod
    async def _forward_cancel(source: asyncio.Event, target: asyncio.Event) -> None:
        await source.wait()
        target.set()

    async def translate_section(
        self,
        content: str,
        document_type: str = "legal",
        model: Optional[str] = None,
        **options: Any,
    ) -> LLMResponse:
        """Translate one section into plain language."""
        request = LLMRequest.for_section_translation(
            content, document_type=document_type, model=model, **options
        )
        return await self.execute(request)

    async def translate_batch(
        self,
        sections: Sequence[str],
        document_type: str = "legal",
        model: Optional[str] = None,
        fail_fast: Optional[bool] = None,
        **options: Any,
    ) -> BatchResult:
        """Translate several sections; see execute_batch for failure policy."""
        requests = [
            LLMRequest.for_batch_translation(
                content,
                batch_index=index,
                batch_total=len(sections),
                document_type=document_type,
                model=model,
                **options,
            )
            for index, content in enumerate(sections)
        ]
        return await self.execute_batch(requests, fail_fast=fail_fast)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        **options: Any,
    ) -> LLMResponse:
        """Free-form generation with provider defaults for unset parameters."""
        request = LLMRequest(
            content=prompt,
            system_prompt=system_prompt,
            model=model,
            max_tokens=max_tokens or self.provider_config.max_tokens,
            temperature=(
                self.provider_config.temperature if temperature is None else temperature
            ),
            options=dict(options),
            metadata={"request_type": "generation", **(metadata or {})},
        )
        return await self.execute(request, cancel_event=cancel_event)

    def estimate_cost(
        self,
        content: str,
        model: Optional[str] = None,
        task_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Estimate cost before sending; output is assumed to be half the input."""
        model = model or self.model_selector.select(
            LLMRequest(content=content, metadata={"task_type": task_type}),
            self.adapter.default_model,
        )
        input_tokens = self.adapter.count_tokens(content, model)
        output_tokens = input_tokens // 2
        return {
            "model": model,
            "input_tokens": input_tokens,
            "estimated_output_tokens": output_tokens,
            "estimated_cost_usd": self.adapter.calculate_cost(
                input_tokens, output_tokens, model
            ),
        }

    async def validate_connection(self) -> bool:
        try:
            return await self.adapter.validate_connection()
        except LLMError as e:
            logger.warning(
                "connection_validation_failed", provider=self.provider, error=str(e)
            )
            return False

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "default_model": self.adapter.default_model,
            "supported_models": self.adapter.get_supported_models(),
            "rate_limits": self.rate_limiter.limits_for(self.provider).model_dump(),
            "retry": self.retry_handler.config.model_dump(),
        }

    def get_usage_stats(self) -> Dict[str, Any]:
        stats = self.usage_metrics.get_stats()
        stats["rate_limits"] = self.rate_limiter.get_usage_stats(self.provider)
        return stats
