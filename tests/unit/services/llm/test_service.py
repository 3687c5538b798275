"""Tests for LLMService orchestration.

Covers model selection, rate-limit gating inside retries, usage accounting,
batch ordering and the fail-fast policy.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from lexsimple.models.settings import (
    BatchConfig,
    LLMSettings,
    RateLimitConfig,
    RetryConfig,
)
from lexsimple.services.llm.exceptions import (
    LLMCancelledError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
)
from lexsimple.services.llm.providers.base import LLMRequest, LLMResponse
from lexsimple.services.llm.providers.fake import FakeAdapter
from lexsimple.services.llm.service import BatchResult, LLMService
from lexsimple.utils.rate_limiter import RateLimiter


def fast_settings(**overrides) -> LLMSettings:
    values = {
        "default_provider": "fake",
        "retry": RetryConfig(max_attempts=3, base_delay_seconds=0.0, jitter_factor=0.0),
    }
    values.update(overrides)
    return LLMSettings(**values)


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def service(adapter):
    return LLMService(adapter, fast_settings())


class TestExecute:
    """Tests for single-request execution."""

    @pytest.mark.asyncio
    async def test_execute_success(self, service, adapter):
        response = await service.execute(LLMRequest(content="Clause text"))

        assert isinstance(response, LLMResponse)
        assert response.model == adapter.default_model
        stats = service.get_usage_stats()
        assert stats["total_requests"] == 1
        assert stats["successful_requests"] == 1
        assert stats["rate_limits"]["requests_per_minute"]["used"] == 1

    @pytest.mark.asyncio
    async def test_selected_model_applied(self):
        adapter = FakeAdapter()
        settings = fast_settings()
        settings.model_selection.simple_model = "fake-claude-3-5-haiku"
        service = LLMService(adapter, settings)

        response = await service.execute(LLMRequest(content="short"))

        assert response.model == "fake-claude-3-5-haiku"
        assert adapter.requests[0].model == "fake-claude-3-5-haiku"

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, service, adapter):
        adapter.queue_failure(LLMConnectionError.network_error("fake", "reset"))
        adapter.queue_failure(LLMRateLimitError("429", retry_after=0.001))

        response = await service.execute(LLMRequest(content="Clause"))

        assert response.content
        assert len(adapter.requests) == 3
        stats = service.get_usage_stats()
        assert stats["total_retries"] == 2
        assert stats["failed_requests"] == 0

    @pytest.mark.asyncio
    async def test_fatal_error_not_retried(self, service, adapter):
        adapter.queue_failure(LLMError("bad request", code=400))

        with pytest.raises(LLMError, match="bad request"):
            await service.execute(LLMRequest(content="Clause"))

        assert len(adapter.requests) == 1
        stats = service.get_usage_stats()
        assert stats["failed_requests"] == 1
        assert stats["errors_by_type"] == {"LLMError": 1}

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self, service, adapter):
        for _ in range(3):
            adapter.queue_failure(LLMConnectionError.network_error("fake", "down"))

        with pytest.raises(LLMConnectionError):
            await service.execute(LLMRequest(content="Clause"))

        assert len(adapter.requests) == 3

    @pytest.mark.asyncio
    async def test_local_rate_limit_is_retried_then_raised(self, adapter):
        limiter = RateLimiter(
            {"fake": RateLimitConfig(requests_per_minute=1)},
        )
        service = LLMService(adapter, fast_settings(), rate_limiter=limiter)
        service.retry_handler.calculate_delay = MagicMock(return_value=0.0)

        await service.execute(LLMRequest(content="first"))
        with pytest.raises(LLMRateLimitError) as exc_info:
            await service.execute(LLMRequest(content="second"))

        assert exc_info.value.context["limit_type"] == "requests"
        assert len(adapter.requests) == 1
        assert service.get_usage_stats()["rate_limit_denials"] == 2

    @pytest.mark.asyncio
    async def test_cancel_event_stops_retries(self, service, adapter):
        adapter.queue_failure(LLMConnectionError.network_error("fake", "down"))
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(LLMCancelledError):
            await service.execute(LLMRequest(content="x"), cancel_event=cancel)

        assert adapter.requests == []


class TestBatch:
    """Tests for execute_batch and translate_batch."""

    @pytest.mark.asyncio
    async def test_preserves_input_order(self):
        adapter = FakeAdapter(delay_seconds=0.01)
        service = LLMService(adapter, fast_settings())
        sections = [f"<!-- SECTION_ANCHOR_s{i} -->\nClause {i}" for i in range(6)]

        result = await service.translate_batch(sections)

        assert isinstance(result, BatchResult)
        assert result.is_complete()
        for index, response in enumerate(result.responses):
            assert f"Simplified: Clause {index}" in response.content

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        in_flight = 0
        peak = 0

        async def execute(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return LLMResponse("ok", "fake-claude-3-5-sonnet", 1, 1, 1.0, 0.0)

        adapter = FakeAdapter()
        adapter.execute = execute
        settings = fast_settings(batch=BatchConfig(max_concurrency=2))
        service = LLMService(adapter, settings)

        await service.execute_batch([LLMRequest(content=str(i)) for i in range(6)])

        assert peak == 2

    @pytest.mark.asyncio
    async def test_best_effort_collects_errors(self, adapter):
        adapter.execute = AsyncMock(
            side_effect=[
                LLMResponse("a", "fake-claude-3-5-sonnet", 1, 1, 1.0, 0.0),
                LLMError("fatal", code=400),
                LLMResponse("c", "fake-claude-3-5-sonnet", 1, 1, 1.0, 0.0),
            ]
        )
        settings = fast_settings(batch=BatchConfig(max_concurrency=1))
        service = LLMService(adapter, settings)

        result = await service.execute_batch(
            [LLMRequest(content="a"), LLMRequest(content="b"), LLMRequest(content="c")]
        )

        assert result.responses[0].content == "a"
        assert result.responses[1] is None
        assert result.responses[2].content == "c"
        assert result.failed_count == 1
        assert isinstance(result.errors[1], LLMError)
        assert len(result.succeeded) == 2

    @pytest.mark.asyncio
    async def test_fail_fast_raises_and_skips_pending(self, adapter):
        adapter.queue_failure(LLMError("fatal", code=400))
        settings = fast_settings(batch=BatchConfig(max_concurrency=1, fail_fast=True))
        service = LLMService(adapter, settings)

        with pytest.raises(LLMError, match="fatal"):
            await service.execute_batch([LLMRequest(content=str(i)) for i in range(4)])

        assert len(adapter.requests) == 1

    @pytest.mark.asyncio
    async def test_fail_fast_override_per_call(self, adapter):
        adapter.queue_failure(LLMError("fatal", code=400))
        settings = fast_settings(batch=BatchConfig(max_concurrency=1, fail_fast=True))
        service = LLMService(adapter, settings)

        result = await service.execute_batch(
            [LLMRequest(content="a"), LLMRequest(content="b")], fail_fast=False
        )

        assert result.failed_count == 1
        assert result.responses[1] is not None

    @pytest.mark.asyncio
    async def test_translate_batch_metadata(self, service, adapter):
        await service.translate_batch(["one", "two"], document_type="lease")

        metadata = sorted(
            (request.metadata for request in adapter.requests),
            key=lambda m: m["batch_index"],
        )
        assert [m["batch_index"] for m in metadata] == [0, 1]
        assert all(m["batch_total"] == 2 for m in metadata)
        assert all(m["document_type"] == "lease" for m in metadata)


class TestConvenienceMethods:
    """Tests for translate_section, generate and introspection helpers."""

    @pytest.mark.asyncio
    async def test_translate_section(self, service, adapter):
        response = await service.translate_section("Неустойка 0,1% в день", document_type="contract")

        assert "Найден риск" in response.content
        assert adapter.requests[0].metadata["request_type"] == "section_translation"
        stats = service.get_usage_stats()
        assert stats["by_document_type"]["contract"]["requests"] == 1

    @pytest.mark.asyncio
    async def test_generate_uses_provider_defaults(self, service, adapter):
        await service.generate("Prompt", system_prompt="System", metadata={"template": "t"})

        request = adapter.requests[0]
        assert request.max_tokens == 4096
        assert request.temperature == 0.1
        assert request.system_prompt == "System"
        assert request.metadata == {"request_type": "generation", "template": "t"}

    @pytest.mark.asyncio
    async def test_generate_overrides(self, service, adapter):
        await service.generate("Prompt", max_tokens=100, temperature=0.0, top_k=5)

        request = adapter.requests[0]
        assert request.max_tokens == 100
        assert request.temperature == 0.0
        assert request.options == {"top_k": 5}

    def test_estimate_cost(self, service):
        estimate = service.estimate_cost("x" * 4000)

        assert estimate["input_tokens"] == 1000
        assert estimate["estimated_output_tokens"] == 500
        assert estimate["estimated_cost_usd"] == pytest.approx(
            (1000 * 0.10 + 500 * 0.50) / 1_000_000
        )

    @pytest.mark.asyncio
    async def test_validate_connection_false_on_error(self, service, adapter):
        adapter.validate_connection = AsyncMock(
            side_effect=LLMConnectionError.invalid_api_key("fake")
        )
        assert await service.validate_connection() is False

    def test_provider_info(self, service):
        info = service.get_provider_info()
        assert info["provider"] == "fake"
        assert info["default_model"] == "fake-claude-3-5-sonnet"
        assert info["rate_limits"]["requests_per_minute"] == 60
        assert info["retry"]["max_attempts"] == 3
