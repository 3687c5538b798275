"""Tests for correlation ID context management."""

import asyncio
import uuid

import pytest

from lexsimple.observability.context import (
    get_correlation_id,
    correlation_id_context,
)


class TestCorrelationIdContext:
    """Tests for correlation_id_context context manager."""

    def test_unset_by_default(self):
        assert get_correlation_id() is None

    def test_sets_id_in_context(self):
        with correlation_id_context("context-id") as corr_id:
            assert corr_id == "context-id"
            assert get_correlation_id() == "context-id"

        assert get_correlation_id() is None

    def test_restores_previous_id_on_exit(self):
        """Should restore previous ID when context exits."""
        with correlation_id_context("original-id"):
            with correlation_id_context("temporary-id"):
                assert get_correlation_id() == "temporary-id"

            assert get_correlation_id() == "original-id"

    def test_restores_on_exception(self):
        """Should restore previous ID even if the body raises."""
        with pytest.raises(RuntimeError):
            with correlation_id_context("failing-id"):
                raise RuntimeError("boom")

        assert get_correlation_id() is None

    def test_generates_id_when_none(self):
        with correlation_id_context() as corr_id:
            assert uuid.UUID(corr_id)
            assert get_correlation_id() == corr_id


class TestAsyncPropagation:
    """Tests for correlation IDs across asyncio tasks."""

    @pytest.mark.asyncio
    async def test_tasks_keep_their_own_ids(self):
        """Concurrent document translations should not share IDs."""

        async def translate(doc_id: str) -> str:
            with correlation_id_context(doc_id):
                await asyncio.sleep(0.01)
                return get_correlation_id()

        results = await asyncio.gather(*(translate(f"doc-{i}") for i in range(5)))

        assert results == [f"doc-{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_child_task_inherits_id(self):
        async def child() -> str:
            return get_correlation_id()

        with correlation_id_context("parent"):
            assert await asyncio.create_task(child()) == "parent"
