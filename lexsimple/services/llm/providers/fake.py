"""Deterministic adapter for tests, dry runs and local development.

Answers in the translation-block protocol (or JSON) for every section
anchor found in the request content, without network access.
"""

import asyncio
import json
import re
import time
from collections import deque
from typing import Deque, Iterable, List, Literal, Optional

from lexsimple.models.settings import ModelPricing
from lexsimple.services.llm.cost_calculator import CostCalculator
from lexsimple.services.llm.exceptions import LLMError
from lexsimple.services.llm.providers.base import (
    LLMAdapter,
    LLMRequest,
    LLMResponse,
    estimate_tokens,
)

FAKE_MODELS = [
    "fake-claude-3-5-sonnet",
    "fake-claude-3-5-haiku",
    "fake-claude-sonnet-4",
]
FAKE_PRICE = ModelPricing(input=0.10, output=0.50)

ANCHOR_PATTERN = re.compile(r"<!-- SECTION_ANCHOR_([^>]+?) -->")
RISK_KEYWORDS = ("штраф", "неустойк", "penalty", "liability", "ответственност")


class FakeAdapter(LLMAdapter):
    """In-process adapter that never touches the network.

    Args:
        models: Supported model names; the first one is the default
        response_format: "markers" for translation blocks, "json" for a
            {"sections": [...]} payload
        delay_seconds: Simulated latency per call
        failures: Exceptions raised, one per call, before calls succeed
        max_recorded_requests: Most recent requests kept in self.requests
    """

    def __init__(
        self,
        models: Optional[List[str]] = None,
        response_format: Literal["markers", "json"] = "markers",
        delay_seconds: float = 0.0,
        failures: Optional[Iterable[Exception]] = None,
        max_recorded_requests: int = 100,
    ):
        self._models = list(models or FAKE_MODELS)
        self.response_format = response_format
        self.delay_seconds = delay_seconds
        self._failures: Deque[Exception] = deque(failures or [])
        self.cost_calculator = CostCalculator(
            {model: FAKE_PRICE for model in self._models}, self._models[0]
        )
        self.max_recorded_requests = max_recorded_requests
        self.requests: List[LLMRequest] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def default_model(self) -> str:
        return self._models[0]

    def get_supported_models(self) -> List[str]:
        return list(self._models)

    def queue_failure(self, error: Exception) -> None:
        self._failures.append(error)

    async def execute(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if len(self.requests) > self.max_recorded_requests:
            del self.requests[: len(self.requests) - self.max_recorded_requests]
        if not request.content.strip():
            raise LLMError("Request content cannot be empty", code=400)
        model = request.model or self.default_model
        if model not in self._models:
            raise LLMError(f"Unsupported model: {model}", code=400)

        start_time = time.monotonic()
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self._failures:
            raise self._failures.popleft()

        if self.response_format == "json":
            content = self._render_json(request.content)
        else:
            content = self._render_markers(request.content)

        input_tokens = request.estimated_input_tokens
        output_tokens = estimate_tokens(content)
        return LLMResponse(
            content=content,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            execution_time_ms=(time.monotonic() - start_time) * 1000,
            cost_usd=self.calculate_cost(input_tokens, output_tokens, model),
            stop_reason="end_turn",
            metadata={"provider": self.name, "fake": True},
        )

    @staticmethod
    def _sections(content: str) -> List[tuple]:
        """Split content into (anchor_id, first_line, body) triples."""
        matches = list(ANCHOR_PATTERN.finditer(content))
        sections = []
        for index, match in enumerate(matches):
            end = matches[index + 1].start() if index + 1 < len(matches) else len(content)
            body = content[match.end():end].strip()
            first_line = next(
                (line.strip() for line in body.splitlines() if line.strip()), ""
            )
            sections.append((match.group(1), first_line, body))
        return sections

    def _render_markers(self, content: str) -> str:
        sections = self._sections(content)
        if not sections:
            first_line = content.strip().splitlines()[0].strip()
            return self._block(first_line, content)

        parts = []
        for anchor_id, first_line, body in sections:
            parts.append(f"<!-- SECTION_ANCHOR_{anchor_id} -->\n{first_line or anchor_id}")
            parts.append(self._block(first_line or anchor_id, body))
        return "\n".join(parts)

    @staticmethod
    def _block(title: str, body: str) -> str:
        lines = [
            '<!-- TRANSLATION_BLOCK_START type="translation" -->',
            f"**[Переведено]:** Simplified: {title}",
        ]
        if any(keyword in body.lower() for keyword in RISK_KEYWORDS):
            lines.append(f"**[Найден риск]:** Financial liability in: {title}")
        lines.append("<!-- TRANSLATION_BLOCK_END -->")
        return "\n".join(lines)

    def _render_json(self, content: str) -> str:
        sections = [
            {
                "anchor": anchor_id,
                "content": f"Simplified: {first_line or anchor_id}",
                "type": "translation",
            }
            for anchor_id, first_line, _ in self._sections(content)
        ]
        return json.dumps({"sections": sections}, ensure_ascii=False)

    async def validate_connection(self) -> bool:
        return True

    def calculate_cost(
        self, input_tokens: int, output_tokens: int, model: Optional[str] = None
    ) -> float:
        return self.cost_calculator.calculate(input_tokens, output_tokens, model)
