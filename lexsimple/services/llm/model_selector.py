"""Model selection by request complexity."""

from typing import Literal, Optional, Sequence
import structlog

from lexsimple.models.settings import ModelSelectionConfig
from lexsimple.services.llm.providers.base import LLMRequest

logger = structlog.get_logger()

Complexity = Literal["simple", "complex"]


class ModelSelector:
    """Picks a cheaper model for simple requests and a stronger one otherwise."""

    def __init__(self, config: ModelSelectionConfig, supported_models: Sequence[str]):
        self.config = config
        self.supported_models = list(supported_models)

    def classify(
        self, request: LLMRequest, complexity: Optional[Complexity] = None
    ) -> Complexity:
        """Derive the complexity signal for a request.

        Selection priority:
        1. Explicit complexity from the caller (argument or options["complexity"])
        2. Task type listed in complex_task_types
        3. Content length against complexity_threshold_chars
        """
        explicit = complexity or request.options.get("complexity")
        if explicit in ("simple", "complex"):
            return explicit

        task_type = request.metadata.get("task_type") or request.metadata.get(
            "request_type"
        )
        if task_type in self.config.complex_task_types:
            return "complex"

        if len(request.content) >= self.config.complexity_threshold_chars:
            return "complex"
        return "simple"

    def select(
        self,
        request: LLMRequest,
        default_model: str,
        complexity: Optional[Complexity] = None,
    ) -> str:
        """Return the model for a request.

        An explicit model on the request always wins. A configured model the
        adapter does not support is skipped in favour of default_model.
        """
        if request.model:
            return request.model

        level = self.classify(request, complexity)
        candidate = (
            self.config.complex_model if level == "complex" else self.config.simple_model
        )
        if candidate is None or candidate not in self.supported_models:
            candidate = default_model

        logger.debug(
            "model_selected",
            model=candidate,
            complexity=level,
            content_length=len(request.content),
        )
        return candidate
