"""Cost calculation from the configured pricing table."""

from typing import Dict, Mapping, Optional

from lexsimple.models.settings import ModelPricing
from lexsimple.services.llm.exceptions import LLMError

TOKENS_PER_MILLION = 1_000_000

# Expected output size relative to input, by request type
OUTPUT_RATIO_BY_TASK: Dict[str, float] = {
    "section_translation": 0.5,
    "batch_translation": 0.5,
    "analysis": 0.3,
    "risk_assessment": 0.4,
}
DEFAULT_OUTPUT_RATIO = 0.5


class CostCalculator:
    """Computes USD cost from per-million-token prices.

    Unknown models fall back to the default model's price.
    """

    def __init__(
        self,
        pricing: Mapping[str, ModelPricing],
        default_model: str,
        precision: int = 6,
    ):
        if default_model not in pricing:
            raise LLMError(f"No pricing configured for default model: {default_model}")
        self.pricing = dict(pricing)
        self.default_model = default_model
        self.precision = precision

    def get_pricing(self, model: Optional[str] = None) -> ModelPricing:
        return self.pricing.get(model or self.default_model, self.pricing[self.default_model])

    def calculate(
        self, input_tokens: int, output_tokens: int, model: Optional[str] = None
    ) -> float:
        price = self.get_pricing(model)
        input_cost = (input_tokens / TOKENS_PER_MILLION) * price.input
        output_cost = (output_tokens / TOKENS_PER_MILLION) * price.output
        return round(input_cost + output_cost, self.precision)

    def estimate_output_tokens(self, input_tokens: int, task_type: Optional[str] = None) -> int:
        ratio = OUTPUT_RATIO_BY_TASK.get(task_type or "", DEFAULT_OUTPUT_RATIO)
        return int(input_tokens * ratio)

    def pricing_info(self) -> Dict[str, Dict[str, float]]:
        return {name: price.model_dump() for name, price in self.pricing.items()}
