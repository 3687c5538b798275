"""Tests for CostCalculator and ModelSelector."""

import pytest

from lexsimple.models.settings import (
    DEFAULT_PRICING,
    ModelPricing,
    ModelSelectionConfig,
    ProviderConfig,
)
from lexsimple.services.llm.cost_calculator import CostCalculator
from lexsimple.services.llm.exceptions import LLMError
from lexsimple.services.llm.model_selector import ModelSelector
from lexsimple.services.llm.providers.base import LLMRequest

SONNET = "claude-3-5-sonnet-20241022"
HAIKU = "claude-3-5-haiku-20241022"


@pytest.fixture
def calculator():
    return CostCalculator(ProviderConfig().pricing, SONNET)


@pytest.fixture
def selector():
    return ModelSelector(
        ModelSelectionConfig(complexity_threshold_chars=100),
        list(DEFAULT_PRICING),
    )


class TestCostCalculator:
    """Tests for cost calculation."""

    @pytest.mark.parametrize("model", list(DEFAULT_PRICING))
    def test_million_input_tokens_costs_input_price(self, calculator, model):
        """Test 1M input tokens and no output equals the configured input price."""
        assert calculator.calculate(1_000_000, 0, model) == DEFAULT_PRICING[model]["input"]

    def test_mixed_tokens(self, calculator):
        # 1000 * 3/1M + 500 * 15/1M
        assert calculator.calculate(1000, 500, SONNET) == pytest.approx(0.0105)

    def test_unknown_model_uses_default_price(self, calculator):
        assert calculator.calculate(1_000_000, 0, "mystery") == 3.00

    def test_rounding(self):
        calculator = CostCalculator({"m": ModelPricing(input=1.0, output=1.0)}, "m", precision=2)
        assert calculator.calculate(1234, 0) == 0.0

    def test_default_model_must_be_priced(self):
        with pytest.raises(LLMError):
            CostCalculator({"m": ModelPricing(input=1, output=1)}, "other")

    def test_estimate_output_tokens(self, calculator):
        assert calculator.estimate_output_tokens(1000) == 500
        assert calculator.estimate_output_tokens(1000, "analysis") == 300

    def test_pricing_info(self, calculator):
        info = calculator.pricing_info()
        assert info[HAIKU] == {"input": 0.80, "output": 4.00}


class TestModelSelector:
    """Tests for complexity-based model selection."""

    def test_explicit_model_wins(self, selector):
        request = LLMRequest(content="x" * 500, model="claude-3-opus-20240229")
        assert selector.select(request, SONNET) == "claude-3-opus-20240229"

    def test_short_content_is_simple(self, selector):
        assert selector.select(LLMRequest(content="short"), SONNET) == HAIKU

    def test_long_content_is_complex(self, selector):
        assert selector.select(LLMRequest(content="x" * 100), SONNET) == SONNET

    def test_complex_task_type(self, selector):
        request = LLMRequest(content="short", metadata={"task_type": "risk_assessment"})
        assert selector.classify(request) == "complex"

    def test_explicit_complexity_argument(self, selector):
        request = LLMRequest(content="x" * 500)
        assert selector.select(request, SONNET, complexity="simple") == HAIKU

    def test_complexity_option(self, selector):
        request = LLMRequest(content="short", options={"complexity": "complex"})
        assert selector.classify(request) == "complex"

    def test_unsupported_candidate_falls_back(self):
        selector = ModelSelector(ModelSelectionConfig(), ["fake-model"])
        assert selector.select(LLMRequest(content="short"), "fake-model") == "fake-model"

    def test_disabled_selection_uses_default(self):
        config = ModelSelectionConfig(simple_model=None, complex_model=None)
        selector = ModelSelector(config, list(DEFAULT_PRICING))
        assert selector.select(LLMRequest(content="short"), SONNET) == SONNET
