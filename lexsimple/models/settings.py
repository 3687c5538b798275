"""Configuration models for the LLM orchestration core

This module defines the data structures for:
- Provider configuration (credentials, model catalog, pricing table)
- Rate limits per provider
- Retry policy with exponential backoff
- Model selection thresholds and batch policy
- Prompt systems and their templates
"""

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import Dict, List, Literal, Optional, Any


DEFAULT_PRICING: Dict[str, Dict[str, float]] = {
    "claude-4-opus-20251205": {"input": 15.00, "output": 75.00},
    "claude-4-sonnet-20251205": {"input": 3.00, "output": 15.00},
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
    "claude-3-opus-20240229": {"input": 15.00, "output": 75.00},
}


class ModelPricing(BaseModel):
    """Price in USD per million tokens for one model"""

    input: float = Field(ge=0.0, description="USD per million input tokens")
    output: float = Field(ge=0.0, description="USD per million output tokens")


class RetryConfig(BaseModel):
    """Configuration for retry logic with exponential backoff

    Controls retry behavior for transient failures:
    - Number of attempts before giving up
    - Delay calculation parameters
    - Jitter for request spreading
    """

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts (1 initial + N-1 retries)",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay for exponential backoff",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Multiplier applied per attempt",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        ge=0.0,
        le=300.0,
        description="Maximum delay cap",
    )
    jitter_factor: float = Field(
        default=0.1,
        ge=0.0,
        le=0.5,
        description="Upper bound of random jitter as a fraction of the delay",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "max_attempts": 3,
                "base_delay_seconds": 1.0,
                "backoff_multiplier": 2.0,
                "max_delay_seconds": 60.0,
                "jitter_factor": 0.1,
            }
        }
    )


class RateLimitConfig(BaseModel):
    """Request and token budgets for one provider

    A request is denied as soon as one of the four windows would overflow.
    """

    requests_per_minute: int = Field(default=60, ge=1)
    requests_per_hour: int = Field(default=1000, ge=1)
    tokens_per_minute: int = Field(default=40000, ge=1)
    tokens_per_hour: int = Field(default=400000, ge=1)


class ProviderConfig(BaseModel):
    """Connection settings and model catalog for one provider"""

    api_key: Optional[str] = Field(default=None, description="Provider API key")
    base_url: Optional[str] = Field(default=None, description="API base URL")
    default_model: str = Field(default="claude-3-5-sonnet-20241022")
    models: List[str] = Field(default_factory=lambda: list(DEFAULT_PRICING))
    pricing: Dict[str, ModelPricing] = Field(
        default_factory=lambda: {
            name: ModelPricing(**price) for name, price in DEFAULT_PRICING.items()
        }
    )
    max_tokens: int = Field(default=4096, ge=1, le=200000)
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=60.0, gt=0.0, le=600.0)
    max_concurrent: int = Field(
        default=4, ge=1, le=64, description="Concurrent connection budget"
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Reject unresolved ${VAR} placeholders"""
        if v is not None and v.startswith("${"):
            raise ValueError(f"API key placeholder was not resolved: {v}")
        return v

    @model_validator(mode="after")
    def validate_default_model(self) -> "ProviderConfig":
        if self.default_model not in self.models:
            raise ValueError(
                f"default_model '{self.default_model}' is not in the model list"
            )
        return self


class ModelSelectionConfig(BaseModel):
    """Thresholds for picking a cheap or a strong model"""

    simple_model: Optional[str] = Field(
        default="claude-3-5-haiku-20241022",
        description="Model for low-complexity requests (None keeps default)",
    )
    complex_model: Optional[str] = Field(
        default="claude-3-5-sonnet-20241022",
        description="Model for high-complexity requests (None keeps default)",
    )
    complexity_threshold_chars: int = Field(
        default=2000,
        ge=0,
        description="Content length at or above which a request is complex",
    )
    complex_task_types: List[str] = Field(
        default_factory=lambda: ["analysis", "risk_assessment", "contract"],
    )


class BatchConfig(BaseModel):
    """Batch execution policy"""

    fail_fast: bool = Field(
        default=False,
        description="Abort remaining items on the first fatal error",
    )
    max_concurrency: int = Field(default=4, ge=1, le=64)


class LLMSettings(BaseModel):
    """Top-level LLM configuration"""

    default_provider: Literal["claude", "fake"] = "claude"
    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)
    rate_limits: Dict[str, RateLimitConfig] = Field(default_factory=dict)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    model_selection: ModelSelectionConfig = Field(
        default_factory=ModelSelectionConfig
    )
    batch: BatchConfig = Field(default_factory=BatchConfig)

    def provider_config(self, name: Optional[str] = None) -> ProviderConfig:
        """Return configuration for a provider, falling back to defaults."""
        return self.providers.get(name or self.default_provider, ProviderConfig())

    def rate_limit_for(self, name: str) -> RateLimitConfig:
        return self.rate_limits.get(name, RateLimitConfig())


class PromptTemplateConfig(BaseModel):
    """Template definition as stored in configuration"""

    body: str = Field(min_length=1)
    required_variables: List[str] = Field(default_factory=list)
    description: Optional[str] = None


class PromptSystemConfig(BaseModel):
    """Prompt system: system prompt, templates, defaults, response schema"""

    system_prompt: Optional[str] = None
    templates: Dict[str, PromptTemplateConfig] = Field(default_factory=dict)
    default_template: Optional[str] = None
    default_parameters: Dict[str, Any] = Field(default_factory=dict)
    response_schema: Optional[Dict[str, Any]] = None
    validation_rules: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_default_template(self) -> "PromptSystemConfig":
        if self.default_template and self.default_template not in self.templates:
            raise ValueError(
                f"default_template '{self.default_template}' is not defined"
            )
        return self


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False


class AppConfig(BaseModel):
    """Complete application configuration"""

    llm: LLMSettings = Field(default_factory=LLMSettings)
    prompts: Dict[str, PromptSystemConfig] = Field(default_factory=dict)
    execution_history_limit: int = Field(
        default=1000,
        ge=1,
        description="Prompt executions kept in memory for get_execution_stats",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
