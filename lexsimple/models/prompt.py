"""Prompt system, template and execution models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lexsimple.models.parsing import ParsedLlmResponse
from lexsimple.services.llm.providers.base import LLMResponse


@dataclass(frozen=True)
class PromptTemplate:
    """A renderable template belonging to a prompt system."""

    name: str
    body: str
    system_name: str = ""
    required_variables: Tuple[str, ...] = ()
    default_parameters: Dict[str, Any] = field(default_factory=dict)
    response_schema: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PromptSystem:
    """Named group of templates sharing a system prompt and response schema."""

    name: str
    templates: Dict[str, PromptTemplate]
    system_prompt: Optional[str] = None
    default_template: Optional[str] = None
    default_parameters: Dict[str, Any] = field(default_factory=dict)
    response_schema: Optional[Dict[str, Any]] = None
    validation_rules: Tuple[str, ...] = ()

    @property
    def schema_type(self) -> str:
        return self.name


@dataclass(frozen=True)
class PromptExecutionRequest:
    """Caller request to PromptManager.execute_prompt.

    Options recognised: model, max_tokens, temperature, strict (missing
    variables raise instead of rendering empty), strict_validation.
    """

    system_name: str
    template_name: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None


@dataclass
class PromptExecutionResult:
    """Everything one prompt execution produced."""

    system_name: str
    template_name: str
    rendered_prompt: str
    response: LLMResponse
    parsed: ParsedLlmResponse
    execution_time_ms: float
    anchors: List[str] = field(default_factory=list)
    correlation_id: Optional[str] = None

    @property
    def raw_response(self) -> str:
        return self.response.content

    def is_successful(self) -> bool:
        return self.parsed.is_successful()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system_name": self.system_name,
            "template_name": self.template_name,
            "rendered_prompt": self.rendered_prompt,
            "raw_response": self.raw_response,
            "parsed": self.parsed.to_dict(),
            "usage": {
                "model": self.response.model,
                "input_tokens": self.response.input_tokens,
                "output_tokens": self.response.output_tokens,
                "cost_usd": self.response.cost_usd,
            },
            "execution_time_ms": self.execution_time_ms,
            "correlation_id": self.correlation_id,
        }
