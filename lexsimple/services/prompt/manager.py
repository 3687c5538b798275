"""Prompt Manager

Orchestrates one prompt execution:
1. Resolve prompt system and template
2. Merge default parameters with caller variables (caller wins)
3. Enrich variables with document structure (section anchors)
4. Render via TemplateEngine
5. Execute via LLMService
6. Parse and validate via LlmResponseParser
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence

import structlog

from lexsimple.models.parsing import LlmParsingRequest
from lexsimple.models.prompt import PromptExecutionRequest, PromptExecutionResult
from lexsimple.models.structure import DocumentSection
from lexsimple.observability.context import correlation_id_context, get_correlation_id
from lexsimple.observability.metrics import (
    PROMPT_EXECUTION_DURATION,
    PROMPT_EXECUTIONS,
    MetricsContext,
)
from lexsimple.services.content.processor import anchor_id
from lexsimple.services.llm.service import LLMService
from lexsimple.services.prompt.repository import PromptRepository
from lexsimple.services.prompt.response_parser import LlmResponseParser
from lexsimple.services.prompt.template_engine import TemplateEngine, TemplateValidation

logger = structlog.get_logger()

STRUCTURE_HEADER = "Структура документа с якорями:\n\n"
DEFAULT_HISTORY_LIMIT = 1000


@dataclass(frozen=True)
class ExecutionRecord:
    """Summary of one execution kept for quality analysis."""

    system_name: str
    template_name: str
    success: bool
    execution_time_ms: float
    cost_usd: float = 0.0
    total_tokens: int = 0
    error: Optional[str] = None


class PromptManager:
    """Renders prompts, executes them and parses the responses."""

    def __init__(
        self,
        llm_service: LLMService,
        repository: PromptRepository,
        template_engine: Optional[TemplateEngine] = None,
        response_parser: Optional[LlmResponseParser] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.llm_service = llm_service
        self.repository = repository
        self.template_engine = template_engine or TemplateEngine()
        self.response_parser = response_parser or LlmResponseParser()
        self._history: Deque[ExecutionRecord] = deque(maxlen=history_limit)

    def render_prompt(
        self,
        system_name: str,
        template_name: Optional[str] = None,
        variables: Optional[Mapping[str, Any]] = None,
        strict: bool = False,
    ) -> str:
        """Render a template without calling the model.

        Raises:
            PromptError: Unknown system or template
            TemplateValidationError: strict=True and variables are missing
        """
        template = self.repository.get_template(system_name, template_name)
        enriched = self.enrich_variables(dict(variables or {}))
        return self.template_engine.render_template(template, enriched, strict=strict)

    async def execute_prompt(
        self,
        request: PromptExecutionRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PromptExecutionResult:
        """Execute a prompt end to end.

        Log entries carry the request's correlation_id, else the caller's
        current one, else a fresh id for this execution.

        Raises:
            PromptError: Unknown system or template (before any LLM call)
            TemplateValidationError: Strict rendering found missing variables
            LLMError: The LLM call failed after retries
        """
        with correlation_id_context(request.correlation_id or get_correlation_id()) as corr_id:
            result = await self._execute(request, cancel_event)
            result.correlation_id = corr_id
            return result

    async def _execute(
        self,
        request: PromptExecutionRequest,
        cancel_event: Optional[asyncio.Event],
    ) -> PromptExecutionResult:
        start_time = time.monotonic()
        system = self.repository.get_system(request.system_name)
        template = self.repository.get_template(request.system_name, request.template_name)
        options = request.options

        variables = self.enrich_variables(dict(request.variables))
        anchors = self.collect_anchors(variables)
        rendered = self.template_engine.render_template(
            template, variables, strict=bool(options.get("strict", False))
        )

        logger.info(
            "prompt_execution_started",
            system=system.name,
            template=template.name,
            prompt_length=len(rendered),
            anchors=len(anchors),
        )

        with MetricsContext(
            histogram=PROMPT_EXECUTION_DURATION.labels(system=system.name),
            success_counter=PROMPT_EXECUTIONS.labels(system=system.name, status="success"),
            failure_counter=PROMPT_EXECUTIONS.labels(system=system.name, status="failed"),
        ) as metrics:
            try:
                response = await self.llm_service.generate(
                    rendered,
                    system_prompt=system.system_prompt,
                    model=options.get("model"),
                    max_tokens=options.get("max_tokens"),
                    temperature=options.get("temperature"),
                    metadata={
                        "request_type": "prompt",
                        "task_type": system.name,
                        "prompt_system": system.name,
                        "template": template.name,
                        "document_type": variables.get("document_type"),
                    },
                    cancel_event=cancel_event,
                )
            except Exception as e:
                self._record(system.name, template.name, False, start_time, error=str(e))
                raise

            parsed = self.response_parser.parse_with_fallback(
                LlmParsingRequest(
                    raw_response=response.content,
                    schema_type=system.schema_type,
                    original_anchors=tuple(anchors),
                    schema=template.response_schema,
                    strict_validation=bool(options.get("strict_validation", False)),
                    validation_rules=system.validation_rules,
                )
            )
            if parsed.is_valid:
                metrics.mark_success()

        execution_time_ms = (time.monotonic() - start_time) * 1000
        self._record(
            system.name,
            template.name,
            parsed.is_successful(),
            start_time,
            cost_usd=response.cost_usd,
            total_tokens=response.total_tokens,
            error="; ".join(parsed.errors) or None,
        )
        logger.info(
            "prompt_execution_completed",
            system=system.name,
            template=template.name,
            is_valid=parsed.is_valid,
            warnings=len(parsed.warnings),
            errors=len(parsed.errors),
            execution_time_ms=round(execution_time_ms, 2),
        )
        return PromptExecutionResult(
            system_name=system.name,
            template_name=template.name,
            rendered_prompt=rendered,
            response=response,
            parsed=parsed,
            execution_time_ms=execution_time_ms,
            anchors=anchors,
        )

    def validate_template(
        self,
        system_name: str,
        template_name: Optional[str] = None,
        variables: Optional[Mapping[str, Any]] = None,
    ) -> TemplateValidation:
        template = self.repository.get_template(system_name, template_name)
        merged = {**template.default_parameters, **self.enrich_variables(dict(variables or {}))}
        return self.template_engine.validate(template.body, merged)

    # ------------------------------------------------------------------
    # Variable enrichment
    # ------------------------------------------------------------------

    @classmethod
    def enrich_variables(cls, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Add document_structure when document_sections is present."""
        sections = variables.get("document_sections")
        if sections and "document_structure" not in variables:
            variables["document_structure"] = STRUCTURE_HEADER + "".join(
                cls._structure_lines(sections, depth=0)
            )
        return variables

    @classmethod
    def _structure_lines(cls, sections: Sequence[Any], depth: int) -> List[str]:
        lines = []
        for section in sections:
            data = section.to_dict() if isinstance(section, DocumentSection) else section
            indent = "  " * depth
            lines.append(
                f"{indent}- {data.get('title') or 'Untitled'} "
                f"(якорь: {data.get('anchor') or ''}, "
                f"позиция: {data.get('start_position', 0)}-{data.get('end_position', 0)})\n"
            )
            lines.extend(cls._structure_lines(data.get("subsections") or [], depth + 1))
        return lines

    @classmethod
    def collect_anchors(cls, variables: Mapping[str, Any]) -> List[str]:
        """Anchor ids from an explicit "anchors" list or from document_sections."""
        explicit = variables.get("anchors")
        if explicit:
            return [anchor_id(str(anchor)) for anchor in explicit]

        anchors: List[str] = []

        def walk(sections: Sequence[Any]) -> None:
            for section in sections:
                data = section.to_dict() if isinstance(section, DocumentSection) else section
                if data.get("anchor"):
                    anchors.append(anchor_id(str(data["anchor"])))
                walk(data.get("subsections") or [])

        walk(variables.get("document_sections") or [])
        return anchors

    # ------------------------------------------------------------------
    # Execution history
    # ------------------------------------------------------------------

    def _record(
        self,
        system_name: str,
        template_name: str,
        success: bool,
        start_time: float,
        cost_usd: float = 0.0,
        total_tokens: int = 0,
        error: Optional[str] = None,
    ) -> None:
        self._history.append(
            ExecutionRecord(
                system_name=system_name,
                template_name=template_name,
                success=success,
                execution_time_ms=(time.monotonic() - start_time) * 1000,
                cost_usd=cost_usd,
                total_tokens=total_tokens,
                error=error,
            )
        )

    def get_execution_stats(self, system_name: Optional[str] = None) -> Dict[str, Any]:
        records = [
            record
            for record in self._history
            if system_name is None or record.system_name == system_name
        ]
        total = len(records)
        successful = sum(1 for record in records if record.success)
        return {
            "system": system_name,
            "total_executions": total,
            "successful_executions": successful,
            "success_rate": successful / total if total else 0.0,
            "average_execution_time_ms": (
                sum(record.execution_time_ms for record in records) / total if total else 0.0
            ),
            "total_cost_usd": round(sum(record.cost_usd for record in records), 6),
            "total_tokens": sum(record.total_tokens for record in records),
        }
