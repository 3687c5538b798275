"""Translate command: run the full document pipeline.

Document text -> anchored sections -> rendered prompt -> LLM -> parsed result.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from lexsimple.cli.utils import (
    DEFAULT_CONFIG_PATH,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
)
from lexsimple.models.parsing import response_sections
from lexsimple.models.prompt import PromptExecutionRequest, PromptExecutionResult
from lexsimple.models.structure import ExtractedDocument
from lexsimple.observability.metrics import get_metrics_text
from lexsimple.services.content.processor import anchor_id
from lexsimple.services.structure.analyzer import StructureAnalyzer


@handle_errors
def translate_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document file"),
    system: str = typer.Option("translation", "--system", "-s", help="Prompt system"),
    template: Optional[str] = typer.Option(None, "--template", "-t", help="Template name"),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="LLM provider (claude or fake)"
    ),
    document_type: str = typer.Option("legal", "--document-type", help="Document type"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
    correlation_id: Optional[str] = typer.Option(
        None, "--correlation-id", help="Correlation ID for log entries (default: generated)"
    ),
    metrics_out: Optional[Path] = typer.Option(
        None, "--metrics-out", help="Write Prometheus metrics here after the run"
    ),
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"
    ),
):
    """Translate a legal document into plain language."""
    manager = load_config(config_path)
    prompt_manager = manager.build_prompt_manager(provider=provider)

    document = ExtractedDocument(
        text=file.read_text(encoding="utf-8"),
        metadata={"document_type": document_type, "title": file.stem},
    )
    structure = StructureAnalyzer().analyze(document)
    anchor_ids = [anchor_id(anchor) for anchor in structure.anchors]
    request = PromptExecutionRequest(
        system_name=system,
        template_name=template,
        variables={
            "document": structure.anchored_text,
            "anchors": anchor_ids,
            "anchor_list": ", ".join(anchor_ids),
            "document_sections": structure.sections,
            "document_type": structure.document_type,
        },
        correlation_id=correlation_id,
    )

    result = asyncio.run(prompt_manager.execute_prompt(request))
    if metrics_out is not None:
        metrics_out.write_bytes(get_metrics_text())

    if as_json:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return
    _display_result(result)


def _display_result(result: PromptExecutionResult) -> None:
    response = result.response
    display_info(
        f"Model: {response.model} | tokens: {response.total_tokens} "
        f"| cost: ${response.cost_usd:.6f}"
    )
    display_info(f"Correlation ID: {result.correlation_id}")

    for section in response_sections(result.parsed.parsed_data):
        typer.echo(f"\n[{section.get('anchor') or section.get('id', '?')}]")
        typer.echo(f"  {section.get('content', '')}")
        risks = section.get("risks")
        for risk in risks if isinstance(risks, list) else []:
            if isinstance(risk, dict):
                display_warning(f"  ! {risk.get('type')}: {risk.get('text')}")

    for warning in result.parsed.warnings:
        display_warning(f"Warning: {warning}")
    for error in result.parsed.errors:
        display_warning(f"Error: {error}")

    if result.is_successful():
        display_success("Translation completed ✅")
    else:
        display_warning("Translation completed with issues")
