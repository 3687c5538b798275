"""Estimate command: token and cost estimate for a document."""

from pathlib import Path
from typing import Optional

import typer

from lexsimple.cli.utils import DEFAULT_CONFIG_PATH, display_info, handle_errors, load_config
from lexsimple.services.llm.cost_calculator import CostCalculator
from lexsimple.services.llm.providers.base import estimate_tokens


@handle_errors
def estimate_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document file"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model to price"),
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"
    ),
):
    """Estimate tokens and cost before translating a document."""
    config = load_config(config_path).load_config()
    provider = config.llm.provider_config()
    calculator = CostCalculator(provider.pricing, provider.default_model)

    model = model or provider.default_model
    input_tokens = estimate_tokens(file.read_text(encoding="utf-8"))
    output_tokens = input_tokens // 2
    cost = calculator.calculate(input_tokens, output_tokens, model)

    display_info(f"Model: {model}")
    typer.echo(f"Input tokens: {input_tokens}")
    typer.echo(f"Estimated output tokens: {output_tokens}")
    typer.echo(f"Estimated cost: ${cost:.6f}")
