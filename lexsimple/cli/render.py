"""Render command: preview a prompt without calling the model."""

from pathlib import Path
from typing import List, Optional

import typer

from lexsimple.cli.utils import DEFAULT_CONFIG_PATH, handle_errors, load_config, parse_variables
from lexsimple.services.prompt.manager import PromptManager
from lexsimple.services.prompt.template_engine import TemplateEngine


@handle_errors
def render_command(
    system: str = typer.Argument(..., help="Prompt system name"),
    template: Optional[str] = typer.Argument(None, help="Template name (default if omitted)"),
    variables: List[str] = typer.Option(
        [], "--var", "-v", help="Template variable as key=value (repeatable)"
    ),
    strict: bool = typer.Option(False, "--strict", help="Fail on missing variables"),
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"
    ),
):
    """Render a prompt template with the given variables."""
    manager = load_config(config_path)
    repository = manager.build_prompt_repository()
    prompt_template = repository.get_template(system, template)

    values = PromptManager.enrich_variables(dict(parse_variables(variables)))
    rendered = TemplateEngine().render_template(prompt_template, values, strict=strict)
    typer.echo(rendered)
