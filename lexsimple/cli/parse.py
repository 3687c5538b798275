"""Parse command: split a model response into sections and risks."""

import json
from pathlib import Path

import typer

from lexsimple.cli.utils import display_info, display_warning, handle_errors
from lexsimple.services.content.processor import ContentProcessor


@handle_errors
def parse_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Response file"),
    as_json: bool = typer.Option(False, "--json", help="Print the parsed structure as JSON"),
):
    """Parse translation-block output into sections."""
    parsed = ContentProcessor().parse_content(file.read_text(encoding="utf-8"))

    if as_json:
        typer.echo(json.dumps(parsed.to_dict(), ensure_ascii=False, indent=2))
        return

    display_info(f"Sections: {parsed.sections_count}")
    for section in parsed.sections:
        anchor = f" [{section.anchor}]" if section.anchor else ""
        typer.echo(f"\n## {section.title}{anchor}")
        for translation in section.translated_content:
            typer.echo(f"  {translation}")
        for risk in section.risks:
            display_warning(f"  ! {risk.type}: {risk.text}")
