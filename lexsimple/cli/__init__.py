"""LexSimple CLI Package.

Command-line interface for the plain-language legal translation core.

Usage:
    python -m lexsimple.cli validate config/lexsimple.yaml
    python -m lexsimple.cli render translation basic_translation --var document="..."
    python -m lexsimple.cli parse response.md --json
    python -m lexsimple.cli estimate contract.txt --model claude-3-5-haiku-20241022
    python -m lexsimple.cli translate contract.txt --provider fake
"""

import typer

from lexsimple.cli.estimate import estimate_command
from lexsimple.cli.parse import parse_command
from lexsimple.cli.render import render_command
from lexsimple.cli.translate import translate_command
from lexsimple.cli.validate import validate_command

app = typer.Typer(help="LexSimple: plain-language translation of legal documents")

app.command(name="validate")(validate_command)
app.command(name="render")(render_command)
app.command(name="parse")(parse_command)
app.command(name="estimate")(estimate_command)
app.command(name="translate")(translate_command)

__all__ = [
    "app",
    "validate_command",
    "render_command",
    "parse_command",
    "estimate_command",
    "translate_command",
]
