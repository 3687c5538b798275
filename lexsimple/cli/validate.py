"""Validate command for configuration files.

Validates configuration file syntax and semantics.
"""

from pathlib import Path

import typer

from lexsimple.cli.utils import display_error, display_info, display_success, handle_errors
from lexsimple.services.config_manager import ConfigManager


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    try:
        manager = ConfigManager(config_path=str(config_path))
        config = manager.load_config()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid! ✅")
    display_info(f"Default provider: {config.llm.default_provider}")
    systems = ", ".join(sorted(config.prompts)) or "none"
    display_info(f"Prompt systems: {systems}")
