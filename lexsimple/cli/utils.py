"""Shared CLI utilities.

Provides common functionality for all CLI commands.
"""

import functools
from pathlib import Path
from typing import Callable, Dict, List, TypeVar

import structlog
import typer

from lexsimple.models.settings import AppConfig
from lexsimple.observability.logging import configure_logging
from lexsimple.services.config_manager import ConfigManager, ConfigValidationError

# Configure structured logging
configure_logging(level="WARNING", json_output=False)
logger = structlog.get_logger()

# Type variable for decorator
F = TypeVar("F", bound=Callable)

DEFAULT_CONFIG_PATH = Path("config/lexsimple.yaml")


def load_config(config_path: Path) -> ConfigManager:
    """Load and validate configuration.

    Args:
        config_path: Path to configuration file.

    Returns:
        ConfigManager holding the validated AppConfig.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    config_manager = ConfigManager(config_path=str(config_path))
    try:
        config: AppConfig = config_manager.load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    configure_logging(level=config.logging.level, json_output=config.logging.json_output)
    return config_manager


def parse_variables(pairs: List[str]) -> Dict[str, str]:
    """Turn repeated ``--var key=value`` options into a dict.

    Raises:
        typer.BadParameter: An item has no "=" or an empty key.
    """
    variables: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got: {pair}")
        variables[key.strip()] = value
    return variables


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Catches exceptions and displays user-friendly error messages.

    Args:
        func: Function to wrap.

    Returns:
        Wrapped function with error handling.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (typer.Exit, typer.BadParameter):
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)
