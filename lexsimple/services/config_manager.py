import os
from pathlib import Path
from string import Template
from typing import Any, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from lexsimple.models.settings import AppConfig
from lexsimple.services.llm.factory import create_llm_service
from lexsimple.services.llm.service import LLMService
from lexsimple.services.prompt.manager import PromptManager
from lexsimple.services.prompt.repository import PromptRepository

logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Configuration validation failed"""

    pass


class ConfigManager:
    """Loads application configuration and wires services from it"""

    def __init__(self, config_path: str = "config/lexsimple.yaml"):
        self.config_path = Path(config_path)
        self.env_loaded = False
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load and validate configuration"""
        if self._config:
            return self._config

        # 1. Load environment
        if not self.env_loaded:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # 3. Read YAML
        try:
            raw_content = self.config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute env vars, leaving unknown ${VAR} untouched
        try:
            substituted_content = Template(raw_content).safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted_content) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(
                f"Failed to parse YAML or substitute variables: {e}"
            )

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        # 5. Validate with Pydantic
        try:
            self._config = AppConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            provider=self._config.llm.default_provider,
            prompt_systems=len(self._config.prompts),
        )
        return self._config

    def build_prompt_repository(self) -> PromptRepository:
        return PromptRepository.from_config(self.load_config().prompts)

    def build_llm_service(
        self, provider: Optional[str] = None, client: Any = None
    ) -> LLMService:
        return create_llm_service(self.load_config().llm, provider=provider, client=client)

    def build_prompt_manager(
        self, provider: Optional[str] = None, client: Any = None
    ) -> PromptManager:
        """PromptManager backed by the configured prompts and LLM provider."""
        return PromptManager(
            self.build_llm_service(provider=provider, client=client),
            self.build_prompt_repository(),
            history_limit=self.load_config().execution_history_limit,
        )
