"""In-memory registry of prompt systems built from configuration."""

from typing import Dict, List, Mapping, Optional

import structlog

from lexsimple.models.prompt import PromptSystem, PromptTemplate
from lexsimple.models.settings import PromptSystemConfig
from lexsimple.utils.exceptions import PromptError, TemplateNotFoundError

logger = structlog.get_logger()


class PromptRepository:
    """Resolves prompt systems and templates by name."""

    def __init__(self, systems: Optional[Mapping[str, PromptSystem]] = None):
        self._systems: Dict[str, PromptSystem] = dict(systems or {})

    @classmethod
    def from_config(cls, config: Mapping[str, PromptSystemConfig]) -> "PromptRepository":
        repository = cls()
        for name, system_config in config.items():
            repository.register(cls._build_system(name, system_config))
        logger.debug("prompt_systems_loaded", systems=sorted(repository._systems))
        return repository

    @staticmethod
    def _build_system(name: str, config: PromptSystemConfig) -> PromptSystem:
        templates = {
            template_name: PromptTemplate(
                name=template_name,
                body=template_config.body,
                system_name=name,
                required_variables=tuple(template_config.required_variables),
                default_parameters=dict(config.default_parameters),
                response_schema=config.response_schema,
                description=template_config.description,
            )
            for template_name, template_config in config.templates.items()
        }
        return PromptSystem(
            name=name,
            templates=templates,
            system_prompt=config.system_prompt,
            default_template=config.default_template,
            default_parameters=dict(config.default_parameters),
            response_schema=config.response_schema,
            validation_rules=tuple(config.validation_rules),
        )

    def register(self, system: PromptSystem) -> None:
        self._systems[system.name] = system

    def list_systems(self) -> List[str]:
        return sorted(self._systems)

    def get_system(self, name: str) -> PromptSystem:
        """Raises PromptError when the system is unknown."""
        try:
            return self._systems[name]
        except KeyError:
            raise PromptError(f"Prompt system not found: {name}") from None

    def get_template(
        self, system_name: str, template_name: Optional[str] = None
    ) -> PromptTemplate:
        """Resolve a template, falling back to the system's default.

        Raises:
            PromptError: Unknown system, or no template name and no default
            TemplateNotFoundError: Named template is not defined
        """
        system = self.get_system(system_name)
        name = template_name or system.default_template
        if name is None:
            if len(system.templates) == 1:
                return next(iter(system.templates.values()))
            raise PromptError(
                f"Prompt system '{system_name}' has no default template"
            )
        try:
            return system.templates[name]
        except KeyError:
            raise TemplateNotFoundError(system_name, name) from None
