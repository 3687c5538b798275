"""Exceptions for prompt rendering and content processing

This module defines the exception hierarchy outside the LLM taxonomy:
- PromptError for prompt system and template resolution
- TemplateValidationError for variables that fail validation
- ContentError for malformed document results

LLM execution errors live in lexsimple.services.llm.exceptions.
"""

from typing import Iterable, List


class PromptError(Exception):
    """Prompt resolution or execution failed

    Raised when:
    - The named prompt system does not exist
    - A system has no template to fall back to
    """

    pass


class TemplateNotFoundError(PromptError):
    """Template lookup failed

    Raised when:
    - The requested template is not defined for the prompt system
    """

    def __init__(self, system_name: str, template_name: str):
        self.system_name = system_name
        self.template_name = template_name
        super().__init__(
            f"Template '{template_name}' not found in prompt system '{system_name}'"
        )


class TemplateValidationError(PromptError):
    """Template variables failed validation

    Raised when:
    - A required variable is missing and strict rendering is requested

    Raised before any LLM call is made.
    """

    def __init__(self, missing: Iterable[str], template_name: str = ""):
        self.missing: List[str] = list(missing)
        self.template_name = template_name
        where = f" for template '{template_name}'" if template_name else ""
        super().__init__(
            f"Missing required variables{where}: {', '.join(self.missing)}"
        )


class ContentError(ValueError):
    """Document result is not parseable

    Raised when:
    - The result has no content field
    - The content field is empty
    """

    pass


class TemplateSyntaxError(PromptError):
    """Template control blocks are malformed

    Raised when:
    - An {% if %} or {% for %} block is never closed
    - A closing tag has no opening tag
    - A tag is not one of if, else, endif, for, endfor
    """

    pass
