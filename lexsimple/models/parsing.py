"""Request and result models for LLM response parsing."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

ANCHORS_REQUIRED = "anchors_required"
CONFIDENCE_REQUIRED = "confidence_required"


def response_sections(data: Any) -> List[Dict[str, Any]]:
    """Section objects of a parsed payload; a non-list "sections" yields none."""
    sections = data.get("sections") if isinstance(data, dict) else None
    if not isinstance(sections, list):
        return []
    return [section for section in sections if isinstance(section, dict)]


@dataclass(frozen=True)
class AnchorValidation:
    """Validation outcome for one anchor."""

    anchor: str
    is_valid: bool
    found_in_response: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anchor": self.anchor,
            "is_valid": self.is_valid,
            "found_in_response": self.found_in_response,
            "error": self.error,
        }


@dataclass(frozen=True)
class LlmParsingRequest:
    """What to parse and how strictly.

    Attributes:
        raw_response: Model output text
        schema_type: translation, analysis or general
        original_anchors: Anchor ids the prompt carried
        schema: Optional JSON schema for the parsed payload
        strict_validation: Any error makes the result invalid
        validation_rules: Extra rules (anchors_required, confidence_required)
    """

    raw_response: str
    schema_type: str = "general"
    original_anchors: Tuple[str, ...] = ()
    schema: Optional[Dict[str, Any]] = None
    strict_validation: bool = False
    validation_rules: Tuple[str, ...] = ()

    @classmethod
    def for_translation(
        cls,
        raw_response: str,
        original_anchors: Sequence[str],
        schema: Optional[Dict[str, Any]] = None,
        strict_validation: bool = False,
    ) -> "LlmParsingRequest":
        return cls(
            raw_response=raw_response,
            schema_type="translation",
            original_anchors=tuple(original_anchors),
            schema=schema,
            strict_validation=strict_validation,
            validation_rules=(ANCHORS_REQUIRED,),
        )

    @classmethod
    def for_analysis(
        cls,
        raw_response: str,
        schema: Optional[Dict[str, Any]] = None,
        strict_validation: bool = False,
    ) -> "LlmParsingRequest":
        return cls(
            raw_response=raw_response,
            schema_type="analysis",
            schema=schema,
            strict_validation=strict_validation,
            validation_rules=(CONFIDENCE_REQUIRED,),
        )

    @classmethod
    def for_general(
        cls, raw_response: str, schema: Optional[Dict[str, Any]] = None
    ) -> "LlmParsingRequest":
        return cls(raw_response=raw_response, schema_type="general", schema=schema)


@dataclass(frozen=True)
class ParsedLlmResponse:
    """Immutable outcome of one parse call.

    Successful means valid with no errors; partial means valid with
    warnings, i.e. best-effort recovery happened.
    """

    is_valid: bool
    parsed_data: Dict[str, Any] = field(default_factory=dict)
    anchor_validations: Tuple[AnchorValidation, ...] = ()
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    schema_type: str = "general"
    raw_response: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_successful(self) -> bool:
        return self.is_valid and not self.errors

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def has_partial_results(self) -> bool:
        return self.is_valid and bool(self.warnings)

    @property
    def valid_anchors_count(self) -> int:
        return sum(1 for v in self.anchor_validations if v.is_valid)

    @property
    def invalid_anchors_count(self) -> int:
        return sum(1 for v in self.anchor_validations if not v.is_valid)

    def get_data_by_path(self, path: str, default: Any = None) -> Any:
        """Look up a dotted path ("sections.0.content") in parsed_data."""
        current: Any = self.parsed_data
        for key in path.split("."):
            if isinstance(current, dict) and key in current:
                current = current[key]
            elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
                current = current[int(key)]
            else:
                return default
        return current

    def get_content_by_anchor(self, anchor: str) -> Optional[str]:
        return self.get_anchor_content_map().get(anchor)

    def get_anchor_content_map(self) -> Dict[str, str]:
        mapping: Dict[str, str] = {}
        for section in response_sections(self.parsed_data):
            anchor = section.get("anchor")
            if isinstance(anchor, str) and anchor:
                mapping[anchor] = str(section.get("content", ""))
        return mapping

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "is_successful": self.is_successful(),
            "has_partial_results": self.has_partial_results(),
            "schema_type": self.schema_type,
            "parsed_data": self.parsed_data,
            "anchor_validations": [v.to_dict() for v in self.anchor_validations],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "metadata": dict(self.metadata),
        }


def summarize_validations(validations: Sequence[AnchorValidation]) -> List[str]:
    """Error messages for every failed anchor validation."""
    return [f"{v.anchor}: {v.error}" for v in validations if not v.is_valid]
