"""Export-facing content models produced by ContentProcessor."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

RiskType = Literal["risk", "warning", "contradiction"]


@dataclass(frozen=True)
class Risk:
    """A finding attached to a translated section."""

    type: RiskType
    text: str

    def is_risk(self) -> bool:
        return self.type == "risk"

    def is_warning(self) -> bool:
        return self.type == "warning"

    def is_contradiction(self) -> bool:
        return self.type == "contradiction"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "text": self.text}


@dataclass
class Section:
    """One source section with its translations and risk findings.

    Attributes:
        id: Sequential id (section_0, section_1, ...)
        title: First non-blank line of the original text, normalized
        original_content: Source text with anchor markers removed
        translated_content: Every [Переведено] span, in order
        risks: Risks, warnings and contradictions found in the block
        anchor: First section anchor id found in the source text
        block_type: Declared type of the translation block, if any
    """

    id: str
    title: str
    original_content: str
    translated_content: List[str] = field(default_factory=list)
    risks: List[Risk] = field(default_factory=list)
    anchor: Optional[str] = None
    block_type: Optional[str] = None

    def has_translations(self) -> bool:
        return bool(self.translated_content)

    def has_risks(self) -> bool:
        return bool(self.risks)

    def main_translation(self) -> str:
        return self.translated_content[0] if self.translated_content else ""

    def risks_of_type(self, risk_type: RiskType) -> List[Risk]:
        return [risk for risk in self.risks if risk.type == risk_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "original_content": self.original_content,
            "translated_content": list(self.translated_content),
            "risks": [risk.to_dict() for risk in self.risks],
            "anchor": self.anchor,
            "block_type": self.block_type,
        }


@dataclass
class ParsedContent:
    """Parsed document: sections in order plus every anchor id found."""

    original_content: str
    sections: List[Section] = field(default_factory=list)
    anchors: List[str] = field(default_factory=list)

    @property
    def sections_count(self) -> int:
        return len(self.sections)

    def get_section(self, section_id: str) -> Optional[Section]:
        return next((s for s in self.sections if s.id == section_id), None)

    def all_risks(self) -> List[Risk]:
        return [risk for section in self.sections for risk in section.risks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections": [section.to_dict() for section in self.sections],
            "anchors": list(self.anchors),
            "sections_count": self.sections_count,
        }
