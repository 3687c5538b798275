"""Document structure models: the extracted input and its anchored sections."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

MAX_SECTION_LEVEL = 10


@dataclass
class ExtractedDocument:
    """Plain text produced by an external extractor, plus metadata."""

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def document_type(self) -> str:
        return str(self.metadata.get("document_type", "legal"))


@dataclass
class DocumentSection:
    """A section of a document with its anchor.

    Raises:
        ValueError: Empty id or title, level outside 1..10, or invalid positions
    """

    id: str
    title: str
    content: str
    level: int = 1
    start_position: int = 0
    end_position: int = 0
    anchor: Optional[str] = None
    subsections: List["DocumentSection"] = field(default_factory=list)
    confidence: float = 1.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Section id cannot be empty")
        if not self.title.strip():
            raise ValueError("Section title cannot be empty")
        if not 1 <= self.level <= MAX_SECTION_LEVEL:
            raise ValueError(
                f"Section level must be between 1 and {MAX_SECTION_LEVEL}, got {self.level}"
            )
        if self.start_position < 0 or self.end_position < self.start_position:
            raise ValueError(
                f"Invalid section positions: {self.start_position}-{self.end_position}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    def all_subsections(self) -> List["DocumentSection"]:
        """Flattened subsections, depth first."""
        flattened: List[DocumentSection] = []
        for subsection in self.subsections:
            flattened.append(subsection)
            flattened.extend(subsection.all_subsections())
        return flattened

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "level": self.level,
            "start_position": self.start_position,
            "end_position": self.end_position,
            "anchor": self.anchor,
            "subsections": [s.to_dict() for s in self.subsections],
            "confidence": self.confidence,
            "metadata": dict(self.metadata),
        }


@dataclass
class DocumentStructure:
    """Sections of one document and the anchored text sent to the model."""

    sections: List[DocumentSection]
    anchored_text: str
    document_type: str = "legal"

    def flatten(self) -> List[DocumentSection]:
        flattened: List[DocumentSection] = []
        for section in self.sections:
            flattened.append(section)
            flattened.extend(section.all_subsections())
        return flattened

    @property
    def anchors(self) -> List[str]:
        return [section.anchor for section in self.flatten() if section.anchor]
