"""Structure analysis for extracted documents.

Splits plain text into sections at markdown headings ("## Title"),
numbered clause headings ("2.1. Payment terms") and short all-caps lines,
nests them by level, and anchors each section with AnchorGenerator.
"""

import re
from typing import List, Optional, Tuple

import structlog

from lexsimple.models.structure import (
    MAX_SECTION_LEVEL,
    DocumentSection,
    DocumentStructure,
    ExtractedDocument,
)
from lexsimple.services.structure.anchor_generator import AnchorGenerator

logger = structlog.get_logger()

MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(\S.*)$")
NUMBERED_HEADING = re.compile(r"^(\d+(?:\.\d+)*)\.?\s+(\S.*)$")
MAX_HEADING_LENGTH = 100
SENTENCE_ENDINGS = (".", ";", ",", ":")


class StructureAnalyzer:
    """Builds anchored DocumentSections from an ExtractedDocument."""

    def __init__(self, anchor_generator: Optional[AnchorGenerator] = None):
        self.anchor_generator = anchor_generator or AnchorGenerator()

    def analyze(self, document: ExtractedDocument) -> DocumentStructure:
        # Anchor uniqueness is scoped to one document
        self.anchor_generator.reset_used_anchors()

        headings = self._find_headings(document.text)
        flat = self._build_sections(document, headings)
        roots = self._nest(flat)
        structure = DocumentStructure(
            sections=roots,
            anchored_text=self.build_anchored_text(flat),
            document_type=document.document_type,
        )
        logger.info(
            "document_structure_analyzed",
            document_type=structure.document_type,
            sections=len(flat),
            top_level_sections=len(roots),
            text_length=len(document.text),
        )
        return structure

    @staticmethod
    def detect_heading(line: str) -> Optional[Tuple[int, str]]:
        """Return (level, title) if the line looks like a heading."""
        line = line.strip()
        if not line or len(line) > MAX_HEADING_LENGTH:
            return None

        match = MARKDOWN_HEADING.match(line)
        if match:
            return len(match.group(1)), match.group(2).strip()

        match = NUMBERED_HEADING.match(line)
        if match and not line.endswith(SENTENCE_ENDINGS):
            level = min(match.group(1).count(".") + 1, MAX_SECTION_LEVEL)
            return level, match.group(2).strip()

        letters = [char for char in line if char.isalpha()]
        if len(letters) >= 3 and all(char.isupper() for char in letters):
            return 1, line
        return None

    def _find_headings(self, text: str) -> List[Tuple[int, int, str]]:
        headings = []
        offset = 0
        for line in text.splitlines(keepends=True):
            detected = self.detect_heading(line)
            if detected:
                headings.append((offset, detected[0], detected[1]))
            offset += len(line)
        return headings

    def _build_sections(
        self,
        document: ExtractedDocument,
        headings: List[Tuple[int, int, str]],
    ) -> List[DocumentSection]:
        text = document.text
        bounds: List[Tuple[int, int, str]] = []

        first_start = headings[0][0] if headings else len(text)
        if text[:first_start].strip():
            title = "Preamble" if headings else str(document.metadata.get("title") or "Document")
            bounds.append((0, 1, title))
        bounds.extend(headings)

        sections = []
        for index, (start, level, title) in enumerate(bounds):
            end = bounds[index + 1][0] if index + 1 < len(bounds) else len(text)
            section_id = f"section_{index + 1}"
            sections.append(
                DocumentSection(
                    id=section_id,
                    title=title,
                    content=text[start:end].strip(),
                    level=level,
                    start_position=start,
                    end_position=end,
                    anchor=self.anchor_generator.generate(section_id, title),
                )
            )
        return sections

    @staticmethod
    def _nest(sections: List[DocumentSection]) -> List[DocumentSection]:
        roots: List[DocumentSection] = []
        stack: List[DocumentSection] = []
        for section in sections:
            while stack and stack[-1].level >= section.level:
                stack.pop()
            if stack:
                stack[-1].subsections.append(section)
            else:
                roots.append(section)
            stack.append(section)
        return roots

    @staticmethod
    def build_anchored_text(sections: List[DocumentSection]) -> str:
        """Section contents in order, each preceded by its anchor marker."""
        parts = []
        for section in sections:
            if section.anchor:
                parts.append(f"{section.anchor}\n{section.content}")
            else:
                parts.append(section.content)
        return "\n\n".join(parts)
