"""Parser for the translation-block text protocol.

Protocol markers, reproduced verbatim:

    <!-- SECTION_ANCHOR_{id} -->
    <!-- TRANSLATION_BLOCK_START type="{type}" -->
    **[Переведено]:** translated text
    **[Найден риск]:** risk
    **[Внимание]:** warning
    **[Найдено противоречие]:** contradiction
    <!-- TRANSLATION_BLOCK_END -->

Text before each block is the original text of the section the block
answers. Malformed markers never raise; they degrade to fewer or emptier
sections.
"""

import re
from typing import Any, List, Mapping, Optional

import structlog

from lexsimple.models.content import ParsedContent, Risk, RiskType, Section
from lexsimple.utils.exceptions import ContentError

logger = structlog.get_logger()

ANCHOR_ID_PREFIX = "SECTION_ANCHOR_"
ANCHOR_PATTERN = re.compile(r"<!-- SECTION_ANCHOR_([^>]+?) -->")
ANCHOR_STRIP_PATTERN = re.compile(r"<!-- SECTION_ANCHOR_[^>]+? -->\s*")
BLOCK_PATTERN = re.compile(
    r'<!-- TRANSLATION_BLOCK_START type="([^"]*)" -->(.*?)<!-- TRANSLATION_BLOCK_END -->',
    re.DOTALL,
)

# A tagged span runs lazily up to the next bold tag or the end of the block
_SPAN_END = r"(?=\*\*\[[^\]\n]+\]:\*\*|\Z)"
TRANSLATION_PATTERN = re.compile(r"\*\*\[Переведено\]:\*\*\s*(.*?)" + _SPAN_END, re.DOTALL)
RISK_TAGS = {
    "Найден риск": "risk",
    "Внимание": "warning",
    "Найдено противоречие": "contradiction",
}
RISK_PATTERN = re.compile(
    r"\*\*\[(" + "|".join(RISK_TAGS) + r")\]:\*\*\s*(.*?)" + _SPAN_END, re.DOTALL
)

HEADING_PREFIX = re.compile(r"^#+\s*")
ORDINAL_PREFIX = re.compile(r"^\d+(?:\.\d+)*\.\s*")
MAX_TITLE_LENGTH = 80


def anchor_id(value: str) -> str:
    """Bare anchor id from a full marker, a SECTION_ANCHOR_ id or a plain id."""
    match = ANCHOR_PATTERN.search(value)
    if match:
        return match.group(1)
    value = value.strip()
    if value.startswith(ANCHOR_ID_PREFIX):
        return value[len(ANCHOR_ID_PREFIX):]
    return value


class ContentProcessor:
    """Splits model output into sections, translations and risks."""

    def parse_content(self, content: str) -> ParsedContent:
        """Parse content carrying translation blocks.

        Without any translation block the whole input becomes one section
        with id "main" and title "Document".
        """
        anchors = ANCHOR_PATTERN.findall(content)
        blocks = list(BLOCK_PATTERN.finditer(content))

        if not blocks:
            logger.debug("no_translation_blocks", content_length=len(content))
            section = Section(
                id="main",
                title="Document",
                original_content=content,
                anchor=anchors[0] if anchors else None,
            )
            return ParsedContent(original_content=content, sections=[section], anchors=anchors)

        sections: List[Section] = []
        position = 0
        for match in blocks:
            preceding = content[position:match.start()]
            position = match.end()
            sections.append(
                self._build_section(
                    index=len(sections),
                    preceding=preceding,
                    block_type=match.group(1),
                    interior=match.group(2),
                )
            )

        trailing = content[position:]
        if self.remove_anchors(trailing):
            sections.append(
                self._build_section(len(sections), trailing, block_type=None, interior=None)
            )

        logger.debug(
            "content_parsed",
            sections=len(sections),
            anchors=len(anchors),
            risks=sum(len(s.risks) for s in sections),
        )
        return ParsedContent(original_content=content, sections=sections, anchors=anchors)

    def _build_section(
        self,
        index: int,
        preceding: str,
        block_type: Optional[str],
        interior: Optional[str],
    ) -> Section:
        anchor_ids = ANCHOR_PATTERN.findall(preceding)
        original = self.remove_anchors(preceding)
        translations: List[str] = []
        risks: List[Risk] = []
        if interior is not None:
            translations = self.extract_translations(interior)
            risks = self.extract_risks(interior)
        return Section(
            id=f"section_{index}",
            title=self.extract_title(original),
            original_content=original,
            translated_content=translations,
            risks=risks,
            anchor=anchor_ids[0] if anchor_ids else None,
            block_type=block_type,
        )

    @staticmethod
    def extract_translations(interior: str) -> List[str]:
        """Every [Переведено] span; the whole interior if there is none."""
        translations = [
            text.strip() for text in TRANSLATION_PATTERN.findall(interior) if text.strip()
        ]
        if translations:
            return translations
        fallback = interior.strip()
        return [fallback] if fallback else []

    @staticmethod
    def extract_risks(interior: str) -> List[Risk]:
        risks = []
        for tag, text in RISK_PATTERN.findall(interior):
            text = text.strip()
            if text:
                risk_type: RiskType = RISK_TAGS[tag]  # type: ignore[assignment]
                risks.append(Risk(type=risk_type, text=text))
        return risks

    @staticmethod
    def extract_title(text: str) -> str:
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            title = ORDINAL_PREFIX.sub("", HEADING_PREFIX.sub("", line)).strip()
            if not title:
                continue
            if len(title) > MAX_TITLE_LENGTH:
                return title[:MAX_TITLE_LENGTH] + "..."
            return title
        return "Untitled"

    def parse_document_result(self, result: Mapping[str, Any]) -> ParsedContent:
        """Parse a stored processing result.

        Raises:
            ContentError: The result has no non-empty "content" string
        """
        content = result.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ContentError("Document result has no content to parse")
        return self.parse_content(content)

    @staticmethod
    def remove_anchors(content: str) -> str:
        """Strip every anchor marker for end-user display."""
        return ANCHOR_STRIP_PATTERN.sub("", content).strip()

    @staticmethod
    def replace_anchors(content: str, replacements: Mapping[str, str]) -> str:
        """Substitute anchor markers with caller content.

        Map entries with no marker in the content are ignored; markers with
        no map entry are left untouched.
        """

        def replace(match: "re.Match[str]") -> str:
            return replacements.get(match.group(1), match.group(0))

        return ANCHOR_PATTERN.sub(replace, content)
