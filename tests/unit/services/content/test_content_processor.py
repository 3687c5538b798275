"""Tests for the translation-block ContentProcessor."""

import pytest

from lexsimple.models.content import Risk
from lexsimple.services.content.processor import ContentProcessor, anchor_id
from lexsimple.utils.exceptions import ContentError


def block(*lines, block_type="legal"):
    body = "\n".join(lines)
    return (
        f'<!-- TRANSLATION_BLOCK_START type="{block_type}" -->\n'
        f"{body}\n"
        "<!-- TRANSLATION_BLOCK_END -->"
    )


@pytest.fixture
def processor():
    return ContentProcessor()


class TestParseContent:
    """Tests for parse_content."""

    def test_single_block_example(self, processor):
        content = (
            "Original text\n"
            + block("**[Переведено]:** Simple text", "**[Найден риск]:** Clause too vague")
        )

        parsed = processor.parse_content(content)

        assert parsed.sections_count == 1
        section = parsed.sections[0]
        assert section.id == "section_0"
        assert section.title == "Original text"
        assert section.original_content == "Original text"
        assert section.translated_content == ["Simple text"]
        assert section.risks == [Risk(type="risk", text="Clause too vague")]
        assert section.block_type == "legal"

    def test_no_blocks_is_single_document_section(self, processor):
        parsed = processor.parse_content("Just an ordinary clause.")

        assert parsed.sections_count == 1
        section = parsed.sections[0]
        assert section.id == "main"
        assert section.title == "Document"
        assert section.original_content == "Just an ordinary clause."
        assert section.translated_content == []
        assert section.risks == []

    def test_multiple_translations_and_risk_kinds(self, processor):
        content = "Clause\n" + block(
            "**[Переведено]:** First",
            "**[Переведено]:** Second\nspanning lines",
            "**[Внимание]:** Check the date",
            "**[Найдено противоречие]:** Conflicts with 2.1",
        )

        section = processor.parse_content(content).sections[0]

        assert section.translated_content == ["First", "Second\nspanning lines"]
        assert section.main_translation() == "First"
        assert [r.type for r in section.risks] == ["warning", "contradiction"]
        assert section.risks_of_type("warning")[0].is_warning()
        assert section.risks[1].is_contradiction()

    def test_untagged_block_interior_is_the_translation(self, processor):
        section = processor.parse_content("Clause\n" + block("Plain answer")).sections[0]
        assert section.translated_content == ["Plain answer"]

    def test_sections_follow_blocks_in_order(self, processor):
        content = (
            "<!-- SECTION_ANCHOR_s1 -->\n# 1. Subject\nText one\n"
            + block("**[Переведено]:** One")
            + "\n<!-- SECTION_ANCHOR_s2 -->\n## 2. Payment\nText two\n"
            + block("**[Переведено]:** Two", block_type="financial")
        )

        parsed = processor.parse_content(content)

        assert [s.id for s in parsed.sections] == ["section_0", "section_1"]
        assert [s.title for s in parsed.sections] == ["Subject", "Payment"]
        assert [s.anchor for s in parsed.sections] == ["s1", "s2"]
        assert parsed.anchors == ["s1", "s2"]
        assert "SECTION_ANCHOR" not in parsed.sections[0].original_content
        assert parsed.get_section("section_1").block_type == "financial"

    def test_trailing_text_becomes_section(self, processor):
        content = "A\n" + block("**[Переведено]:** a") + "\nAppendix notes"

        parsed = processor.parse_content(content)

        assert parsed.sections_count == 2
        trailing = parsed.sections[1]
        assert trailing.title == "Appendix notes"
        assert trailing.translated_content == []
        assert trailing.block_type is None

    def test_unterminated_block_degrades(self, processor):
        content = 'Text\n<!-- TRANSLATION_BLOCK_START type="legal" -->\n**[Переведено]:** x'
        parsed = processor.parse_content(content)
        assert parsed.sections[0].id == "main"

    def test_all_risks(self, processor):
        content = (
            "A\n" + block("**[Найден риск]:** r1") + "\nB\n" + block("**[Найден риск]:** r2")
        )
        assert [r.text for r in processor.parse_content(content).all_risks()] == ["r1", "r2"]


class TestExtractTitle:
    """Tests for title normalization."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("## Heading", "Heading"),
            ("3.2. Termination", "Termination"),
            ("\n\n  Body first line\nsecond", "Body first line"),
            ("", "Untitled"),
            ("###", "Untitled"),
        ],
    )
    def test_titles(self, text, expected):
        assert ContentProcessor.extract_title(text) == expected

    def test_long_title_truncated(self):
        title = ContentProcessor.extract_title("x" * 120)
        assert title == "x" * 80 + "..."


class TestAnchors:
    """Tests for anchor removal and replacement."""

    TEXT = "<!-- SECTION_ANCHOR_a -->\nAlpha\n<!-- SECTION_ANCHOR_b -->\nBeta"

    def test_remove_anchors(self):
        assert ContentProcessor.remove_anchors(self.TEXT) == "Alpha\nBeta"

    def test_replace_anchors(self):
        replaced = ContentProcessor.replace_anchors(self.TEXT, {"a": "[A]", "zzz": "unused"})
        assert replaced.startswith("[A]\nAlpha")
        assert "<!-- SECTION_ANCHOR_b -->" in replaced

    def test_removal_after_replacement_leaves_no_markers(self):
        replaced = ContentProcessor.replace_anchors(self.TEXT, {"a": "[A]"})
        cleaned = ContentProcessor.remove_anchors(replaced)
        assert "SECTION_ANCHOR_" not in cleaned
        assert ContentProcessor.remove_anchors(cleaned) == cleaned

    @pytest.mark.parametrize(
        "value",
        ["<!-- SECTION_ANCHOR_abc_1 -->", "SECTION_ANCHOR_abc_1", "abc_1", "  abc_1 "],
    )
    def test_anchor_id_forms(self, value):
        assert anchor_id(value) == "abc_1"


class TestParseDocumentResult:
    """Tests for parse_document_result."""

    def test_parses_content_field(self, processor):
        parsed = processor.parse_document_result({"content": "Clause\n" + block("**[Переведено]:** c")})
        assert parsed.sections[0].translated_content == ["c"]

    @pytest.mark.parametrize("result", [{}, {"content": ""}, {"content": "  "}, {"content": 42}])
    def test_missing_content_raises(self, processor, result):
        with pytest.raises(ContentError):
            processor.parse_document_result(result)

    def test_to_dict(self, processor):
        data = processor.parse_content("Clause\n" + block("**[Найден риск]:** r")).to_dict()
        assert data["sections_count"] == 1
        assert data["sections"][0]["risks"] == [{"type": "risk", "text": "r"}]
