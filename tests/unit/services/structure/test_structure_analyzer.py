"""Tests for StructureAnalyzer."""

import pytest

from lexsimple.models.structure import DocumentSection, ExtractedDocument
from lexsimple.services.structure.analyzer import StructureAnalyzer

CONTRACT = """ДОГОВОР ПОСТАВКИ
г. Москва

1. Предмет договора
Поставщик обязуется передать товар.

1.1. Качество товара
Товар должен соответствовать ГОСТ.

2. Ответственность сторон
За просрочку начисляется неустойка.
"""


@pytest.fixture
def analyzer():
    return StructureAnalyzer()


class TestDetectHeading:
    """Tests for heading heuristics."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("## Payment", (2, "Payment")),
            ("1. Subject", (1, "Subject")),
            ("2.3.1 Delivery", (3, "Delivery")),
            ("GENERAL PROVISIONS", (1, "GENERAL PROVISIONS")),
            ("1. The buyer pays within ten days.", None),
            ("Ordinary sentence", None),
            ("", None),
            ("ABC" * 40, None),
            ("A1", None),
        ],
    )
    def test_detect_heading(self, line, expected):
        assert StructureAnalyzer.detect_heading(line) == expected


class TestAnalyze:
    """Tests for building anchored structures."""

    def test_sections_and_nesting(self, analyzer):
        structure = analyzer.analyze(ExtractedDocument(CONTRACT, {"document_type": "contract"}))

        flat = structure.flatten()
        assert [s.title for s in flat] == [
            "ДОГОВОР ПОСТАВКИ",
            "Предмет договора",
            "Качество товара",
            "Ответственность сторон",
        ]
        assert [s.id for s in flat] == ["section_1", "section_2", "section_3", "section_4"]
        assert [s.title for s in structure.sections] == [
            "ДОГОВОР ПОСТАВКИ",
            "Предмет договора",
            "Ответственность сторон",
        ]
        subject = structure.sections[1]
        assert [s.title for s in subject.subsections] == ["Качество товара"]
        assert subject.subsections[0].level == 2
        assert structure.document_type == "contract"

    def test_positions_cover_content(self, analyzer):
        structure = analyzer.analyze(ExtractedDocument(CONTRACT))
        for section in structure.flatten():
            assert CONTRACT[section.start_position:section.end_position].strip() == section.content

    def test_anchored_text(self, analyzer):
        structure = analyzer.analyze(ExtractedDocument(CONTRACT))

        assert len(structure.anchors) == 4
        assert structure.anchors[1] == "<!-- SECTION_ANCHOR_section_2_predmet_dogovora -->"
        assert structure.anchored_text.startswith(structure.anchors[0] + "\nДОГОВОР ПОСТАВКИ")
        for anchor in structure.anchors:
            assert structure.anchored_text.count(anchor) == 1

    def test_preamble(self, analyzer):
        text = "Parties agree as follows\n\n## Term\nOne year"
        flat = analyzer.analyze(ExtractedDocument(text)).flatten()
        assert [s.title for s in flat] == ["Preamble", "Term"]

    def test_no_headings(self, analyzer):
        structure = analyzer.analyze(ExtractedDocument("just text", {"title": "memo"}))

        assert len(structure.sections) == 1
        section = structure.sections[0]
        assert section.title == "memo"
        assert section.content == "just text"

    def test_empty_document(self, analyzer):
        structure = analyzer.analyze(ExtractedDocument("   "))
        assert structure.sections == []
        assert structure.anchored_text == ""

    def test_anchors_reset_between_documents(self, analyzer):
        first = analyzer.analyze(ExtractedDocument(CONTRACT)).anchors
        second = analyzer.analyze(ExtractedDocument(CONTRACT)).anchors
        assert first == second


class TestDocumentSection:
    """Tests for DocumentSection validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"id": " "},
            {"title": ""},
            {"level": 0},
            {"level": 11},
            {"start_position": 5, "end_position": 2},
            {"confidence": 1.5},
        ],
    )
    def test_invalid(self, kwargs):
        values = {"id": "s", "title": "T", "content": "c"}
        values.update(kwargs)
        with pytest.raises(ValueError):
            DocumentSection(**values)

    def test_to_dict_nests(self):
        child = DocumentSection(id="c", title="Child", content="x", level=2)
        parent = DocumentSection(id="p", title="Parent", content="y", subsections=[child])
        assert parent.to_dict()["subsections"][0]["id"] == "c"
        assert parent.all_subsections() == [child]
