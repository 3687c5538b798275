"""Integration tests for the document translation pipeline.

Tests the complete flow:
1. Analyze an extracted document into anchored sections
2. Render the bundled translation prompt with the section anchors
3. Execute through LLMService with the fake provider
4. Parse the response and map translations back onto the source anchors
"""

import asyncio
from pathlib import Path

import pytest

from lexsimple.models.prompt import PromptExecutionRequest
from lexsimple.models.structure import ExtractedDocument
from lexsimple.observability.context import correlation_id_context
from lexsimple.services.config_manager import ConfigManager
from lexsimple.services.content.processor import ContentProcessor, anchor_id
from lexsimple.services.llm.exceptions import LLMConnectionError
from lexsimple.services.llm.providers.fake import FakeAdapter
from lexsimple.services.llm.service import LLMService
from lexsimple.services.prompt.manager import PromptManager
from lexsimple.services.structure.analyzer import StructureAnalyzer

CONFIG_PATH = Path(__file__).parents[2] / "config" / "lexsimple.yaml"

CONTRACT = """ДОГОВОР АРЕНДЫ

1. Предмет договора
Арендодатель передает квартиру во временное пользование.

2. Арендная плата
2.1. Размер платы
Плата составляет 50 000 рублей в месяц

2.2. Штрафы
За просрочку оплаты начисляется неустойка 1% в день
"""


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    manager = ConfigManager(config_path=str(CONFIG_PATH))
    loaded = manager.load_config()
    loaded.llm.retry.base_delay_seconds = 0.0
    loaded.llm.retry.jitter_factor = 0.0
    return manager


def build_manager(config, adapter):
    settings = config.load_config().llm
    return PromptManager(LLMService(adapter, settings), config.build_prompt_repository())


def translation_request(structure, template=None):
    anchor_ids = [anchor_id(anchor) for anchor in structure.anchors]
    return PromptExecutionRequest(
        system_name="translation",
        template_name=template,
        variables={
            "document": structure.anchored_text,
            "anchors": anchor_ids,
            "anchor_list": ", ".join(anchor_ids),
            "document_sections": structure.sections,
            "document_type": structure.document_type,
        },
    )


@pytest.fixture
def structure():
    return StructureAnalyzer().analyze(
        ExtractedDocument(CONTRACT, {"document_type": "lease", "title": "lease"})
    )


class TestTranslationPipeline:
    """End-to-end translation through the fake provider."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response_format", ["markers", "json"])
    async def test_every_anchor_translated(self, config, structure, response_format):
        adapter = FakeAdapter(response_format=response_format)
        manager = build_manager(config, adapter)

        with correlation_id_context("lease-1"):
            result = await manager.execute_prompt(translation_request(structure))

        assert result.parsed.is_valid
        assert not result.parsed.errors
        assert result.correlation_id == "lease-1"
        assert result.parsed.valid_anchors_count == len(structure.anchors) == 5
        assert result.parsed.metadata["parse_method"] == response_format
        content_map = result.parsed.get_anchor_content_map()
        for section in structure.flatten():
            assert content_map[anchor_id(section.anchor)].startswith("Simplified:")

    @pytest.mark.asyncio
    async def test_prompt_carries_anchor_list(self, config, structure):
        adapter = FakeAdapter()
        manager = build_manager(config, adapter)

        result = await manager.execute_prompt(translation_request(structure))

        assert "Доступные якоря: section_1_dogovor_arendy" in result.rendered_prompt
        assert "{{" not in result.rendered_prompt
        assert "{%" not in result.rendered_prompt
        assert adapter.requests[0].system_prompt.startswith("Ты - эксперт")

    @pytest.mark.asyncio
    async def test_structure_template(self, config, structure):
        adapter = FakeAdapter(response_format="json")
        manager = build_manager(config, adapter)

        result = await manager.execute_prompt(translation_request(structure, "with_structure"))

        assert result.rendered_prompt.startswith("Структура документа с якорями:")
        assert "  - Размер платы (якорь:" in result.rendered_prompt
        assert result.parsed.is_valid

    @pytest.mark.asyncio
    async def test_risks_surface_in_markers(self, config, structure):
        adapter = FakeAdapter()
        manager = build_manager(config, adapter)

        result = await manager.execute_prompt(translation_request(structure))
        parsed = ContentProcessor().parse_content(result.raw_response)

        risky = [section.anchor for section in parsed.sections if section.has_risks()]
        assert "section_5_shtrafy" in risky
        assert "section_2_predmet_dogovora" not in risky

    @pytest.mark.asyncio
    async def test_transient_failures_recovered(self, config, structure):
        adapter = FakeAdapter(
            failures=[LLMConnectionError.network_error("fake", "connection reset")]
        )
        manager = build_manager(config, adapter)

        result = await manager.execute_prompt(translation_request(structure))

        assert result.parsed.is_valid
        assert len(adapter.requests) == 2
        assert manager.llm_service.get_usage_stats()["total_retries"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_documents(self, config):
        """Several documents translated concurrently keep their own anchors."""
        adapter = FakeAdapter(response_format="json", delay_seconds=0.01)
        manager = build_manager(config, adapter)
        analyzer = StructureAnalyzer()
        structures = [
            analyzer.analyze(ExtractedDocument(f"## Раздел {i}\nТекст {i}")) for i in range(3)
        ]

        results = await asyncio.gather(
            *(manager.execute_prompt(translation_request(s)) for s in structures)
        )

        for index, result in enumerate(results):
            assert result.anchors == [f"section_1_razdel_{index}"]
            assert result.parsed.is_successful()
        assert manager.get_execution_stats()["total_executions"] == 3
