"""질의 보강 서비스 테스트"""

import json

import pytest

from infra.llm import LLMProviderRegistry
from modules.rag import EnhancementError, QueryEnhancer, extract_json_from_code_block
from modules.rag.rag_query_enhancer import build_enhancement_prompt

from .conftest import FakeLLMProvider

ENHANCED_JSON = json.dumps({
    "enhanced_query": "weekly revenue summary 2025-10-10 to 2025-10-16",
    "metadata_filters": {
        "business_units": ["VX", "VX", "Demand"],
        "regions": ["APAC"],
        "labels": ["revenue", "weekly"],
        "generated_date": "2025-10-16",
    },
})


class TestExtractJsonFromCodeBlock:
    """코드 블록 JSON 추출"""

    def test_json_fence(self):
        assert extract_json_from_code_block('```json\n{"k":"v"}\n```') == '{"k":"v"}'

    def test_trailing_prose_ignored(self):
        text = 'Here you go:\n```json\n{"k":"v"}\n```\nLet me know if you need more.'
        assert extract_json_from_code_block(text) == '{"k":"v"}'

    def test_bare_fence(self):
        assert extract_json_from_code_block('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_json_fence_preferred_over_bare(self):
        text = '```\nnot this\n```\n```json\n{"k":"v"}\n```'
        assert extract_json_from_code_block(text) == '{"k":"v"}'

    def test_no_fence_returns_trimmed_input(self):
        assert extract_json_from_code_block('   {"k":"v"}  \n') == '{"k":"v"}'

    def test_unclosed_fence(self):
        assert extract_json_from_code_block('```json\n{"k":"v"}') == '{"k":"v"}'


class TestQueryEnhancer:
    """LLM 기반 질의 보강"""

    async def test_parses_plain_json(self, fake_llm, llm_registry):
        # Given
        fake_llm.response = ENHANCED_JSON
        enhancer = QueryEnhancer(llm_registry)

        # When
        result = await enhancer.enhance_query("weekly revenue", "2025-10-16")

        # Then
        assert result.enhanced_query.startswith("weekly revenue summary")
        assert result.original_query == "weekly revenue"
        assert result.metadata_filters.business_units == ["VX", "Demand"]
        assert result.metadata_filters.generated_date == "2025-10-16"

    async def test_sends_single_user_message_with_placeholders_replaced(self, fake_llm, llm_registry):
        fake_llm.response = ENHANCED_JSON
        enhancer = QueryEnhancer(llm_registry)

        await enhancer.enhance_query("what changed in APAC", "2025-10-16")

        assert len(fake_llm.calls) == 1
        messages = fake_llm.calls[0]
        assert len(messages) == 1
        assert messages[0]["role"] == "user"
        assert "Today's date is 2025-10-16" in messages[0]["content"]
        assert "Query: what changed in APAC" in messages[0]["content"]
        assert "{today}" not in messages[0]["content"]
        assert "{query}" not in messages[0]["content"]

    async def test_falls_back_to_code_block(self, fake_llm, llm_registry):
        fake_llm.response = f"Sure!\n```json\n{ENHANCED_JSON}\n```\nThanks"
        enhancer = QueryEnhancer(llm_registry)

        result = await enhancer.enhance_query("weekly revenue", "2025-10-16")

        assert result.metadata_filters.regions == ["APAC"]

    async def test_missing_filters_default_to_empty(self, fake_llm, llm_registry):
        fake_llm.response = '{"enhanced_query": "what is ROAS return on ad spend", "metadata_filters": {}}'
        enhancer = QueryEnhancer(llm_registry)

        result = await enhancer.enhance_query("what is ROAS", "2025-10-16")

        assert result.metadata_filters.generated_date is None
        assert result.metadata_filters.labels == []

    async def test_unparseable_response_includes_text(self, fake_llm, llm_registry):
        fake_llm.response = "I cannot answer that"
        enhancer = QueryEnhancer(llm_registry)

        with pytest.raises(EnhancementError) as exc_info:
            await enhancer.enhance_query("weekly revenue", "2025-10-16")

        assert "I cannot answer that" in str(exc_info.value)

    async def test_llm_failure_is_enhancement_error(self, llm_registry, fake_llm):
        fake_llm.error = RuntimeError("rate limited")
        enhancer = QueryEnhancer(llm_registry)

        with pytest.raises(EnhancementError) as exc_info:
            await enhancer.enhance_query("weekly revenue", "2025-10-16")

        assert "rate limited" in str(exc_info.value)

    async def test_no_registered_provider(self):
        enhancer = QueryEnhancer(LLMProviderRegistry())

        with pytest.raises(EnhancementError):
            await enhancer.enhance_query("weekly revenue", "2025-10-16")


class TestLLMProviderRegistry:
    def test_first_registered_is_primary(self):
        registry = LLMProviderRegistry()
        first = FakeLLMProvider()
        registry.register(first)
        assert registry.get_primary_provider() is first

    def test_prompt_keeps_json_braces(self):
        prompt = build_enhancement_prompt("q", "2025-01-01")
        assert '"enhanced_query"' in prompt
