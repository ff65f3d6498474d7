"""RAG 질의 보강 서비스

LLM을 사용하여 자연어 질의를 검색용으로 재작성하고 메타데이터 필터를 추출
응답이 코드 블록으로 감싸진 경우에도 JSON을 복구
"""

import json
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from infra.llm import LLMProviderRegistry

from .exceptions import EnhancementError
from .prompts import QUERY_ENHANCEMENT_PROMPT_TEMPLATE
from .schema import EnhancedQuery

logger = structlog.get_logger(__name__)

_JSON_FENCE = "```json"
_FENCE = "```"


def extract_json_from_code_block(text: str) -> str:
    """``` 코드 블록 안의 JSON 텍스트 추출

    ```json 펜스를 우선 찾고 없으면 일반 ``` 펜스를 사용.
    펜스가 없으면 입력을 trim하여 그대로 반환
    """
    text = text.strip()

    start = text.find(_JSON_FENCE)
    if start != -1:
        start += len(_JSON_FENCE)
    else:
        start = text.find(_FENCE)
        if start == -1:
            return text
        start += len(_FENCE)

    body = text[start:].strip()
    end = body.find(_FENCE)
    if end != -1:
        body = body[:end]
    return body.strip()


def build_enhancement_prompt(query: str, today: str) -> str:
    return QUERY_ENHANCEMENT_PROMPT_TEMPLATE.replace("{today}", today).replace("{query}", query)


def _parse_enhanced_query(text: str) -> Optional[EnhancedQuery]:
    try:
        return EnhancedQuery.model_validate(json.loads(text))
    except (ValueError, TypeError, PydanticValidationError):
        return None


class QueryEnhancer:
    """LLM 기반 질의 보강"""

    def __init__(self, llm_registry: LLMProviderRegistry):
        self.llm_registry = llm_registry

    # === 메인 처리 함수 ===

    async def enhance_query(self, query: str, today: str) -> EnhancedQuery:
        """질의 재작성 및 메타데이터 필터 추출

        Args:
            query: 원본 질의
            today: 기준일 (YYYY-MM-DD)

        Returns:
            보강된 질의 (original_query에 원본 질의 포함)
        """
        prompt = build_enhancement_prompt(query, today)

        try:
            provider = self.llm_registry.get_primary_provider()
        except RuntimeError as e:
            raise EnhancementError(f"failed to get LLM provider: {e}") from e

        try:
            response_text = await provider.generate_chat_completion(
                [{"role": "user", "content": prompt}]
            )
        except Exception as e:
            raise EnhancementError(f"failed to call LLM: {e}") from e

        result = _parse_enhanced_query(response_text)
        if result is None:
            extracted = extract_json_from_code_block(response_text)
            result = _parse_enhanced_query(extracted)
            if result is None:
                raise EnhancementError(f"failed to parse LLM response as JSON, response: {extracted}")

        result.original_query = query

        filters = result.metadata_filters
        logger.info(
            "질의 보강 완료",
            original_query=query[:50],
            enhanced_query=result.enhanced_query[:100],
            business_units=filters.business_units,
            regions=filters.regions,
            labels=filters.labels,
            generated_date=filters.generated_date
        )
        return result
