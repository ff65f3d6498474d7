"""RAG 임베딩 생성 서비스

Voyage AI contextualized embeddings API를 사용하여 검색 질의를
벡터 임베딩으로 변환. 재시도 없이 단일 요청만 수행
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog

from .exceptions import ConfigurationError, UpstreamError, ValidationError
from .schema import EmbeddingResult

logger = structlog.get_logger(__name__)

VOYAGE_API_URL = "https://api.voyageai.com/v1/contextualizedembeddings"
VOYAGE_MODEL = "voyage-context-3"
VOYAGE_TIMEOUT_SECONDS = 120.0


class EmbeddingProvider(ABC):
    """질의 임베딩 프로바이더 인터페이스"""

    provider_name: str = "base"

    @abstractmethod
    async def embed_query(self, text: str) -> EmbeddingResult:
        """질의 텍스트를 임베딩 벡터로 변환"""

    async def close(self) -> None:
        """보유한 리소스 해제"""


class VoyageEmbeddingClient(EmbeddingProvider):
    """Voyage contextualized embeddings HTTP 클라이언트"""

    provider_name = "voyage"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = VOYAGE_MODEL,
        api_url: str = VOYAGE_API_URL,
        timeout: float = VOYAGE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError("voyage API key is required")

        self._api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

        logger.debug("VoyageEmbeddingClient 생성", model=model, api_key_length=len(api_key))

    # === 메인 처리 함수 ===

    async def embed_query(self, text: str) -> EmbeddingResult:
        """질의 텍스트를 임베딩으로 변환

        호출자의 취소와 별개로 고정 타임아웃이 적용됨

        Args:
            text: 임베딩할 질의

        Returns:
            임베딩 벡터와 토큰 사용량
        """
        if not text or not text.strip():
            raise ValidationError("query text cannot be empty")

        try:
            body = await asyncio.wait_for(self._rag_embedding_request(text), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("임베딩 요청 시간 초과", timeout=self.timeout)
            raise UpstreamError(f"voyage API request timed out after {self.timeout:.0f}s") from e

        result = self._rag_embedding_parse_response(body)

        logger.info(
            "임베딩 생성 완료",
            text_length=len(text),
            embedding_dimension=len(result.embedding),
            tokens_used=result.tokens_used
        )
        return result

    async def close(self) -> None:
        await self._client.aclose()

    # === 내부 헬퍼 함수 ===

    async def _rag_embedding_request(self, text: str) -> Dict[str, Any]:
        """API 호출 후 JSON 본문 반환"""
        payload = {
            "inputs": [[text]],
            "input_type": "query",
            "model": self.model,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

        try:
            response = await self._client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("임베딩 API 요청 실패", error=str(e))
            raise UpstreamError(f"failed to execute voyage request: {e}") from e

        if response.status_code != 200:
            logger.error("임베딩 API 오류 응답", status_code=response.status_code)
            raise UpstreamError(
                f"voyage API returned status {response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise UpstreamError(f"failed to decode voyage response: {e}") from e

    def _rag_embedding_parse_response(self, body: Any) -> EmbeddingResult:
        """data[0].data[0].embedding 추출"""
        if not isinstance(body, dict):
            raise UpstreamError("unexpected voyage response shape")

        outer = body.get("data") or []
        if not isinstance(outer, list):
            raise UpstreamError(f"malformed voyage response: data must be a list, got {type(outer).__name__}")
        if not outer:
            raise UpstreamError("empty data array in response")

        inner = outer[0].get("data") if isinstance(outer[0], dict) else None
        if inner is not None and not isinstance(inner, list):
            raise UpstreamError(
                f"malformed voyage response: embedding data must be a list, got {type(inner).__name__}"
            )
        if not inner:
            raise UpstreamError("empty embedding data in response")

        embedding = inner[0].get("embedding") if isinstance(inner[0], dict) else None
        if not embedding:
            raise UpstreamError("empty embedding vector")
        if not isinstance(embedding, list):
            raise UpstreamError(
                f"malformed voyage response: embedding must be a list, got {type(embedding).__name__}"
            )

        usage = body.get("usage") or {}
        if not isinstance(usage, dict):
            raise UpstreamError(f"malformed voyage response: usage must be an object, got {type(usage).__name__}")

        try:
            vector = [float(v) for v in embedding]
            tokens_used = int(usage.get("total_tokens") or 0)
        except (TypeError, ValueError) as e:
            raise UpstreamError(f"malformed voyage response: {e}") from e

        return EmbeddingResult(
            embedding=vector,
            tokens_used=tokens_used,
            model=body.get("model") or self.model,
        )


def create_embedding_provider(name: str, api_key: Optional[str] = None, **kwargs) -> EmbeddingProvider:
    """이름으로 임베딩 프로바이더 생성

    Args:
        name: 프로바이더 이름 (현재 voyage만 지원)
        api_key: API 키

    Returns:
        EmbeddingProvider 인스턴스
    """
    if name == "voyage":
        if not api_key:
            raise ConfigurationError("VOYAGE_API_KEY is not set")
        return VoyageEmbeddingClient(api_key, **kwargs)

    raise ConfigurationError(f"unsupported embedding provider: {name} (supported: voyage)")
