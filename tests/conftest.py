"""공통 테스트 픽스처

네트워크 없이 동작하는 가짜 LLM, 임베딩, 벡터 프로바이더
"""

from typing import Any, Dict, List, Optional

import pytest

from infra.llm import LLMProvider, LLMProviderRegistry
from modules.rag import (
    EmbeddingProvider,
    EmbeddingResult,
    SearchOptions,
    SearchResult,
    VectorProvider,
    VectorStoreStats,
)


class FakeLLMProvider(LLMProvider):
    """고정 응답을 돌려주는 LLM"""

    name = "fake"

    def __init__(self, response: str = "", error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: List[List[Dict[str, str]]] = []

    async def generate_chat_completion(self, messages, **options) -> str:
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.response


class FakeEmbeddingProvider(EmbeddingProvider):
    """고정 벡터를 돌려주는 임베딩 프로바이더"""

    provider_name = "fake"

    def __init__(self, vector: Optional[List[float]] = None, tokens: int = 5, error: Optional[Exception] = None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.tokens = tokens
        self.error = error
        self.queries: List[str] = []
        self.closed = False

    async def embed_query(self, text: str) -> EmbeddingResult:
        self.queries.append(text)
        if self.error:
            raise self.error
        return EmbeddingResult(embedding=self.vector, tokens_used=self.tokens, model="fake-model")

    async def close(self) -> None:
        self.closed = True


class RecordingVectorProvider(VectorProvider):
    """검색 호출을 기록하고 미리 정한 결과를 반환"""

    provider_name = "recording"

    def __init__(self, results: Optional[List[SearchResult]] = None, stats: Optional[VectorStoreStats] = None):
        super().__init__()
        self.results = results or []
        self.stats = stats or VectorStoreStats()
        self.searches: List[Dict[str, Any]] = []
        self.ingested: List[Dict[str, Any]] = []
        self.init_calls = 0
        self.closed = False

    async def _initialize(self) -> None:
        self.init_calls += 1

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        self.searches.append({"query": query, "options": options})
        return list(self.results)

    async def ingest_file(self, file_path: str, metadata: Optional[Dict[str, str]] = None) -> str:
        self.ingested.append({"file_path": file_path, "metadata": metadata})
        return "file-123"

    async def get_stats(self) -> VectorStoreStats:
        return self.stats

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_llm():
    return FakeLLMProvider()


@pytest.fixture
def llm_registry(fake_llm):
    registry = LLMProviderRegistry()
    registry.register(fake_llm, primary=True)
    return registry


@pytest.fixture
def fake_embedding():
    return FakeEmbeddingProvider()


@pytest.fixture
def recording_provider():
    return RecordingVectorProvider()
