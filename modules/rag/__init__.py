"""RAG 모듈 공개 인터페이스

이 모듈은 검색 증강 생성(RAG)용 검색 클라이언트를 제공합니다.
자연어 질의를 LLM으로 보강하고, 임베딩으로 변환하여 교체 가능한 벡터 저장소에서
검색한 뒤 사람이 읽을 수 있는 보고서로 포맷팅합니다.

주요 기능:
- 질의 보강 및 메타데이터 필터 추출 (코드 블록으로 감싼 JSON 응답 복구)
- 기준일로부터 과거 7일 날짜 필터 확장
- Voyage contextualized 임베딩 생성
- 벡터 프로바이더 레지스트리 (simple, s3, qdrant)
- 임베딩/검색 스팬 트레이싱

사용 예시:
    from infra.config import get_settings
    from modules.rag import build_rag_orchestrator

    orchestrator = build_rag_orchestrator(get_settings())

    report = await orchestrator.call_tool("rag_search", {"query": "latest weekly revenue summary"})
"""

# 버전 정보
__version__ = "0.1.0"

from .date_utils import expand_date_range, get_today_date
from .exceptions import (
    ConfigurationError,
    EnhancementError,
    ProviderInitializationError,
    ProviderNotInitializedError,
    ProviderOperationNotSupportedError,
    QueryVectorRequiredError,
    RAGError,
    UpstreamError,
    ValidationError,
)
from .orchestrator import TOOL_NAMES, RAGOrchestrator, build_rag_orchestrator
from .providers import QdrantVectorProvider, S3VectorProvider, SimpleVectorProvider, VectorProvider
from .rag_embedding_service import EmbeddingProvider, VoyageEmbeddingClient, create_embedding_provider
from .rag_query_enhancer import QueryEnhancer, extract_json_from_code_block
from .rag_tracing import NoopTracingHandler, StructlogTracingHandler, TraceSpan, TracingHandler
from .registry import ProviderRegistry, build_default_registry
from .schema import (
    EmbeddingResult,
    EnhancedQuery,
    FileInfo,
    MetadataFilters,
    RAGConfig,
    SearchOptions,
    SearchResult,
    VectorStoreStats,
)

# 공개 API 목록
__all__ = [
    # 오케스트레이터
    "RAGOrchestrator",
    "build_rag_orchestrator",
    "TOOL_NAMES",
    # 프로바이더
    "VectorProvider",
    "SimpleVectorProvider",
    "S3VectorProvider",
    "QdrantVectorProvider",
    "ProviderRegistry",
    "build_default_registry",
    # 임베딩
    "EmbeddingProvider",
    "VoyageEmbeddingClient",
    "create_embedding_provider",
    # 질의 보강
    "QueryEnhancer",
    "extract_json_from_code_block",
    # 날짜
    "expand_date_range",
    "get_today_date",
    # 트레이싱
    "TracingHandler",
    "TraceSpan",
    "NoopTracingHandler",
    "StructlogTracingHandler",
    # 데이터 모델
    "SearchOptions",
    "SearchResult",
    "MetadataFilters",
    "EnhancedQuery",
    "EmbeddingResult",
    "VectorStoreStats",
    "FileInfo",
    "RAGConfig",
    # 예외
    "RAGError",
    "ValidationError",
    "QueryVectorRequiredError",
    "ConfigurationError",
    "ProviderInitializationError",
    "UpstreamError",
    "ProviderNotInitializedError",
    "ProviderOperationNotSupportedError",
    "EnhancementError",
]
