"""RAG 오케스트레이터

질의 보강 → 날짜 범위 확장 → 임베딩 생성 → 벡터 검색 → 결과 포맷팅 순서를 조율
rag_search, rag_ingest, rag_stats 세 가지 도구 호출의 진입점
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import structlog
from pydantic import ValidationError as PydanticValidationError

from infra.config import Settings
from infra.llm import LLMProviderRegistry, OpenAILLMProvider

from .date_utils import expand_date_range, get_today_date
from .exceptions import ConfigurationError, EnhancementError, ValidationError
from .providers.base import VectorProvider, stringify_metadata_value
from .rag_embedding_service import EmbeddingProvider, create_embedding_provider
from .rag_query_enhancer import QueryEnhancer
from .rag_tracing import NoopTracingHandler, StructlogTracingHandler, TracingHandler
from .registry import ProviderRegistry, build_default_registry
from .schema import MetadataFilters, RAGConfig, SearchOptions, SearchResult, VectorStoreStats

logger = structlog.get_logger(__name__)

TOOL_NAMES = ("rag_search", "rag_ingest", "rag_stats")

_OPERATION_ALIASES = {
    "rag_search": "search",
    "rag_ingest": "ingest",
    "rag_stats": "stats",
    "search": "search",
    "ingest": "ingest",
    "stats": "stats",
}


# === 인자 검증 ===

def extract_string_param(args: Mapping[str, Any], name: str, required: bool = True) -> str:
    """문자열 인자 추출 및 검증"""
    if name not in args or args[name] is None:
        if required:
            raise ValidationError(f"missing required parameter: {name}")
        return ""

    value = args[name]
    if not isinstance(value, str):
        raise ValidationError(f"parameter {name} must be a string, got {type(value).__name__}")
    if required and not value.strip():
        raise ValidationError(f"parameter {name} cannot be empty")
    return value


def extract_string_map(args: Mapping[str, Any], name: str) -> Dict[str, str]:
    """선택적 맵 인자를 문자열 맵으로 변환"""
    value = args.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"parameter {name} must be an object, got {type(value).__name__}")
    return {str(k): stringify_metadata_value(v) for k, v in value.items() if v is not None}


def _parse_query_metadata(value: Any) -> Optional[MetadataFilters]:
    if value is None:
        return None
    if isinstance(value, MetadataFilters):
        return value
    if isinstance(value, Mapping):
        try:
            return MetadataFilters.model_validate(dict(value))
        except PydanticValidationError as e:
            raise ValidationError(f"parameter query_metadata is invalid: {e}") from e
    raise ValidationError(f"parameter query_metadata must be an object, got {type(value).__name__}")


# === 결과 포맷팅 ===

def sort_results_by_date(results: List[SearchResult], date_field: str) -> List[SearchResult]:
    """날짜 필드 내림차순 정렬 (같은 날짜는 기존 관련도 순서 유지, 날짜 없는 결과는 마지막)"""
    dated = [r for r in results if r.metadata.get(date_field)]
    undated = [r for r in results if not r.metadata.get(date_field)]
    dated.sort(key=lambda r: r.metadata[date_field], reverse=True)
    return dated + undated


def format_search_results(query: str, results: List[SearchResult], date_field: str) -> str:
    if not results:
        return f"No relevant context found for query: '{query}'"

    lines = [f"Found {len(results)} relevant context(s) for '{query}':"]
    for rank, result in enumerate(results, start=1):
        lines.append(f"--- Context {rank} ---")
        if result.file_name:
            source = f"Source: {result.file_name}"
            if result.score > 0:
                source += f" (score: {result.score:.2f})"
            lines.append(source)
        date = result.metadata.get(date_field)
        if date:
            lines.append(f"Date: {date}")
        lines.append(f"Content: {result.content}")
        if result.highlights:
            lines.append("Highlights: " + " | ".join(result.highlights))
    return "\n".join(lines) + "\n"


def format_stats(stats: VectorStoreStats) -> str:
    lines = [
        "RAG Vector Store Statistics:",
        f"Total Files: {stats.total_files}",
        f"Total Chunks: {stats.total_chunks}",
        f"Processing Files: {stats.processing_files}",
        f"Failed Files: {stats.failed_files}",
    ]
    if stats.storage_size_bytes > 0:
        lines.append(f"Storage Size: {stats.storage_size_bytes / (1024 * 1024):.2f} MB")
    lines.append(f"Last Updated: {stats.last_updated.strftime('%Y-%m-%d %H:%M:%S')}")
    return "\n".join(lines) + "\n"


class RAGOrchestrator:
    """RAG 도구 호출 오케스트레이터

    생성 후 협력 객체 참조는 변경되지 않으며 호출별 공유 상태가 없으므로
    여러 요청에서 동시에 호출할 수 있음
    """

    def __init__(
        self,
        provider: VectorProvider,
        *,
        embedding_provider: Optional[EmbeddingProvider] = None,
        enhancer: Optional[QueryEnhancer] = None,
        tracer: Optional[TracingHandler] = None,
        config: Optional[RAGConfig] = None,
        today: Callable[[], str] = get_today_date,
        owned_resources: Tuple[Any, ...] = (),
    ):
        self.provider = provider
        self.embedding_provider = embedding_provider
        self.enhancer = enhancer
        self.tracer = tracer or NoopTracingHandler()
        self.config = config or RAGConfig()
        self._today = today
        self._owned_resources = owned_resources

    # === 메인 처리 함수 ===

    async def dispatch(self, operation: str, args: Optional[Mapping[str, Any]]) -> str:
        """도구 호출 분기

        Args:
            operation: rag_search | rag_ingest | rag_stats (접두어 없는 이름도 허용)
            args: 인자 맵

        Returns:
            사람이 읽을 수 있는 결과 텍스트
        """
        if args is None:
            raise ValidationError("arguments cannot be nil")
        if not isinstance(args, Mapping):
            raise ValidationError(f"arguments must be an object, got {type(args).__name__}")

        resolved = _OPERATION_ALIASES.get(operation)
        if resolved is None:
            raise ValidationError(
                f"unknown RAG tool: {operation}. Available tools: {', '.join(TOOL_NAMES)}"
            )

        if resolved == "search":
            return await self.search(args)
        if resolved == "ingest":
            return await self.ingest(args)
        return await self.stats(args)

    async def call_tool(self, tool_name: str, args: Optional[Mapping[str, Any]]) -> str:
        return await self.dispatch(tool_name, args)

    async def search(self, args: Mapping[str, Any]) -> str:
        """검색 파이프라인 실행"""
        query = extract_string_param(args, "query")
        options = SearchOptions(
            limit=self.config.max_results,
            metadata=extract_string_map(args, "filters"),
        )
        provided = _parse_query_metadata(args.get("query_metadata"))
        await self.provider.initialize()

        search_query, anchor = await self._rag_orchestrator_resolve_query(query, provided)
        options.date_filter = self._rag_orchestrator_expand_dates(anchor)

        if self.embedding_provider is not None:
            options.query_vector = await self._rag_orchestrator_embed(search_query)

        logger.info(
            "벡터 검색 시작",
            query=query[:100],
            max_results=options.limit,
            has_embedding_vector=bool(options.query_vector),
            embedding_dimensions=len(options.query_vector or []),
            date_filter_count=len(options.date_filter)
        )

        results = await self._rag_orchestrator_vector_search(search_query, options)
        if not results:
            logger.info("검색 결과 없음", query=query[:100])
            return format_search_results(query, results, self.config.date_field)

        ordered = sort_results_by_date(results, self.config.date_field)
        logger.info("검색 프로세스 완료", query=query[:100], result_count=len(ordered))
        return format_search_results(query, ordered, self.config.date_field)

    async def ingest(self, args: Mapping[str, Any]) -> str:
        file_path = extract_string_param(args, "file_path")
        metadata = extract_string_map(args, "metadata")
        await self.provider.initialize()

        file_id = await self.provider.ingest_file(file_path, metadata)
        logger.info("파일 적재 요청 완료", file_path=file_path, file_id=file_id)
        return f"Successfully ingested file: {file_path} (ID: {file_id})"

    async def stats(self, args: Mapping[str, Any]) -> str:
        await self.provider.initialize()
        stats = await self.provider.get_stats()
        return format_stats(stats)

    async def close(self) -> None:
        """프로바이더, 임베딩 클라이언트 및 소유한 리소스 해제

        모든 리소스 해제를 시도한 뒤 첫 번째 오류를 다시 발생시킴
        """
        first_error: Optional[BaseException] = None
        resources = [self.provider, self.embedding_provider, *self._owned_resources]
        for resource in resources:
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.error("리소스 해제 실패", resource=type(resource).__name__, error=str(e))
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    # === 내부 헬퍼 함수 ===

    async def _rag_orchestrator_resolve_query(
        self,
        query: str,
        provided: Optional[MetadataFilters]
    ) -> Tuple[str, Optional[str]]:
        """검색에 사용할 질의와 날짜 기준일 결정

        query_metadata 인자가 있으면 그대로 사용하고 보강을 건너뜀.
        보강 실패 시 원본 질의로 계속 진행
        """
        if provided is not None:
            logger.debug("사전 추출된 질의 메타데이터 사용", generated_date=provided.generated_date)
            return query, provided.generated_date

        if self.enhancer is None:
            return query, None

        try:
            enhanced = await self.enhancer.enhance_query(query, self._today())
        except EnhancementError as e:
            logger.warning("질의 보강 실패, 원본 질의로 검색", query=query[:100], error=str(e))
            return query, None

        search_query = enhanced.enhanced_query.strip() or query
        return search_query, enhanced.metadata_filters.generated_date

    def _rag_orchestrator_expand_dates(self, anchor: Optional[str]) -> List[str]:
        if not anchor:
            logger.debug("날짜 필터 없음 (비시간성 질의)")
            return []
        try:
            dates = expand_date_range(anchor, self.config.date_window_days)
        except ValidationError as e:
            logger.warning("날짜 범위 확장 실패, 날짜 필터 없이 검색", anchor=anchor, error=str(e))
            return []
        logger.info("날짜 필터 적용", anchor=anchor, window_days=self.config.date_window_days, dates=dates)
        return dates

    async def _rag_orchestrator_embed(self, query: str) -> List[float]:
        span = self.tracer.start_span(
            "query-embedding-creation",
            "embedding",
            {"provider": getattr(self.embedding_provider, "provider_name", "unknown")}
        )
        span.set_input(query)
        try:
            result = await self.embedding_provider.embed_query(query)
            span.set_token_usage(result.tokens_used, 0, result.tokens_used)
            span.set_output(
                f"Generated {len(result.embedding)}-dimensional embedding ({result.tokens_used} tokens)"
            )
            span.set_metadata({"model": result.model})
        except BaseException as e:
            span.set_error(e)
            logger.error("임베딩 생성 실패", error=str(e) or type(e).__name__)
            raise
        finally:
            span.end()
        return result.embedding

    async def _rag_orchestrator_vector_search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        span = self.tracer.start_span(
            "vector-search",
            "retriever",
            {
                "provider": self.provider.provider_name,
                "max_results": options.limit,
                "has_embedding_vector": bool(options.query_vector),
                "embedding_dimensions": len(options.query_vector or []),
                "date_filter_count": len(options.date_filter),
            }
        )
        span.set_input(query)
        try:
            results = await self.provider.search(query, options)
            span.set_output(f"Retrieved {len(results)} documents from vector store")
        except BaseException as e:
            span.set_error(e)
            logger.error("벡터 검색 실패", provider=self.provider.provider_name, error=str(e) or type(e).__name__)
            raise
        finally:
            span.end()
        return results


# === 구성 ===

def build_rag_orchestrator(
    settings: Settings,
    *,
    registry: Optional[ProviderRegistry] = None,
    llm_registry: Optional[LLMProviderRegistry] = None,
    tracer: Optional[TracingHandler] = None,
) -> RAGOrchestrator:
    """설정으로부터 오케스트레이터 전체 구성

    Args:
        settings: 애플리케이션 설정
        registry: 벡터 프로바이더 레지스트리 (기본: simple, s3, qdrant)
        llm_registry: 질의 보강용 LLM 레지스트리 (없으면 OpenAI로 구성)
        tracer: 트레이서 (없으면 설정에 따라 structlog 또는 no-op)

    Returns:
        RAGOrchestrator
    """
    registry = registry or build_default_registry()
    provider = registry.create(settings.rag_provider_config())

    try:
        config = RAGConfig(
            max_results=settings.rag_max_results,
            date_field=settings.rag_date_field,
            date_window_days=settings.rag_date_window_days,
        )
    except PydanticValidationError as e:
        raise ConfigurationError(f"invalid RAG configuration: {e}") from e

    build_llm_registry = settings.rag_enable_query_enhancement and llm_registry is None
    if build_llm_registry and not settings.openai_api_key:
        raise ConfigurationError("openai_api_key is required when query enhancement is enabled")

    # HTTP 클라이언트는 설정 검증이 모두 끝난 뒤 생성
    embedding_provider = None
    if settings.embedding_provider:
        embedding_provider = create_embedding_provider(settings.embedding_provider, settings.voyage_api_key)

    owned: Tuple[Any, ...] = ()
    enhancer = None
    if settings.rag_enable_query_enhancement:
        if build_llm_registry:
            llm_registry = LLMProviderRegistry()
            llm_registry.register(
                OpenAILLMProvider(
                    api_key=settings.openai_api_key,
                    model=settings.openai_model,
                    timeout=settings.openai_timeout,
                ),
                primary=True,
            )
            owned = (llm_registry,)
        enhancer = QueryEnhancer(llm_registry)

    if tracer is None:
        tracer = StructlogTracingHandler() if settings.rag_enable_tracing else NoopTracingHandler()

    logger.info(
        "RAGOrchestrator 초기화 완료",
        provider=provider.provider_name,
        embedding_provider=settings.embedding_provider,
        query_enhancement=enhancer is not None,
        tracing=not isinstance(tracer, NoopTracingHandler)
    )
    return RAGOrchestrator(
        provider,
        embedding_provider=embedding_provider,
        enhancer=enhancer,
        tracer=tracer,
        config=config,
        owned_resources=owned,
    )


__all__ = [
    "RAGOrchestrator",
    "build_rag_orchestrator",
    "format_search_results",
    "format_stats",
    "sort_results_by_date",
    "TOOL_NAMES",
]
