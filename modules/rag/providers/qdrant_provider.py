"""Qdrant 벡터 프로바이더

Qdrant 컬렉션에 대한 벡터 유사도 검색
payload의 source_text를 본문으로 사용하고 나머지 payload는 문자열 메타데이터로 변환
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import FieldCondition, Filter, MatchAny, MatchValue, PointIdsList

from infra.vector_store import create_qdrant_client

from ..exceptions import (
    ProviderNotInitializedError,
    ProviderOperationNotSupportedError,
    QueryVectorRequiredError,
    UpstreamError,
)
from ..schema import FileInfo, QdrantProviderConfig, SearchOptions, SearchResult, VectorStoreStats
from .base import VectorProvider, split_source_text

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 7


def _default_client_factory(config: QdrantProviderConfig) -> QdrantClient:
    return create_qdrant_client(config.url, api_key=config.api_key, timeout=config.timeout)


class QdrantVectorProvider(VectorProvider):
    """Qdrant 기반 벡터 프로바이더"""

    provider_name = "qdrant"

    def __init__(
        self,
        config: QdrantProviderConfig,
        client: Optional[QdrantClient] = None,
        client_factory: Callable[[QdrantProviderConfig], QdrantClient] = _default_client_factory,
    ):
        super().__init__()
        self.config = config
        self._client = client
        self._client_factory = client_factory

    async def _initialize(self) -> None:
        if self._client is None:
            self._client = await asyncio.to_thread(self._client_factory, self.config)

        # 연결 확인
        collections = await self._qdrant_call("get_collections")
        logger.info(
            "Qdrant 연결이 성공했습니다",
            collection=self.config.collection_name,
            collections_count=len(getattr(collections, "collections", []) or [])
        )

    # === 검색 ===

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        if self._client is None:
            raise ProviderNotInitializedError("qdrant client not initialized")
        if not options.query_vector:
            raise QueryVectorRequiredError(self.provider_name)

        limit = options.limit if options.limit > 0 else DEFAULT_LIMIT
        query_filter = self._qdrant_build_filter(options)

        response = await self._qdrant_call(
            "query_points",
            collection_name=self.config.collection_name,
            query=list(options.query_vector),
            query_filter=query_filter,
            limit=limit,
            with_payload=True,
        )

        results = []
        for point in response.points:
            content, metadata = split_source_text(point.payload or {})
            point_id = str(point.id)
            results.append(SearchResult(
                score=float(point.score or 0.0),
                file_id=point_id,
                file_name=metadata.get("file_name", point_id),
                content=content,
                metadata=metadata,
            ))

        if options.min_score > 0:
            results = [r for r in results if r.score >= options.min_score]

        logger.info(
            "Qdrant 벡터 검색 완료",
            query_preview=query[:50],
            collection=self.config.collection_name,
            filtered=query_filter is not None,
            result_count=len(results)
        )
        return results

    def _qdrant_build_filter(self, options: SearchOptions) -> Optional[Filter]:
        """SearchOptions를 Qdrant Filter로 변환"""
        conditions = []

        if options.date_filter:
            if self.config.date_filter_field:
                conditions.append(
                    FieldCondition(
                        key=self.config.date_filter_field,
                        match=MatchAny(any=list(options.date_filter))
                    )
                )
            else:
                logger.info("date_filter_field 미설정으로 날짜 필터 생략", provided_dates=options.date_filter)

        for key, value in options.metadata.items():
            conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))

        return Filter(must=conditions) if conditions else None

    # === 관리 작업 ===

    async def ingest_file(self, file_path: str, metadata: Optional[Dict[str, str]] = None) -> str:
        raise ProviderOperationNotSupportedError(self.provider_name, "ingest_file")

    async def ingest_files(
        self,
        file_paths: List[str],
        metadata: Optional[Dict[str, str]] = None
    ) -> List[str]:
        raise ProviderOperationNotSupportedError(self.provider_name, "ingest_files")

    async def delete_file(self, file_id: str) -> None:
        self._ensure_client()
        # 정수 포인트 ID는 검색/목록에서 문자열로 반환됨
        point_id = int(file_id) if file_id.isdigit() else file_id
        await self._qdrant_call(
            "delete",
            collection_name=self.config.collection_name,
            points_selector=PointIdsList(points=[point_id]),
        )
        logger.info("포인트 삭제 완료", point_id=file_id)

    async def list_files(self, limit: int = 100) -> List[FileInfo]:
        self._ensure_client()
        points, _ = await self._qdrant_call(
            "scroll",
            collection_name=self.config.collection_name,
            limit=limit,
            with_payload=True,
            with_vectors=False,
        )
        files = []
        for point in points:
            _, metadata = split_source_text(point.payload or {})
            point_id = str(point.id)
            files.append(FileInfo(
                file_id=point_id,
                file_name=metadata.get("file_name", point_id),
                metadata=metadata,
            ))
        return files

    async def get_stats(self) -> VectorStoreStats:
        self._ensure_client()
        info = await self._qdrant_call("get_collection", collection_name=self.config.collection_name)
        points_count = info.points_count or 0
        return VectorStoreStats(
            total_files=points_count,
            total_chunks=points_count,
            last_updated=datetime.now(timezone.utc),
        )

    async def close(self) -> None:
        if self._client is not None:
            logger.info("Qdrant 연결을 해제합니다")
            self._client.close()
            self._client = None

    # === 내부 헬퍼 함수 ===

    def _ensure_client(self) -> None:
        if self._client is None:
            raise ProviderNotInitializedError("qdrant client not initialized")

    async def _qdrant_call(self, operation: str, **kwargs) -> Any:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except (ResponseHandlingException, UnexpectedResponse) as e:
            logger.error("Qdrant 호출 실패", operation=operation, error=str(e))
            raise UpstreamError(f"qdrant {operation} failed: {e}") from e
