"""S3 Vectors 프로바이더

AWS S3 Vectors 인덱스에 미리 계산된 질의 벡터로 유사도 검색을 수행
문서 적재는 외부 파이프라인이 담당하므로 지원하지 않음
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from infra.vector_store import create_s3vectors_client

from ..exceptions import (
    ProviderNotInitializedError,
    ProviderOperationNotSupportedError,
    QueryVectorRequiredError,
    UpstreamError,
)
from ..schema import FileInfo, S3ProviderConfig, SearchOptions, SearchResult, VectorStoreStats
from .base import VectorProvider, split_source_text

logger = structlog.get_logger(__name__)

DEFAULT_TOP_K = 7
LIST_PAGE_SIZE = 500


def distance_to_score(distance: Optional[float]) -> float:
    """거리 → 점수 변환 (거리 미제공 시 1.0)"""
    if distance is None:
        return 1.0
    return 1.0 / (1.0 + float(distance))


def _decode_metadata(raw: Any) -> Dict[str, Any]:
    """히트 메타데이터 문서를 dict로 변환"""
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        raise TypeError(f"metadata must be an object, got {type(raw).__name__}")
    return raw


class S3VectorProvider(VectorProvider):
    """S3 Vectors 기반 벡터 프로바이더"""

    provider_name = "s3"

    def __init__(
        self,
        config: S3ProviderConfig,
        client: Any = None,
        client_factory: Callable[[str], Any] = create_s3vectors_client,
    ):
        super().__init__()
        self.config = config
        self._client = client
        self._client_factory = client_factory

    async def _initialize(self) -> None:
        if self._client is None:
            self._client = await asyncio.to_thread(self._client_factory, self.config.region)
        logger.debug(
            "S3 Vectors 프로바이더 준비",
            bucket=self.config.bucket_name,
            index=self.config.index_name,
            region=self.config.region
        )

    # === 검색 ===

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """미리 계산된 질의 벡터로 유사도 검색

        Args:
            query: 원본 질의 (로그용)
            options: 검색 옵션 (query_vector 필수)

        Returns:
            점수가 부여된 검색 결과 목록
        """
        if self._client is None:
            raise ProviderNotInitializedError("s3 vectors client not initialized")
        if not options.query_vector:
            raise QueryVectorRequiredError(self.provider_name)

        request: Dict[str, Any] = {
            "vectorBucketName": self.config.bucket_name,
            "indexName": self.config.index_name,
            "queryVector": {"float32": list(options.query_vector)},
            "topK": options.limit if options.limit > 0 else DEFAULT_TOP_K,
            "returnDistance": True,
            "returnMetadata": True,
        }
        filter_document = self._s3_build_filter(options)
        if filter_document:
            request["filter"] = filter_document

        response = await self._s3_call("query_vectors", **request)

        results: List[SearchResult] = []
        for hit in response.get("vectors", []):
            key = hit.get("key", "")
            score = distance_to_score(hit.get("distance"))

            try:
                raw_metadata = _decode_metadata(hit.get("metadata"))
            except (TypeError, ValueError) as e:
                logger.error("벡터 메타데이터 해석 실패, 결과 제외", vector_key=key, score=score, error=str(e))
                continue

            content, metadata = split_source_text(raw_metadata)
            results.append(SearchResult(
                score=score,
                file_id=key,
                file_name=key,
                content=content,
                metadata=metadata,
            ))

        if options.min_score > 0:
            results = [r for r in results if r.score >= options.min_score]

        logger.info(
            "S3 벡터 검색 완료",
            query_preview=query[:50],
            top_k=request["topK"],
            filtered=bool(filter_document),
            result_count=len(results)
        )
        return results

    def _s3_build_filter(self, options: SearchOptions) -> Dict[str, Any]:
        """날짜 필드가 설정된 경우에만 $in 조건 추가, 나머지는 동등 조건"""
        filter_document: Dict[str, Any] = {}

        if options.date_filter:
            field = self.config.date_filter_field
            if field:
                filter_document[field] = {"$in": list(options.date_filter)}
                logger.debug("날짜 필터 적용", field=field, dates=options.date_filter)
            else:
                logger.info("date_filter_field 미설정으로 날짜 필터 생략", provided_dates=options.date_filter)

        for key, value in options.metadata.items():
            filter_document[key] = value

        return filter_document

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
        await self._s3_call(
            "delete_vectors",
            vectorBucketName=self.config.bucket_name,
            indexName=self.config.index_name,
            keys=[file_id],
        )
        logger.info("벡터 삭제 완료", vector_key=file_id)

    async def list_files(self, limit: int = 100) -> List[FileInfo]:
        self._ensure_client()
        response = await self._s3_call(
            "list_vectors",
            vectorBucketName=self.config.bucket_name,
            indexName=self.config.index_name,
            maxResults=max(1, min(limit, LIST_PAGE_SIZE)),
            returnMetadata=True,
        )

        files = []
        for vector in response.get("vectors", [])[:limit]:
            try:
                raw_metadata = _decode_metadata(vector.get("metadata"))
            except (TypeError, ValueError) as e:
                logger.warning("벡터 메타데이터 해석 실패", vector_key=vector.get("key"), error=str(e))
                raw_metadata = {}
            _, metadata = split_source_text(raw_metadata)
            files.append(FileInfo(file_id=vector.get("key", ""), file_name=vector.get("key", ""), metadata=metadata))
        return files

    async def get_stats(self) -> VectorStoreStats:
        """인덱스 전체를 페이지 단위로 순회하여 벡터 수 집계"""
        self._ensure_client()

        vector_count = 0
        doc_ids = set()
        next_token: Optional[str] = None
        while True:
            request: Dict[str, Any] = {
                "vectorBucketName": self.config.bucket_name,
                "indexName": self.config.index_name,
                "maxResults": LIST_PAGE_SIZE,
                "returnMetadata": True,
            }
            if next_token:
                request["nextToken"] = next_token

            response = await self._s3_call("list_vectors", **request)
            for vector in response.get("vectors", []):
                vector_count += 1
                try:
                    doc_id = _decode_metadata(vector.get("metadata")).get("doc_id")
                except (TypeError, ValueError):
                    doc_id = None
                if doc_id:
                    doc_ids.add(str(doc_id))

            next_token = response.get("nextToken")
            if not next_token:
                break

        return VectorStoreStats(
            total_files=len(doc_ids) if doc_ids else vector_count,
            total_chunks=vector_count,
            last_updated=datetime.now(timezone.utc),
        )

    async def close(self) -> None:
        self._client = None

    # === 내부 헬퍼 함수 ===

    def _ensure_client(self) -> None:
        if self._client is None:
            raise ProviderNotInitializedError("s3 vectors client not initialized")

    async def _s3_call(self, operation: str, **kwargs) -> Dict[str, Any]:
        """SDK 호출을 작업 스레드에서 실행하고 오류를 UpstreamError로 변환"""
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 Vectors 호출 실패", operation=operation, error=str(e))
            raise UpstreamError(f"failed to {operation.replace('_', ' ')}: {e}") from e
