"""인메모리 벡터 프로바이더

외부 백엔드 없이 프로세스 내부에서 문서를 보관하고 검색
질의 벡터와 문서 벡터가 있으면 코사인 유사도, 없으면 키워드 일치율로 점수 계산
"""

import asyncio
import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..exceptions import ValidationError
from ..schema import FileInfo, SearchOptions, SearchResult, SimpleProviderConfig, VectorStoreStats
from .base import VectorProvider, split_source_text, stringify_metadata_value

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 20
MAX_HIGHLIGHTS = 3

_TERM_PATTERN = re.compile(r"\w+", re.UNICODE)


@dataclass
class StoredDocument:
    """저장된 문서 (단일 청크)"""
    file_id: str
    file_name: str
    content: str
    metadata: Dict[str, str] = field(default_factory=dict)
    vector: Optional[List[float]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


def _cosine_similarity(a: List[float], b: List[float]) -> float:
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


def _query_terms(query: str) -> List[str]:
    terms = []
    for term in _TERM_PATTERN.findall(query.lower()):
        if term not in terms:
            terms.append(term)
    return terms


class SimpleVectorProvider(VectorProvider):
    """프로세스 내부 문서 저장소"""

    provider_name = "simple"

    def __init__(self, config: Optional[SimpleProviderConfig] = None):
        super().__init__()
        self.config = config or SimpleProviderConfig()
        self._documents: Dict[str, StoredDocument] = {}
        self._last_updated = datetime.now(timezone.utc)

    # === 문서 적재 ===

    def add_document(
        self,
        content: str,
        *,
        file_name: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        vector: Optional[List[float]] = None,
        file_id: Optional[str] = None,
    ) -> str:
        """문서를 직접 등록하고 파일 ID 반환

        metadata에 source_text가 있으면 본문으로 사용
        """
        text, clean_metadata = split_source_text(metadata or {})
        document = StoredDocument(
            file_id=file_id or uuid.uuid4().hex,
            file_name=file_name,
            content=content or text,
            metadata=clean_metadata,
            vector=list(vector) if vector else None,
        )
        self._documents[document.file_id] = document
        self._last_updated = datetime.now(timezone.utc)
        return document.file_id

    async def ingest_file(self, file_path: str, metadata: Optional[Dict[str, str]] = None) -> str:
        path = Path(file_path)
        if not path.is_file():
            raise ValidationError(f"file not found: {file_path}")

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ValidationError(f"failed to read file {file_path}: {e}") from e

        file_id = self.add_document(
            content,
            file_name=path.name,
            metadata={k: stringify_metadata_value(v) for k, v in (metadata or {}).items()},
        )
        logger.info("파일 적재 완료", provider=self.provider_name, file_id=file_id, file_name=path.name)
        return file_id

    # === 검색 ===

    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """키워드 또는 벡터 유사도 검색"""
        terms = _query_terms(query)
        limit = options.limit if options.limit > 0 else DEFAULT_LIMIT
        date_filter = set(options.date_filter)

        candidates: List[SearchResult] = []
        for document in self._documents.values():
            if not self._matches_filters(document, options.metadata, date_filter):
                continue

            if options.query_vector and document.vector:
                score = _cosine_similarity(options.query_vector, document.vector)
            else:
                score = self._keyword_score(document.content, terms)
            if score <= 0:
                continue

            candidates.append(SearchResult(
                score=score,
                file_id=document.file_id,
                file_name=document.file_name,
                content=document.content,
                metadata=dict(document.metadata),
                highlights=self._highlights(document.content, terms),
            ))

        candidates.sort(key=lambda r: r.score, reverse=True)
        results = candidates[:limit]
        if options.min_score > 0:
            results = [r for r in results if r.score >= options.min_score]

        logger.debug("인메모리 검색 완료", query_terms=len(terms), result_count=len(results))
        return results

    def _matches_filters(
        self,
        document: StoredDocument,
        metadata_filter: Dict[str, str],
        date_filter: set,
    ) -> bool:
        for key, value in metadata_filter.items():
            if document.metadata.get(key) != value:
                return False
        if date_filter and self.config.date_filter_field:
            if document.metadata.get(self.config.date_filter_field) not in date_filter:
                return False
        return True

    @staticmethod
    def _keyword_score(content: str, terms: List[str]) -> float:
        if not terms:
            return 0.0
        content_terms = set(_TERM_PATTERN.findall(content.lower()))
        matched = sum(1 for term in terms if term in content_terms)
        return matched / len(terms)

    @staticmethod
    def _highlights(content: str, terms: List[str]) -> List[str]:
        highlights = []
        for line in content.splitlines():
            line = line.strip()
            if not line:
                continue
            line_terms = set(_TERM_PATTERN.findall(line.lower()))
            if any(term in line_terms for term in terms):
                highlights.append(line)
                if len(highlights) >= MAX_HIGHLIGHTS:
                    break
        return highlights

    # === 관리 작업 ===

    async def delete_file(self, file_id: str) -> None:
        if self._documents.pop(file_id, None) is None:
            raise ValidationError(f"file not found: {file_id}")
        self._last_updated = datetime.now(timezone.utc)
        logger.info("파일 삭제 완료", provider=self.provider_name, file_id=file_id)

    async def list_files(self, limit: int = 100) -> List[FileInfo]:
        documents = sorted(self._documents.values(), key=lambda d: d.created_at, reverse=True)
        return [
            FileInfo(
                file_id=d.file_id,
                file_name=d.file_name,
                size_bytes=d.size_bytes,
                created_at=d.created_at,
                metadata=dict(d.metadata),
            )
            for d in documents[:limit]
        ]

    async def get_stats(self) -> VectorStoreStats:
        return VectorStoreStats(
            total_files=len(self._documents),
            total_chunks=len(self._documents),
            storage_size_bytes=sum(d.size_bytes for d in self._documents.values()),
            last_updated=self._last_updated,
        )
