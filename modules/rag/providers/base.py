"""벡터 저장소 프로바이더 기반 클래스

모든 백엔드는 VectorProvider를 상속하고 _initialize()에 1회성 준비 작업을 구현
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..exceptions import ProviderInitializationError, ProviderOperationNotSupportedError
from ..schema import FileInfo, SearchOptions, SearchResult, VectorStoreStats

logger = structlog.get_logger(__name__)

# 본문 텍스트를 담는 예약 메타데이터 필드
SOURCE_TEXT_FIELD = "source_text"


def stringify_metadata_value(value: Any) -> str:
    """메타데이터 값을 문자열로 변환 (목록/객체는 JSON)"""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def split_source_text(raw: Dict[str, Any]) -> Tuple[str, Dict[str, str]]:
    """예약 필드를 본문으로 분리하고 나머지 값을 문자열화"""
    content = ""
    metadata: Dict[str, str] = {}
    for key, value in raw.items():
        if key == SOURCE_TEXT_FIELD:
            content = value if isinstance(value, str) else stringify_metadata_value(value)
        elif value is not None:
            metadata[key] = stringify_metadata_value(value)
    return content, metadata


class VectorProvider(ABC):
    """벡터 저장소 프로바이더 인터페이스

    initialize()는 동시 호출되더라도 준비 작업을 정확히 한 번만 수행하며
    실패 결과도 캐시하여 이후 모든 호출자에게 동일한 오류를 보고
    """

    provider_name: str = "base"

    def __init__(self):
        self._init_lock = asyncio.Lock()
        self._init_done = False
        self._init_error: Optional[ProviderInitializationError] = None

    @property
    def initialized(self) -> bool:
        return self._init_done and self._init_error is None

    async def initialize(self) -> None:
        """1회성 초기화 (이중 확인 잠금)"""
        if self._init_done:
            self._raise_cached_init_error()
            return

        async with self._init_lock:
            if not self._init_done:
                try:
                    await self._initialize()
                    logger.info("벡터 프로바이더 초기화 완료", provider=self.provider_name)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("벡터 프로바이더 초기화 실패", provider=self.provider_name, error=str(e))
                    self._init_error = ProviderInitializationError(
                        f"failed to initialize {self.provider_name} provider: {e}"
                    )
                    self._init_error.__cause__ = e
                self._init_done = True

        self._raise_cached_init_error()

    def _raise_cached_init_error(self) -> None:
        if self._init_error is not None:
            raise self._init_error

    async def _initialize(self) -> None:
        """백엔드별 준비 작업 (기본: 없음)"""

    # === 검색 및 관리 작업 ===

    @abstractmethod
    async def search(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """질의에 대한 유사 문서 검색"""

    async def ingest_file(self, file_path: str, metadata: Optional[Dict[str, str]] = None) -> str:
        raise ProviderOperationNotSupportedError(self.provider_name, "ingest_file")

    async def ingest_files(
        self,
        file_paths: List[str],
        metadata: Optional[Dict[str, str]] = None
    ) -> List[str]:
        """파일 여러 개 적재 (순차 처리, 첫 실패에서 중단)"""
        file_ids = []
        for file_path in file_paths:
            file_ids.append(await self.ingest_file(file_path, metadata))
        return file_ids

    async def delete_file(self, file_id: str) -> None:
        raise ProviderOperationNotSupportedError(self.provider_name, "delete_file")

    async def list_files(self, limit: int = 100) -> List[FileInfo]:
        raise ProviderOperationNotSupportedError(self.provider_name, "list_files")

    @abstractmethod
    async def get_stats(self) -> VectorStoreStats:
        """저장소 통계 조회"""

    async def close(self) -> None:
        """보유한 클라이언트 해제"""
