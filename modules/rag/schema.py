"""RAG 데이터 모델 정의

검색 옵션, 검색 결과, 질의 보강 결과, 저장소 통계 및
프로바이더별 설정 모델
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _dedupe(values: List[str]) -> List[str]:
    """순서를 유지하며 중복 제거"""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class SearchOptions(BaseModel):
    """벡터 검색 옵션"""
    limit: int = Field(default=20, description="최대 결과 수 (0 이하이면 백엔드 기본값)")
    metadata: Dict[str, str] = Field(default_factory=dict, description="메타데이터 동등 필터")
    date_filter: List[str] = Field(default_factory=list, description="YYYY-MM-DD 날짜 목록")
    query_vector: Optional[List[float]] = Field(None, description="질의 임베딩 벡터")
    min_score: float = Field(default=0.0, ge=0.0, description="최소 점수 (0이면 필터링 안 함)")


class SearchResult(BaseModel):
    """검색 결과 한 건"""
    score: float = Field(default=0.0, description="관련도 점수")
    file_id: str = Field(default="", description="파일 ID")
    file_name: str = Field(default="", description="파일 이름")
    content: str = Field(default="", description="본문 텍스트")
    metadata: Dict[str, str] = Field(default_factory=dict, description="문자열 메타데이터")
    highlights: List[str] = Field(default_factory=list, description="하이라이트 구절")


class MetadataFilters(BaseModel):
    """질의에서 추출한 메타데이터 필터"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    business_units: List[str] = Field(default_factory=list, description="사업부 태그")
    regions: List[str] = Field(default_factory=list, description="지역 태그")
    labels: List[str] = Field(default_factory=list, description="의미 라벨")
    generated_date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("generated_date", "GeneratedDate"),
        description="문서 생성 기준일 (YYYY-MM-DD)"
    )

    @field_validator("business_units", "regions", "labels", mode="before")
    @classmethod
    def validate_tag_list(cls, v: Any) -> List[str]:
        """null 허용, 단일 문자열은 목록으로 변환, 중복 제거"""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return _dedupe([str(item) for item in v])

    @field_validator("generated_date", mode="before")
    @classmethod
    def validate_generated_date(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class EnhancedQuery(BaseModel):
    """LLM 질의 보강 결과"""
    model_config = ConfigDict(extra="ignore")

    enhanced_query: str = Field(default="", description="검색용으로 보강된 질의")
    metadata_filters: MetadataFilters = Field(default_factory=MetadataFilters, description="추출된 필터")
    original_query: str = Field(default="", exclude=True, description="원본 질의 (LLM 응답에 포함되지 않음)")

    @field_validator("metadata_filters", mode="before")
    @classmethod
    def validate_metadata_filters(cls, v: Any) -> Any:
        return {} if v is None else v


class EmbeddingResult(BaseModel):
    """임베딩 생성 결과"""
    embedding: List[float] = Field(..., description="임베딩 벡터")
    tokens_used: int = Field(default=0, description="사용 토큰 수")
    model: str = Field(default="", description="임베딩 모델")


class VectorStoreStats(BaseModel):
    """벡터 저장소 통계"""
    total_files: int = Field(default=0, description="전체 파일 수")
    total_chunks: int = Field(default=0, description="전체 청크 수")
    processing_files: int = Field(default=0, description="처리 중 파일 수")
    failed_files: int = Field(default=0, description="실패 파일 수")
    storage_size_bytes: int = Field(default=0, description="저장 용량 (바이트)")
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="마지막 갱신 시각"
    )


class FileInfo(BaseModel):
    """저장소에 적재된 파일 정보"""
    file_id: str = Field(..., description="파일 ID")
    file_name: str = Field(default="", description="파일 이름")
    size_bytes: int = Field(default=0, description="파일 크기")
    status: str = Field(default="ready", description="ready | processing | failed")
    created_at: Optional[datetime] = Field(None, description="적재 시각")
    metadata: Dict[str, str] = Field(default_factory=dict, description="메타데이터")


# === 프로바이더 설정 ===

class ProviderConfig(BaseModel):
    """프로바이더 공통 설정"""
    model_config = ConfigDict(extra="ignore")

    provider: str = Field(..., description="프로바이더 이름")
    date_filter_field: Optional[str] = Field(None, description="날짜 필터를 적용할 메타데이터 필드")

    @field_validator("date_filter_field", mode="before")
    @classmethod
    def validate_date_filter_field(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class SimpleProviderConfig(ProviderConfig):
    """인메모리 프로바이더 설정"""
    provider: str = Field(default="simple", description="프로바이더 이름")


class S3ProviderConfig(ProviderConfig):
    """S3 Vectors 프로바이더 설정"""
    provider: str = Field(default="s3", description="프로바이더 이름")
    bucket_name: str = Field(..., description="벡터 버킷 이름")
    index_name: str = Field(default="default", description="벡터 인덱스 이름")
    region: str = Field(default="us-east-1", description="AWS 리전")

    @field_validator("bucket_name")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("bucket_name is required in S3 provider config")
        return v.strip()

    @field_validator("index_name", "region", mode="before")
    @classmethod
    def validate_optional_names(cls, v: Any, info) -> Any:
        """빈 값은 기본값으로 대체"""
        if v is None or (isinstance(v, str) and not v.strip()):
            return cls.model_fields[info.field_name].default
        return v


class QdrantProviderConfig(ProviderConfig):
    """Qdrant 프로바이더 설정"""
    provider: str = Field(default="qdrant", description="프로바이더 이름")
    url: str = Field(default="http://localhost:6333", description="Qdrant 서버 URL")
    collection_name: str = Field(default="documents", description="컬렉션 이름")
    api_key: Optional[str] = Field(None, description="Qdrant API 키")
    timeout: int = Field(default=30, description="요청 타임아웃(초)")


class RAGConfig(BaseModel):
    """오케스트레이터 설정"""
    model_config = ConfigDict(extra="ignore")

    max_results: int = Field(default=20, gt=0, description="검색 최대 결과 수")
    date_field: str = Field(default="report_generated_date", description="결과 정렬 기준 날짜 필드")
    date_window_days: int = Field(default=7, ge=1, description="날짜 필터 확장 일수")

    @field_validator("max_results", mode="before")
    @classmethod
    def validate_max_results(cls, v: Any) -> Any:
        """정수로 떨어지는 실수 허용 (JSON 숫자)"""
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v
