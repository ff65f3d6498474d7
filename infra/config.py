"""
RAG 클라이언트 전역 설정 및 환경변수 관리

Pydantic Settings를 사용한 타입 안전한 설정 관리
"""

from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """애플리케이션 전역 설정"""

    # 애플리케이션 기본 설정
    app_name: str = Field(default="ragclient", description="애플리케이션 이름")
    app_version: str = Field(default="0.1.0", description="애플리케이션 버전")
    app_environment: str = Field(default="development", description="실행 환경")
    app_log_level: str = Field(default="INFO", description="로그 레벨")

    # API 설정
    api_host: str = Field(default="0.0.0.0", description="API 호스트")
    api_port: int = Field(default=8000, description="API 포트")

    # RAG 설정
    rag_provider: str = Field(default="simple", description="벡터 프로바이더 (simple, s3, qdrant)")
    rag_max_results: int = Field(default=20, description="검색 최대 결과 수")
    rag_date_field: str = Field(default="report_generated_date", description="결과 정렬 기준 날짜 필드")
    rag_date_window_days: int = Field(default=7, description="날짜 필터 확장 일수")
    rag_enable_query_enhancement: bool = Field(default=False, description="LLM 질의 보강 활성화")
    rag_enable_tracing: bool = Field(default=False, description="스팬 트레이싱 활성화")
    rag_date_filter_field: Optional[str] = Field(
        default=None,
        description="백엔드에서 날짜 필터를 적용할 메타데이터 필드"
    )

    # S3 Vectors 설정
    s3_vector_bucket: str = Field(default="", description="S3 벡터 버킷 이름")
    s3_vector_index: str = Field(default="default", description="S3 벡터 인덱스 이름")
    aws_region: str = Field(default="us-east-1", description="AWS 리전")

    # Qdrant 설정
    qdrant_url: str = Field(default="http://localhost:6333", description="Qdrant 서버 URL")
    qdrant_api_key: Optional[str] = Field(default=None, description="Qdrant API 키")
    qdrant_collection_name: str = Field(default="documents", description="Qdrant 컬렉션명")
    qdrant_timeout: int = Field(default=30, description="Qdrant 요청 타임아웃(초)")

    # 임베딩 설정
    embedding_provider: Optional[str] = Field(default=None, description="임베딩 프로바이더 (voyage)")
    voyage_api_key: str = Field(default="", description="Voyage AI API 키")

    # OpenAI API 설정 (질의 보강용)
    openai_api_key: str = Field(default="", description="OpenAI API 키")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI 채팅 모델")
    openai_timeout: float = Field(default=30.0, description="OpenAI 요청 타임아웃(초)")

    # 로깅 설정
    log_format: str = Field(default="console", description="로그 형식 (json, console)")
    log_file_path: str = Field(default="", description="로그 파일 경로 (비어있으면 파일 로그 없음)")
    log_file_max_size: str = Field(default="10MB", description="로그 파일 최대 크기")
    log_file_backup_count: int = Field(default=5, description="로그 파일 백업 개수")
    log_console_enabled: bool = Field(default=True, description="콘솔 로그 활성화")

    @field_validator("app_environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """환경 설정 검증"""
        valid_environments = ["development", "testing", "staging", "production"]
        if v not in valid_environments:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_environments}")
        return v

    @field_validator("app_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 검증"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """로그 형식 검증"""
        if v.lower() not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}. Must be json or console")
        return v.lower()

    @field_validator("rag_provider")
    @classmethod
    def validate_rag_provider(cls, v: str) -> str:
        return v.strip().lower()

    def rag_provider_config(self) -> Dict[str, Any]:
        """벡터 프로바이더 레지스트리에 전달할 설정"""
        config: Dict[str, Any] = {
            "provider": self.rag_provider,
            "date_filter_field": self.rag_date_filter_field,
        }
        if self.rag_provider == "s3":
            config.update(
                bucket_name=self.s3_vector_bucket,
                index_name=self.s3_vector_index,
                region=self.aws_region,
            )
        elif self.rag_provider == "qdrant":
            config.update(
                url=self.qdrant_url,
                api_key=self.qdrant_api_key,
                collection_name=self.qdrant_collection_name,
                timeout=self.qdrant_timeout,
            )
        return config

    @property
    def is_production(self) -> bool:
        """프로덕션 환경 여부"""
        return self.app_environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 전역 설정 인스턴스
settings = Settings()


def get_settings() -> Settings:
    """설정 인스턴스 반환 (의존성 주입용)"""
    return settings
