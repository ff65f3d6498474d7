"""
벡터 저장소 백엔드 클라이언트 생성

S3 Vectors(boto3)와 Qdrant 클라이언트 연결 생성만 담당
infra 아키텍쳐 지침: 연결, 초기화, 설정 담당. 검색 로직은 modules/rag/providers
"""

from typing import Any, Optional

import boto3
import structlog
from botocore.config import Config as BotoConfig
from qdrant_client import QdrantClient

logger = structlog.get_logger(__name__)


def create_s3vectors_client(region: str, *, max_attempts: int = 1) -> Any:
    """S3 Vectors 클라이언트를 생성합니다.

    자격 증명은 boto3 기본 체인(환경변수, 프로파일, 인스턴스 역할)을 따르며
    SDK 자체 재시도는 max_attempts로 제한합니다.
    """
    logger.info("S3 Vectors 클라이언트를 생성합니다", region=region)
    return boto3.client(
        "s3vectors",
        region_name=region,
        config=BotoConfig(retries={"max_attempts": max_attempts, "mode": "standard"}),
    )


def create_qdrant_client(
    url: str,
    *,
    api_key: Optional[str] = None,
    timeout: int = 30,
) -> QdrantClient:
    """Qdrant 클라이언트를 생성합니다."""
    logger.info("Qdrant 연결을 시작합니다", url=url)
    return QdrantClient(
        url=url,
        api_key=api_key,
        timeout=timeout,
        prefer_grpc=False,  # HTTP API 사용
        check_compatibility=False  # 버전 호환성 체크 비활성화
    )
