"""
RAG 클라이언트 코어 인프라 모듈

설정 및 로깅 초기화
"""

from ..config import settings, get_settings
from .logging import setup_logging, get_logger

__all__ = [
    # 설정
    "settings",
    "get_settings",

    # 로깅
    "setup_logging",
    "get_logger",
]
