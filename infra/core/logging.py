"""
RAG 클라이언트 로깅 설정 및 초기화

structlog 기반 구조화 로깅. 콘솔(컬러) 또는 JSON 출력, 선택적 파일 로테이션
infra/core 아키텍쳐 지침: 연결, 초기화, 설정만 담당
"""

import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.processors import JSONRenderer
from structlog.stdlib import LoggerFactory
import colorama
from colorama import Fore, Style

from ..config import Settings, get_settings

# 컬러 초기화
colorama.init(autoreset=True)

# 외부 라이브러리 로그 레벨
EXTERNAL_LOGGERS = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "openai": "WARNING",
    "botocore": "WARNING",
    "boto3": "WARNING",
    "urllib3": "WARNING",
    "qdrant_client": "WARNING",
    "fastapi": "INFO",
    "uvicorn": "INFO",
}


def setup_logging(config: Optional[Settings] = None) -> None:
    """로깅 시스템을 초기화합니다."""
    config = config or get_settings()

    log_level = getattr(logging, config.app_log_level)

    # 기본 로깅 설정
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=_get_handlers(config),
        force=True,
    )

    # Structlog 설정
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _get_renderer(config),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configure_external_loggers()

    logger = get_logger(__name__)
    logger.info(
        "로깅 시스템이 초기화되었습니다",
        log_level=config.app_log_level,
        log_format=config.log_format,
        log_file=config.log_file_path or None,
        console_enabled=config.log_console_enabled
    )


def _get_handlers(config: Settings) -> List[logging.Handler]:
    """로깅 핸들러를 생성합니다."""
    handlers: List[logging.Handler] = []

    # 파일 핸들러
    if config.log_file_path:
        log_path = Path(config.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            filename=log_path,
            maxBytes=_parse_size(config.log_file_max_size),
            backupCount=config.log_file_backup_count,
            encoding="utf-8"
        ))

    # 콘솔 핸들러
    if config.log_console_enabled:
        handlers.append(logging.StreamHandler(sys.stdout))

    # 출력 대상이 없으면 로그 폐기
    if not handlers:
        handlers.append(logging.NullHandler())

    return handlers


def _get_renderer(config: Settings):
    """로그 렌더러를 반환합니다."""
    if config.log_format == "json":
        return JSONRenderer(ensure_ascii=False, default=str)
    return ColoredConsoleRenderer()


def _parse_size(size_str: str) -> int:
    """크기 문자열을 바이트로 변환합니다."""
    size_str = size_str.strip().upper()
    units = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}
    for suffix, multiplier in units.items():
        if size_str.endswith(suffix):
            return int(size_str[:-2]) * multiplier
    return int(size_str)


def _configure_external_loggers() -> None:
    """외부 라이브러리의 로거 레벨을 조정합니다."""
    for logger_name, level in EXTERNAL_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, level))


class ColoredConsoleRenderer:
    """개발 환경용 컬러 콘솔 렌더러"""

    LEVEL_COLORS = {
        "debug": Fore.CYAN,
        "info": Fore.GREEN,
        "warning": Fore.YELLOW,
        "error": Fore.RED,
        "critical": Fore.MAGENTA + Style.BRIGHT,
    }

    def __call__(self, logger, method_name, event_dict):
        """로그를 컬러로 렌더링합니다."""
        level = event_dict.pop("level", method_name or "info").lower()
        color = self.LEVEL_COLORS.get(level, "")

        timestamp = event_dict.pop("timestamp", "")
        logger_name = event_dict.pop("logger", "")
        message = event_dict.pop("event", "")
        exception = event_dict.pop("exception", None)

        parts = []
        if timestamp:
            parts.append(f"{Fore.BLUE}{timestamp[:19]}{Style.RESET_ALL}")
        if logger_name:
            parts.append(f"{Fore.MAGENTA}{logger_name}{Style.RESET_ALL}")
        parts.append(f"{color}[{level.upper()}]{Style.RESET_ALL}")
        if message:
            parts.append(f"{color}{message}{Style.RESET_ALL}")

        result = " | ".join(parts)

        # 나머지 키는 컨텍스트로 출력
        if event_dict:
            context_str = " ".join(f"{k}={v}" for k, v in event_dict.items())
            result += f" {Fore.WHITE}{context_str}{Style.RESET_ALL}"

        if exception:
            result += f"\n{exception}"

        return result


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """구조화된 로거를 반환합니다."""
    return structlog.get_logger(name)
