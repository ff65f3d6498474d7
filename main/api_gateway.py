"""API 게이트웨이

FastAPI를 사용한 RAG 도구 호출 REST 엔드포인트
rag_search, rag_ingest, rag_stats를 POST /api/v1/rag/tools/{tool_name}으로 노출
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import structlog

from infra.config import get_settings
from infra.core import setup_logging
from modules.rag import (
    TOOL_NAMES,
    ConfigurationError,
    ProviderOperationNotSupportedError,
    RAGOrchestrator,
    UpstreamError,
    ValidationError,
    build_rag_orchestrator,
)

logger = structlog.get_logger(__name__)


class ToolCallResponse(BaseModel):
    """도구 호출 응답"""
    tool: str = Field(..., description="호출된 도구 이름")
    result: str = Field(..., description="결과 텍스트")


class ToolListResponse(BaseModel):
    """사용 가능한 도구 목록"""
    tools: List[str] = Field(..., description="도구 이름 목록")


def _error_response(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": str(exc),
            "type": type(exc).__name__
        }
    )


def create_app(orchestrator: Optional[RAGOrchestrator] = None) -> FastAPI:
    """FastAPI 앱 생성

    Args:
        orchestrator: 사용할 오케스트레이터 (없으면 시작 시 설정으로부터 구성)

    Returns:
        FastAPI 앱
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """애플리케이션 수명 주기 관리"""
        owns_orchestrator = getattr(app.state, "orchestrator", None) is None
        if owns_orchestrator:
            app.state.orchestrator = build_rag_orchestrator(get_settings())
        logger.info("API Gateway 시작", provider=app.state.orchestrator.provider.provider_name)
        yield
        if owns_orchestrator:
            await app.state.orchestrator.close()
            app.state.orchestrator = None
        logger.info("API Gateway 종료")

    settings = get_settings()
    app = FastAPI(
        title="RAG Client API",
        description="RAG 검색 도구 호출 서비스",
        version=settings.app_version,
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === 예외 처리 핸들러 ===

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", exc)

    @app.exception_handler(ProviderOperationNotSupportedError)
    async def not_supported_handler(request: Request, exc: ProviderOperationNotSupportedError):
        return _error_response(status.HTTP_501_NOT_IMPLEMENTED, "Operation not supported", exc)

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        logger.error("외부 서비스 오류", error=str(exc), path=request.url.path)
        return _error_response(status.HTTP_502_BAD_GATEWAY, "Upstream service error", exc)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("설정 오류", error=str(exc), path=request.url.path)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Configuration error", exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """일반 예외 처리"""
        logger.error("처리되지 않은 예외", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred"
            }
        )

    # === 엔드포인트 ===

    @app.get("/")
    async def root():
        """API 루트 정보"""
        return {
            "service": "RAG Client API",
            "version": settings.app_version,
            "status": "active",
            "endpoints": {
                "tools": "/api/v1/rag/tools",
                "call_tool": "/api/v1/rag/tools/{tool_name}",
                "health": "/health"
            }
        }

    @app.get("/health")
    async def health(request: Request):
        """상태 확인"""
        orchestrator: RAGOrchestrator = request.app.state.orchestrator
        return {
            "status": "healthy",
            "provider": orchestrator.provider.provider_name,
            "initialized": orchestrator.provider.initialized,
        }

    @app.get("/api/v1/rag/tools", response_model=ToolListResponse, summary="도구 목록")
    async def list_tools() -> ToolListResponse:
        return ToolListResponse(tools=list(TOOL_NAMES))

    @app.post("/api/v1/rag/tools/{tool_name}", response_model=ToolCallResponse, summary="도구 호출")
    async def call_tool(
        tool_name: str,
        request: Request,
        arguments: Optional[Dict[str, Any]] = Body(default=None),
    ) -> ToolCallResponse:
        """RAG 도구 호출 엔드포인트

        Args:
            tool_name: rag_search | rag_ingest | rag_stats
            arguments: 도구 인자 (JSON 객체)

        Returns:
            결과 텍스트
        """
        orchestrator: RAGOrchestrator = request.app.state.orchestrator
        logger.info("도구 호출 요청 수신", tool=tool_name, arguments=sorted((arguments or {}).keys()))

        result = await orchestrator.call_tool(tool_name, arguments or {})

        logger.info("도구 호출 응답 전송", tool=tool_name, result_length=len(result))
        return ToolCallResponse(tool=tool_name, result=result)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    settings = get_settings()
    uvicorn.run(
        "main.api_gateway:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.app_log_level.lower()
    )
