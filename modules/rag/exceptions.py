"""RAG 모듈 예외 정의

호출자 오류, 설정 오류, 외부 서비스 오류를 구분하여 처리할 수 있도록
공통 기반 클래스 RAGError 아래에 계층화
"""


class RAGError(Exception):
    """RAG 모듈 공통 예외"""


class ValidationError(RAGError, ValueError):
    """잘못된 호출 인자 (누락, 공백, 형식 오류)"""


class QueryVectorRequiredError(ValidationError):
    """질의 벡터가 필요한 백엔드에 벡터 없이 검색 요청"""

    def __init__(self, provider: str):
        super().__init__(f"query vector required in search options for {provider} provider")
        self.provider = provider


class ConfigurationError(RAGError):
    """지원하지 않는 프로바이더 또는 필수 설정 누락"""


class ProviderInitializationError(ConfigurationError):
    """프로바이더 1회 초기화 실패 (이후 모든 호출자에게 동일하게 보고)"""


class UpstreamError(RAGError):
    """외부 서비스 호출 실패 (HTTP 상태, 응답 형식, SDK 오류)"""


class ProviderNotInitializedError(UpstreamError):
    """백엔드 클라이언트가 준비되지 않은 상태에서 호출"""


class ProviderOperationNotSupportedError(RAGError):
    """백엔드가 지원하지 않는 작업"""

    def __init__(self, provider: str, operation: str):
        super().__init__(f"{operation} is not supported by the {provider} provider")
        self.provider = provider
        self.operation = operation


class EnhancementError(RAGError):
    """LLM 질의 보강 실패"""
