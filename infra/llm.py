"""
LLM 프로바이더 연결 관리

채팅 완성 API 어댑터와 주 프로바이더 레지스트리
infra 아키텍쳐 지침: 연결, 초기화 담당. 프롬프트 구성은 modules에서 처리
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import openai
import structlog

logger = structlog.get_logger(__name__)


class LLMProvider(ABC):
    """채팅 완성 프로바이더 인터페이스"""

    name: str = "base"

    @abstractmethod
    async def generate_chat_completion(self, messages: List[Dict[str, str]], **options) -> str:
        """메시지 목록에 대한 응답 텍스트 반환"""

    async def close(self) -> None:
        """클라이언트 해제"""


class OpenAILLMProvider(LLMProvider):
    """OpenAI 채팅 완성 어댑터"""

    name = "openai"

    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.model = model
        self._client = client or openai.AsyncOpenAI(api_key=api_key, timeout=timeout)
        logger.info("OpenAI API 클라이언트 초기화가 완료되었습니다", model=model)

    async def generate_chat_completion(self, messages: List[Dict[str, str]], **options) -> str:
        response = await self._client.chat.completions.create(
            model=options.pop("model", self.model),
            messages=messages,
            **options
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        logger.info("OpenAI 클라이언트를 해제합니다")
        await self._client.close()


class LLMProviderRegistry:
    """LLM 프로바이더 레지스트리 (첫 등록 또는 primary 지정 프로바이더가 주 프로바이더)"""

    def __init__(self):
        self._providers: Dict[str, LLMProvider] = {}
        self._primary: Optional[str] = None
        self._lock = threading.Lock()

    def register(self, provider: LLMProvider, *, primary: bool = False) -> None:
        with self._lock:
            self._providers[provider.name] = provider
            if primary or self._primary is None:
                self._primary = provider.name
        logger.debug("LLM 프로바이더 등록", provider=provider.name, primary=self._primary == provider.name)

    def get_primary_provider(self) -> LLMProvider:
        """주 프로바이더 반환"""
        with self._lock:
            if self._primary is None:
                raise RuntimeError("등록된 LLM 프로바이더가 없습니다")
            return self._providers[self._primary]

    async def close(self) -> None:
        for provider in list(self._providers.values()):
            await provider.close()
