"""벡터 프로바이더 레지스트리

이름 → 생성 함수 매핑. 전역 상태 대신 명시적인 레지스트리 객체를 사용
"""

import threading
from typing import Any, Callable, Dict, List, Mapping, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError
from .providers import QdrantVectorProvider, S3VectorProvider, SimpleVectorProvider, VectorProvider
from .schema import QdrantProviderConfig, S3ProviderConfig, SimpleProviderConfig

logger = structlog.get_logger(__name__)

ProviderFactory = Callable[[Dict[str, Any]], VectorProvider]
ProviderConfigBlob = Union[Mapping[str, Any], BaseModel]


def _config_error_message(provider: str, error: PydanticValidationError) -> str:
    details = []
    for item in error.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "config"
        message = item.get("msg", "invalid value")
        if item.get("type") == "missing":
            message = f"{field} is required in {provider} provider config"
        details.append(f"{field}: {message}")
    return f"invalid {provider} provider config: " + "; ".join(details)


class ProviderRegistry:
    """벡터 프로바이더 생성 함수 레지스트리"""

    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: ProviderFactory) -> None:
        """생성 함수 등록 (같은 이름은 교체)"""
        with self._lock:
            self._factories[name] = factory
        logger.debug("벡터 프로바이더 등록", provider=name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._factories)

    def create(self, config: ProviderConfigBlob) -> VectorProvider:
        """설정의 provider 값으로 프로바이더 생성

        Args:
            config: provider 키를 포함한 설정 (dict 또는 pydantic 모델)

        Returns:
            초기화 전 상태의 VectorProvider
        """
        blob = config.model_dump() if isinstance(config, BaseModel) else dict(config)
        name = blob.get("provider")

        with self._lock:
            factory = self._factories.get(name) if isinstance(name, str) else None
            available = sorted(self._factories)

        if factory is None:
            raise ConfigurationError(
                f"unsupported vector provider: '{name}' (available: {', '.join(available)})"
            )

        provider = factory(blob)
        logger.info("벡터 프로바이더 생성", provider=name)
        return provider


# === 기본 프로바이더 생성 함수 ===

def _validated(model: type, provider: str, blob: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(blob)
    except PydanticValidationError as e:
        raise ConfigurationError(_config_error_message(provider, e)) from e


def create_simple_provider(blob: Dict[str, Any]) -> VectorProvider:
    return SimpleVectorProvider(_validated(SimpleProviderConfig, "simple", blob))


def create_s3_provider(blob: Dict[str, Any]) -> VectorProvider:
    return S3VectorProvider(_validated(S3ProviderConfig, "s3", blob))


def create_qdrant_provider(blob: Dict[str, Any]) -> VectorProvider:
    return QdrantVectorProvider(_validated(QdrantProviderConfig, "qdrant", blob))


def build_default_registry() -> ProviderRegistry:
    """simple, s3, qdrant가 등록된 레지스트리 생성"""
    registry = ProviderRegistry()
    registry.register("simple", create_simple_provider)
    registry.register("s3", create_s3_provider)
    registry.register("qdrant", create_qdrant_provider)
    return registry
