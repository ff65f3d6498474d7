"""벡터 저장소 프로바이더 구현체"""

from .base import VectorProvider
from .qdrant_provider import QdrantVectorProvider
from .s3_provider import S3VectorProvider
from .simple_provider import SimpleVectorProvider

__all__ = [
    "VectorProvider",
    "SimpleVectorProvider",
    "S3VectorProvider",
    "QdrantVectorProvider",
]
