"""벡터 프로바이더 레지스트리 테스트"""

import threading

import pytest

from modules.rag import (
    ConfigurationError,
    ProviderRegistry,
    QdrantVectorProvider,
    S3VectorProvider,
    SimpleVectorProvider,
    build_default_registry,
)
from modules.rag.schema import S3ProviderConfig


class TestProviderRegistry:
    def test_default_registry_names(self):
        assert build_default_registry().names() == ["qdrant", "s3", "simple"]

    def test_create_simple(self):
        provider = build_default_registry().create({"provider": "simple", "date_filter_field": "d"})

        assert isinstance(provider, SimpleVectorProvider)
        assert provider.config.date_filter_field == "d"

    def test_create_s3_from_model(self):
        provider = build_default_registry().create(S3ProviderConfig(bucket_name="reports", index_name="idx"))

        assert isinstance(provider, S3VectorProvider)
        assert provider.config.index_name == "idx"

    def test_create_qdrant(self):
        provider = build_default_registry().create({"provider": "qdrant", "collection_name": "reports"})

        assert isinstance(provider, QdrantVectorProvider)

    def test_unknown_provider_named_in_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_default_registry().create({"provider": "pinecone"})

        assert "pinecone" in str(exc_info.value)
        assert "unsupported" in str(exc_info.value)

    def test_missing_provider_name(self):
        with pytest.raises(ConfigurationError):
            build_default_registry().create({})

    @pytest.mark.parametrize("config", [{"provider": "s3"}, {"provider": "s3", "bucket_name": "  "}])
    def test_s3_requires_bucket(self, config):
        with pytest.raises(ConfigurationError) as exc_info:
            build_default_registry().create(config)

        assert "bucket_name" in str(exc_info.value)

    def test_register_replaces_factory(self):
        registry = ProviderRegistry()
        registry.register("custom", lambda blob: SimpleVectorProvider())
        replacement = SimpleVectorProvider()
        registry.register("custom", lambda blob: replacement)

        assert registry.create({"provider": "custom"}) is replacement

    def test_concurrent_registration(self):
        registry = ProviderRegistry()

        def register(i):
            registry.register(f"p{i}", lambda blob: SimpleVectorProvider())

        threads = [threading.Thread(target=register, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry.names()) == 20
