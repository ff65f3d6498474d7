"""Voyage 임베딩 클라이언트 테스트 (httpx.MockTransport 사용)"""

import asyncio
import json

import httpx
import pytest

from modules.rag import (
    ConfigurationError,
    UpstreamError,
    ValidationError,
    VoyageEmbeddingClient,
    create_embedding_provider,
)
from modules.rag.rag_embedding_service import VOYAGE_API_URL, VOYAGE_MODEL


def _success_body(vector=None, tokens=12):
    return {
        "object": "list",
        "data": [{"object": "list", "data": [{"object": "embedding", "embedding": vector or [0.5, -0.25, 1.0], "index": 0}], "index": 0}],
        "model": VOYAGE_MODEL,
        "usage": {"total_tokens": tokens},
    }


def _client(handler, **kwargs):
    return VoyageEmbeddingClient("voyage-test-key", transport=httpx.MockTransport(handler), **kwargs)


class TestVoyageEmbeddingClient:
    """contextualized embeddings 요청/응답 처리"""

    async def test_request_shape_and_result(self):
        # Given: 요청 내용을 기록하는 핸들러
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["method"] = request.method
            captured["auth"] = request.headers.get("authorization")
            captured["content_type"] = request.headers.get("content-type")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_success_body())

        client = _client(handler)

        # When
        result = await client.embed_query("weekly revenue")
        await client.close()

        # Then
        assert captured["url"] == VOYAGE_API_URL
        assert captured["method"] == "POST"
        assert captured["auth"] == "Bearer voyage-test-key"
        assert captured["content_type"] == "application/json"
        assert captured["body"] == {
            "inputs": [["weekly revenue"]],
            "input_type": "query",
            "model": VOYAGE_MODEL,
        }
        assert result.embedding == [0.5, -0.25, 1.0]
        assert result.tokens_used == 12
        assert result.model == VOYAGE_MODEL

    async def test_non_200_status_carries_body(self):
        client = _client(lambda request: httpx.Response(401, text='{"detail":"invalid api key"}'))

        with pytest.raises(UpstreamError) as exc_info:
            await client.embed_query("q")

        message = str(exc_info.value)
        assert "401" in message
        assert "invalid api key" in message

    @pytest.mark.parametrize(
        "body,expected",
        [
            ({"data": []}, "empty data array in response"),
            ({"data": [{"data": []}]}, "empty embedding data in response"),
            ({"data": [{"data": [{"embedding": []}]}]}, "empty embedding vector"),
            ({"data": {"unexpected": 1}}, "malformed voyage response"),
            ({"data": [{"data": {"embedding": [0.1]}}]}, "malformed voyage response"),
            ({"data": [{"data": [{"embedding": ["not-a-number"]}]}]}, "malformed voyage response"),
            ({"data": [{"data": [{"embedding": "0.1,0.2"}]}]}, "malformed voyage response"),
            ({**_success_body(), "usage": "n/a"}, "malformed voyage response"),
        ],
    )
    async def test_empty_arrays(self, body, expected):
        client = _client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(UpstreamError) as exc_info:
            await client.embed_query("q")

        assert expected in str(exc_info.value)

    async def test_malformed_json(self):
        client = _client(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(UpstreamError):
            await client.embed_query("q")

    async def test_transport_error_is_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)

        with pytest.raises(UpstreamError) as exc_info:
            await client.embed_query("q")

        assert "connection refused" in str(exc_info.value)

    async def test_fixed_timeout(self):
        async def slow_handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=_success_body())

        client = _client(slow_handler, timeout=0.05)

        with pytest.raises(UpstreamError) as exc_info:
            await client.embed_query("q")

        assert "timed out" in str(exc_info.value)

    async def test_no_retry_on_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        client = _client(handler)

        with pytest.raises(UpstreamError):
            await client.embed_query("q")

        assert len(calls) == 1

    async def test_blank_query_rejected_before_request(self):
        calls = []
        client = _client(lambda request: calls.append(request) or httpx.Response(200, json=_success_body()))

        with pytest.raises(ValidationError):
            await client.embed_query("   ")

        assert calls == []


class TestCreateEmbeddingProvider:
    def test_voyage(self):
        provider = create_embedding_provider("voyage", "key")
        assert isinstance(provider, VoyageEmbeddingClient)

    def test_voyage_requires_key(self):
        with pytest.raises(ConfigurationError):
            create_embedding_provider("voyage", "")

    def test_unsupported_provider_named(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_embedding_provider("cohere", "key")
        assert "cohere" in str(exc_info.value)
