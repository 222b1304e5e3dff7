"""
Tests for core/embedding.py

The embeddings endpoint is served by httpx.MockTransport, so request
payloads, batching, retries and error mapping are checked without network.
"""

import json

import httpx
import pytest

from core.config import get_settings
from core.embedding import EmbeddingService
from core.exceptions import EmbeddingError


def _service(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmbeddingService(api_key=api_key, model_name="voyage-test", http_client=client)


def _ok(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    # Return out of order; the service sorts by index
    data = [
        {"index": i, "embedding": [float(i), 0.5]}
        for i in reversed(range(len(body["input"])))
    ]
    return httpx.Response(200, json={"data": data})


class TestEmbedQuery:

    async def test_request_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _ok(request)

        service = _service(handler)
        vector = await service.embed_query("侵權行為")

        assert vector == [0.0, 0.5]
        body = json.loads(seen[0].content)
        assert body["model"] == "voyage-test"
        assert body["input"] == ["侵權行為"]
        assert body["input_type"] == "query"
        assert body["output_dimension"] == get_settings().EMBEDDING_DIMENSION
        assert seen[0].headers["Authorization"] == "Bearer test-key"

    async def test_per_request_key_overrides_default(self):
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            return _ok(request)

        service = _service(handler)
        await service.embed_query("侵權行為", api_key="request-key")
        assert seen == ["Bearer request-key"]

    async def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "EMBEDDING_API_KEY", None)
        service = _service(_ok, api_key=None)
        with pytest.raises(EmbeddingError, match="not configured"):
            await service.embed_query("侵權行為")

    async def test_empty_text(self):
        service = _service(_ok)
        with pytest.raises(ValueError):
            await service.embed_query("  ")


class TestErrors:

    async def test_server_error_is_retried_then_raised(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"detail": "boom"})

        service = _service(handler)
        with pytest.raises(EmbeddingError) as exc_info:
            await service.embed_query("侵權行為")

        assert exc_info.value.details["status_code"] == 500
        assert len(calls) == get_settings().RETRY_ATTEMPTS

    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"detail": "unauthorized"})

        service = _service(handler)
        with pytest.raises(EmbeddingError, match="HTTP 401"):
            await service.embed_query("侵權行為")
        assert len(calls) == 1

    async def test_malformed_body(self):
        service = _service(lambda request: httpx.Response(200, json={"unexpected": []}))
        with pytest.raises(EmbeddingError):
            await service.embed_query("侵權行為")

    async def test_non_object_items(self):
        service = _service(lambda request: httpx.Response(200, json={"data": ["not-an-object"]}))
        with pytest.raises(EmbeddingError, match="Failed to generate"):
            await service.embed_query("侵權行為")

    async def test_count_mismatch(self):
        service = _service(lambda request: httpx.Response(200, json={"data": []}))
        with pytest.raises(EmbeddingError, match="does not match"):
            await service.embed_query("侵權行為")


class TestEmbedTexts:

    async def test_batches_and_preserves_order(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "EMBEDDING_BATCH_SIZE", 2)
        batches = []

        def handler(request):
            body = json.loads(request.content)
            batches.append(body["input"])
            assert body["input_type"] == "document"
            return _ok(request)

        service = _service(handler)
        vectors = await service.embed_texts(["a", "b", "c", "d", "e"])

        assert batches == [["a", "b"], ["c", "d"], ["e"]]
        assert [v[0] for v in vectors] == [0.0, 1.0, 0.0, 1.0, 0.0]

    async def test_empty_input(self):
        service = _service(_ok)
        assert await service.embed_texts([]) == []

    async def test_close(self):
        service = _service(_ok)
        await service.close()
        await service.close()
