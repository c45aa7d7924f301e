"""Tests for EmbeddingClient provider fallback."""

import json

import httpx
import pytest

from ticketflow.core import EmbeddingException
from ticketflow.infrastructure.llm import (
    EmbeddingClient,
    EmbeddingClientConfig,
    ProviderConfig,
    parse_embedding_response,
)


def make_config(fireworks_key="fw-key", together_key="tg-key", default="fireworks") -> EmbeddingClientConfig:
    return EmbeddingClientConfig(
        providers=[
            ProviderConfig("fireworks", "https://fireworks.test/v1/", fireworks_key),
            ProviderConfig("together", "https://together.test/v1/", together_key),
        ],
        default_provider=default,
        model="nomic-ai/nomic-embed-text-v1",
    )


def make_client(config, responses):
    """responses maps host -> httpx.Response factory; records requests."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return responses[request.url.host]()

    client = EmbeddingClient(config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return client, seen


class TestParseEmbeddingResponse:

    def test_openai_shape(self):
        assert parse_embedding_response({"data": [{"embedding": [0.1, 0.2]}]}) == [0.1, 0.2]

    def test_embeddings_shape(self):
        assert parse_embedding_response({"embeddings": [1, 2, 3]}) == [1.0, 2.0, 3.0]

    def test_nested_embeddings_shape(self):
        assert parse_embedding_response({"embeddings": [[0.5, 0.5]]}) == [0.5, 0.5]

    @pytest.mark.parametrize("payload", [
        {},
        {"data": []},
        {"embeddings": []},
        {"data": [{"embedding": ["a", "b"]}]},
        ["not", "a", "dict"],
    ])
    def test_rejects_unusable_payloads(self, payload):
        with pytest.raises(ValueError):
            parse_embedding_response(payload)


class TestEmbeddingClient:

    async def test_primary_provider_used(self):
        client, seen = make_client(make_config(), {
            "fireworks.test": lambda: httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]}),
        })

        result = await client.generate_embedding("reset my SSO")

        assert result.embedding == [0.1, 0.2, 0.3]
        assert result.provider == "fireworks"
        assert result.dimension == 3
        assert len(seen) == 1
        request = seen[0]
        assert str(request.url) == "https://fireworks.test/v1/embeddings"
        assert request.headers["Authorization"] == "Bearer fw-key"
        assert json.loads(request.content) == {"input": "reset my SSO", "model": "nomic-ai/nomic-embed-text-v1"}

    async def test_falls_back_once_on_error(self):
        client, seen = make_client(make_config(), {
            "fireworks.test": lambda: httpx.Response(500, text="overloaded"),
            "together.test": lambda: httpx.Response(200, json={"embeddings": [0.4, 0.6]}),
        })

        result = await client.generate_embedding("lineage missing")

        assert result.embedding == [0.4, 0.6]
        assert result.provider == "together"
        assert [r.url.host for r in seen] == ["fireworks.test", "together.test"]

    async def test_falls_back_on_unparseable_body(self):
        client, _ = make_client(make_config(), {
            "fireworks.test": lambda: httpx.Response(200, json={"unexpected": True}),
            "together.test": lambda: httpx.Response(200, json={"data": [{"embedding": [1.0]}]}),
        })
        assert await client.embed("text") == [1.0]

    async def test_missing_primary_key_goes_straight_to_secondary(self):
        client, seen = make_client(make_config(fireworks_key=None), {
            "together.test": lambda: httpx.Response(200, json={"embeddings": [0.3]}),
        })

        assert await client.embed("text") == [0.3]
        assert [r.url.host for r in seen] == ["together.test"]

    async def test_both_providers_failing_raises(self):
        client, seen = make_client(make_config(), {
            "fireworks.test": lambda: httpx.Response(500),
            "together.test": lambda: httpx.Response(500),
        })

        with pytest.raises(EmbeddingException) as exc_info:
            await client.embed("text")

        assert set(exc_info.value.details["providers"]) == {"fireworks", "together"}
        assert len(seen) == 2

    async def test_secondary_without_key_is_not_tried(self):
        client, seen = make_client(make_config(together_key=None), {
            "fireworks.test": lambda: httpx.Response(503),
        })

        with pytest.raises(EmbeddingException):
            await client.embed("text")
        assert len(seen) == 1

    async def test_default_provider_is_configurable(self):
        client, seen = make_client(make_config(default="together"), {
            "together.test": lambda: httpx.Response(200, json={"embeddings": [0.9]}),
        })

        assert await client.embed("text") == [0.9]
        assert [r.url.host for r in seen] == ["together.test"]
