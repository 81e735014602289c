"""Tests for Dagster resources."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from hybrid_ranking import db
from hybrid_ranking.domain import EmbeddingMetadata
from hybrid_ranking.errors import MalformedInputError, TransientExternalError
from hybrid_ranking.resources import (
    MockEmbeddingResource,
    OpenRouterResource,
    PgVectorStoreResource,
)
from hybrid_ranking.resources.candidates import _escape_like

_REAL_ASYNC_CLIENT = httpx.AsyncClient


def _client_factory(handler):
    """Build an AsyncClient replacement that routes every request through ``handler``."""

    def factory(*args, **kwargs):
        return _REAL_ASYNC_CLIENT(transport=httpx.MockTransport(handler))

    return factory


def _embed_with(handler, texts=("Senior Go engineer",)):
    resource = OpenRouterResource(api_key="test-key")
    with patch.object(httpx, "AsyncClient", _client_factory(handler)):
        return asyncio.run(resource.embed(list(texts)))


class TestMockEmbeddingResource:
    """Tests for the MockEmbeddingResource."""

    def test_embed_one_returns_correct_dimensions(self):
        """Test that embeddings have correct dimensions."""
        resource = MockEmbeddingResource(dimensions=1536)
        result = resource.embed_one("Test text")

        assert len(result) == 1536
        assert all(isinstance(x, float) for x in result)

    def test_embed_one_is_normalized(self):
        """Test that embeddings are unit normalized."""
        resource = MockEmbeddingResource()
        result = resource.embed_one("Test text")

        magnitude = sum(x * x for x in result) ** 0.5
        assert abs(magnitude - 1.0) < 1e-6

    def test_embed_one_is_deterministic(self):
        """Test that same input produces same output."""
        resource = MockEmbeddingResource(deterministic=True)

        assert resource.embed_one("Same text") == resource.embed_one("Same text")
        assert resource.embed_one("Same text") != resource.embed_one("Other text")

    def test_shared_words_are_closer(self):
        """Test that texts sharing tokens are more similar than unrelated texts."""
        resource = MockEmbeddingResource()
        query = resource.embed_one("Senior Go engineer")

        def cosine(other):
            return sum(a * b for a, b in zip(query, resource.embed_one(other)))

        assert cosine("Go engineer, Kubernetes") > cosine("Pastry chef") + 0.3

    def test_embed_returns_provider_shaped_response(self):
        """Test that the async API mirrors the OpenRouter response shape."""
        resource = MockEmbeddingResource(dimensions=16)
        response = asyncio.run(resource.embed(["one two", "three"]))

        assert response["model"] == "mock-embedding-v1"
        assert [item["index"] for item in response["data"]] == [0, 1]
        assert all(len(item["embedding"]) == 16 for item in response["data"])
        assert response["usage"]["prompt_tokens"] == 3


class TestOpenRouterResource:
    """Tests for HTTP error mapping in the OpenRouter embeddings client."""

    def test_success_returns_payload(self):
        """Test that a 200 response is returned as parsed JSON."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "model": "openai/text-embedding-3-small",
                    "data": [{"index": 0, "embedding": [0.1, 0.2]}],
                    "usage": {"prompt_tokens": 3, "total_tokens": 3, "cost": 0.00001},
                },
            )

        data = _embed_with(handler)

        assert data["data"][0]["embedding"] == [0.1, 0.2]
        assert requests[0].headers["Authorization"] == "Bearer test-key"

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_retryable_statuses_are_transient(self, status):
        """Test that rate limits and server errors are retryable."""

        def handler(request):
            return httpx.Response(status, json={"error": "nope"})

        with pytest.raises(TransientExternalError) as exc_info:
            _embed_with(handler)

        assert exc_info.value.status_code == status

    def test_bad_request_is_malformed(self):
        """Test that other 4xx responses are not retried."""

        def handler(request):
            return httpx.Response(400, json={"error": "input too long"})

        with pytest.raises(MalformedInputError, match="400"):
            _embed_with(handler)

    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError("connection refused"), httpx.ReadTimeout("read timed out")],
    )
    def test_transport_failures_are_transient(self, error):
        """Test that timeouts and connection errors are retryable."""

        def handler(request):
            raise error

        with pytest.raises(TransientExternalError):
            _embed_with(handler)

    def test_is_available_without_key(self):
        """Test that a missing API key reports the provider as unavailable."""
        resource = OpenRouterResource(api_key="")

        assert asyncio.run(resource.is_available()) is False


class TestRunInSession:
    """Tests for database error mapping."""

    def test_operational_error_becomes_transient(self):
        def broken_session():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        with patch.object(db, "get_session", broken_session):
            with pytest.raises(TransientExternalError, match="get_profiles") as exc_info:
                asyncio.run(db.run_in_session("get_profiles", lambda session: None))

        assert exc_info.value.operation == "get_profiles"

    def test_other_errors_propagate(self):
        def broken_session():
            raise ValueError("bug")

        with patch.object(db, "get_session", broken_session):
            with pytest.raises(ValueError):
                asyncio.run(db.run_in_session("get_profiles", lambda session: None))


def test_escape_like_escapes_wildcards():
    assert _escape_like("100%_c\\d") == "100\\%\\_c\\\\d"


class TestPgVectorStoreResource:
    """Tests for input checks that run before any database access."""

    def test_upsert_rejects_malformed_candidate_id(self):
        """Test that a non-UUID id fails as malformed input, not as a retryable error."""
        metadata = EmbeddingMetadata(
            model="mock-embedding-v1", generated_at=datetime.now(UTC), token_count=2
        )

        def no_session():
            raise AssertionError("database must not be touched")

        with patch.object(db, "get_session", no_session):
            with pytest.raises(MalformedInputError, match="Invalid candidate id"):
                asyncio.run(
                    PgVectorStoreResource().upsert_embedding("not-a-uuid", [0.1, 0.2], metadata)
                )
