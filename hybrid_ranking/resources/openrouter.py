"""OpenRouter embeddings resource.

Thin HTTP client for OpenRouter's OpenAI-compatible embeddings endpoint. It
handles authentication, request formatting, usage logging, and maps transport
failures onto the package error taxonomy:

- timeouts, connection errors, 429 and 5xx -> TransientExternalError (retryable)
- any other 4xx                             -> MalformedInputError (not retryable)

Reference: https://openrouter.ai/docs/api/reference/embeddings
"""

import os
from decimal import Decimal
from typing import Any

import httpx
from dagster import ConfigurableResource, get_dagster_logger
from pydantic import Field

from hybrid_ranking.errors import MalformedInputError, TransientExternalError
from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS

OPENROUTER_EMBEDDINGS_URL = "https://openrouter.ai/api/v1/embeddings"


class OpenRouterResource(ConfigurableResource):
    """Embedding Generator backed by OpenRouter.

    Example usage:
        openrouter = OpenRouterResource(api_key=os.environ["OPENROUTER_API_KEY"])
        response = await openrouter.embed(["Senior Go engineer, Kubernetes"])
        vector = response["data"][0]["embedding"]
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""),
        description="OpenRouter API key",
    )
    embedding_model: str = Field(
        default="openai/text-embedding-3-small",
        description="Embedding model (must produce `dimensions`-length vectors)",
    )
    dimensions: int = Field(
        default=EMBEDDING_DIMENSIONS,
        description="Vector dimensions (deployment constant, matches the pgvector column)",
    )
    timeout_seconds: float = Field(default=30.0, description="Per-request HTTP timeout")
    site_url: str = Field(
        default="https://example.com",
        description="Site URL for OpenRouter analytics",
    )
    app_name: str = Field(
        default="Hybrid Candidate Ranking",
        description="Application name for OpenRouter analytics",
    )

    @property
    def model_version(self) -> str:
        return self.embedding_model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.site_url,
            "X-Title": self.app_name,
        }

    def _log_usage(self, operation: str, model: str, tokens: int, cost_usd: Decimal) -> None:
        logger = get_dagster_logger()
        logger.info(f"Embedding usage: {operation} | {model} | {tokens} tokens | ${cost_usd:.6f}")

    async def embed(
        self,
        input: str | list[str],
        model: str | None = None,
        operation: str = "embed",
    ) -> dict[str, Any]:
        """Generate embeddings for one or more texts.

        Args:
            input: Text or list of texts to embed
            model: Embedding model to use (defaults to embedding_model)
            operation: Label for the usage log line

        Returns:
            Full API response dict ({"data": [{"index", "embedding"}], "usage", "model"})

        Raises:
            TransientExternalError: timeout, connection failure, 429 or 5xx.
            MalformedInputError: the provider rejected the request (other 4xx).
        """
        if isinstance(input, str):
            input = [input]
        model = model or self.embedding_model

        request_body: dict[str, Any] = {
            "model": model,
            "input": input,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    OPENROUTER_EMBEDDINGS_URL,
                    headers=self._headers(),
                    json=request_body,
                    timeout=self.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise TransientExternalError(
                f"Embedding request timed out after {self.timeout_seconds}s", operation=operation
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429 or status >= 500:
                raise TransientExternalError(
                    f"Embedding provider returned {status}", operation=operation, status_code=status
                ) from exc
            raise MalformedInputError(
                f"Embedding provider rejected the request ({status}): {exc.response.text[:200]}"
            ) from exc
        except httpx.TransportError as exc:
            raise TransientExternalError(
                f"Embedding provider unreachable: {exc}", operation=operation
            ) from exc

        usage = data.get("usage", {})
        tokens = usage.get("prompt_tokens", usage.get("total_tokens", 0))
        cost_usd = Decimal(str(usage.get("cost", 0)))
        self._log_usage(operation, model, tokens, cost_usd)

        return data

    async def is_available(self) -> bool:
        """Probe the provider with a tiny embedding request."""
        if not self.api_key:
            return False
        try:
            response = await self.embed(["health check"], operation="health_check")
        except (TransientExternalError, MalformedInputError) as exc:
            get_dagster_logger().warning(f"Embedding provider is not available: {exc}")
            return False
        return bool(response.get("data"))
