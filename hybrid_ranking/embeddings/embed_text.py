"""Text embedding operation over any Embedding Generator resource.

Works with OpenRouterResource and MockEmbeddingResource alike: both expose
``async embed(input, model=None, operation=...)`` returning an OpenAI-shaped
response and a ``model_version`` identifier.
"""

from typing import Any, Protocol

from hybrid_ranking.errors import MalformedInputError
from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS


class EmbeddingGenerator(Protocol):
    model_version: str

    async def embed(
        self, input: str | list[str], model: str | None = None, operation: str = "embed"
    ) -> dict[str, Any]: ...


class EmbedTextResult:
    """Result of text embedding with usage stats for Dagster metadata."""

    def __init__(
        self,
        embeddings: list[list[float]],
        usage: dict[str, Any],
        model: str,
    ):
        self.embeddings = embeddings
        self.usage = usage
        self.model = model

    @property
    def input_tokens(self) -> int:
        return self.usage.get("prompt_tokens", 0)

    @property
    def cost_usd(self) -> float:
        return float(self.usage.get("cost", 0))

    @property
    def dimensions(self) -> int:
        if self.embeddings:
            return len(self.embeddings[0])
        return 0


async def embed_text(
    generator: EmbeddingGenerator,
    texts: list[str],
    expected_dimensions: int = EMBEDDING_DIMENSIONS,
    operation: str = "embed_text",
) -> EmbedTextResult:
    """Embed one or more texts and validate the vectors that come back.

    Raises:
        MalformedInputError: a text is empty or whitespace, or the provider
            returned the wrong number of vectors or a vector of the wrong
            dimension.
        TransientExternalError: propagated from the generator.
    """
    if not texts or any(not text or not text.strip() for text in texts):
        raise MalformedInputError("Cannot embed empty or whitespace-only text")

    response = await generator.embed(input=texts, operation=operation)

    data = sorted(response.get("data", []), key=lambda item: item.get("index", 0))
    embeddings = [item["embedding"] for item in data]
    if len(embeddings) != len(texts):
        raise MalformedInputError(
            f"Embedding provider returned {len(embeddings)} vectors for {len(texts)} inputs"
        )
    for vector in embeddings:
        if len(vector) != expected_dimensions:
            raise MalformedInputError(
                f"Embedding dimension mismatch: expected {expected_dimensions}, got {len(vector)}"
            )

    model = response.get("model") or generator.model_version
    return EmbedTextResult(embeddings=embeddings, usage=response.get("usage", {}), model=model)
