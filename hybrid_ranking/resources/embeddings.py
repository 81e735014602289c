"""Mock embedding resource for development and testing.

Simulates the OpenRouter embeddings endpoint without network calls. Each
lowercase token maps to a fixed pseudo-random direction and a text's vector
is the normalized sum of its token directions, so texts sharing words land
close together and ranking behaves sensibly against the mock.
"""

import hashlib
import random
import re
from typing import Any

from dagster import ConfigurableResource
from pydantic import Field

from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS

_TOKEN_RE = re.compile(r"[a-z0-9+#]+")


def _seed(value: str) -> int:
    return int(hashlib.sha256(value.encode()).hexdigest()[:8], 16)


class MockEmbeddingResource(ConfigurableResource):
    """Mock Embedding Generator with the same async interface as OpenRouterResource.

    Set EMBEDDING_PROVIDER=mock to use it in place of the real provider.
    """

    model_version: str = Field(
        default="mock-embedding-v1",
        description="Version identifier for the mock embedding model",
    )
    dimensions: int = Field(
        default=EMBEDDING_DIMENSIONS,
        description="Vector dimensions (matches the pgvector column)",
    )
    deterministic: bool = Field(
        default=True,
        description="If False, a random vector is returned for every call",
    )

    def _direction(self, rng: random.Random) -> list[float]:
        return [rng.gauss(0, 1) for _ in range(self.dimensions)]

    def embed_one(self, text: str) -> list[float]:
        """Embed a single text as a unit vector."""
        if not self.deterministic:
            vector = self._direction(random.Random())
        else:
            tokens = _TOKEN_RE.findall(text.lower()) or [text]
            vector = [0.0] * self.dimensions
            for token in tokens:
                for i, x in enumerate(self._direction(random.Random(_seed(token)))):
                    vector[i] += x

        magnitude = sum(x * x for x in vector) ** 0.5
        return [x / magnitude for x in vector]

    async def embed(
        self,
        input: str | list[str],
        model: str | None = None,
        operation: str = "embed",
    ) -> dict[str, Any]:
        """Return an OpenAI-shaped embeddings response for the given texts."""
        if isinstance(input, str):
            input = [input]
        tokens = sum(len(text.split()) for text in input)
        return {
            "model": model or self.model_version,
            "data": [
                {"index": i, "embedding": self.embed_one(text)} for i, text in enumerate(input)
            ],
            "usage": {"prompt_tokens": tokens, "total_tokens": tokens, "cost": 0},
        }

    async def is_available(self) -> bool:
        return True
