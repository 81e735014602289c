"""Dagster resources for the hybrid ranking engine."""

from hybrid_ranking.resources.candidates import CandidateStoreResource
from hybrid_ranking.resources.client_config import ClientConfigResource
from hybrid_ranking.resources.embeddings import MockEmbeddingResource
from hybrid_ranking.resources.openrouter import OpenRouterResource
from hybrid_ranking.resources.vector_store import PgVectorStoreResource

__all__ = [
    "CandidateStoreResource",
    "ClientConfigResource",
    "MockEmbeddingResource",
    "OpenRouterResource",
    "PgVectorStoreResource",
]
