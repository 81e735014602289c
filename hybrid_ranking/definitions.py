"""Dagster definitions for the Hybrid Candidate Ranking engine.

This module is the entry point for Dagster. It wires together:
- Resources (embedding generator, pgvector store, candidate store, tenant config)
- Jobs (embedding backfill)
- Sensors (stale embeddings, run failure tagging)

EMBEDDING_PROVIDER=mock swaps the OpenRouter embedding resource for the
deterministic mock, so the pipeline runs without network access.
"""

import os

from dagster import Definitions, EnvVar
from dotenv import load_dotenv

from hybrid_ranking.jobs import embedding_backfill_job
from hybrid_ranking.resources import (
    CandidateStoreResource,
    ClientConfigResource,
    MockEmbeddingResource,
    OpenRouterResource,
    PgVectorStoreResource,
)
from hybrid_ranking.sensors import run_failure_tagger, stale_embedding_sensor

# Load environment variables from .env file (must be before resource initialization)
load_dotenv()


def get_environment() -> str:
    """Get current environment from env var."""
    return os.getenv("ENVIRONMENT", "development")


def get_embedding_provider() -> str:
    return os.getenv("EMBEDDING_PROVIDER", "openrouter").strip().lower()


def get_embedder():
    """Embedding Generator for the configured provider."""
    if get_embedding_provider() == "mock":
        return MockEmbeddingResource()
    return OpenRouterResource(
        api_key=EnvVar("OPENROUTER_API_KEY"),
        embedding_model=os.getenv("EMBEDDING_MODEL", "openai/text-embedding-3-small"),
    )


def get_resources() -> dict:
    """Get resources based on current environment.

    All database-backed resources share the process-wide engine from
    hybrid_ranking.db; production only differs in its environment variables.
    """
    return {
        "embedder": get_embedder(),
        "vector_store": PgVectorStoreResource(),
        "candidate_store": CandidateStoreResource(),
        "client_config": ClientConfigResource(),
    }


all_jobs = [
    embedding_backfill_job,
]

all_sensors = [
    stale_embedding_sensor,
    run_failure_tagger,
]

defs = Definitions(
    resources=get_resources(),
    jobs=all_jobs,
    sensors=all_sensors,
)


def main():
    """Entry point for CLI usage."""
    print("Hybrid Ranking Dagster project loaded successfully!")
    print(f"Environment: {get_environment()}")
    print(f"Embedding provider: {get_embedding_provider()}")
    print(f"Jobs: {len(all_jobs)}")
    print(f"Sensors: {len(all_sensors)}")
    print("\nAvailable jobs:")
    for job in all_jobs:
        print(f"  - {job.name}")
    print("\nRun 'hybrid-ranking-dev' to start the development server.")


if __name__ == "__main__":
    main()
