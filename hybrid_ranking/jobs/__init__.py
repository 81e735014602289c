"""Dagster jobs for the hybrid ranking engine.

embedding_backfill_job drains every active candidate whose profile embedding
is missing or older than the last profile edit. It is triggered by
stale_embedding_sensor or run by hand from the UI.
"""

import asyncio

from dagster import Config, OpExecutionContext, job, op

from hybrid_ranking.embeddings.backfill import run_embedding_backfill


class EmbeddingBackfillConfig(Config):
    """Run config for backfill_candidate_embeddings."""

    limit: int = 500
    worker_count: int = 4
    max_retries: int = 3


@op(
    required_resource_keys={"embedder", "vector_store", "candidate_store"},
    tags={"dagster/concurrency_key": "embedding_api"},
    description="Generate and store profile embeddings for stale or unembedded candidates",
)
def backfill_candidate_embeddings(
    context: OpExecutionContext, config: EmbeddingBackfillConfig
) -> dict:
    """Queue stale candidates, drain the queue with the worker pool, report the outcome."""
    context.log.info(
        f"Backfilling up to {config.limit} candidates with {config.worker_count} workers"
    )
    summary = asyncio.run(
        run_embedding_backfill(
            context.resources.embedder,
            context.resources.vector_store,
            context.resources.candidate_store,
            limit=config.limit,
            worker_count=config.worker_count,
            max_retries=config.max_retries,
        )
    )

    context.log.info(
        f"Embedded {summary['stored']}/{summary['queued']} candidates "
        f"({summary['retries']} retries, {summary['dead_lettered']} dead-lettered)"
    )
    for dead in summary["dead_letters"][:10]:
        context.log.warning(f"  dead letter {dead['candidate_id']}: {dead['reason']}")

    context.add_output_metadata(
        {
            "queued": summary["queued"],
            "stored": summary["stored"],
            "missing_candidates": summary["missing_candidates"],
            "retries": summary["retries"],
            "dead_lettered": summary["dead_lettered"],
            "tokens": summary["tokens"],
            "cost_usd": summary["cost_usd"],
            "active_candidates": summary["coverage"]["active_candidates"],
            "without_embedding": summary["coverage"]["without_embedding"],
        }
    )
    return summary


@job(description="Embed candidates whose profile embedding is missing or stale")
def embedding_backfill_job():
    backfill_candidate_embeddings()
