"""One-shot backfill: embed every active candidate whose embedding is missing or stale."""

import logging
from datetime import UTC, datetime
from typing import Any

from hybrid_ranking.embeddings.jobs import DEFAULT_MAX_RETRIES, JobSource
from hybrid_ranking.embeddings.profile_text import build_profile_text
from hybrid_ranking.embeddings.queue import EmbeddingJobQueue
from hybrid_ranking.embeddings.worker import EmbeddingWorkerPool, PoolStats
from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)


async def run_embedding_backfill(
    embedder,
    vector_store,
    candidate_store,
    limit: int = 500,
    worker_count: int = 4,
    max_retries: int = DEFAULT_MAX_RETRIES,
    backoff_base: float = 1.0,
    dequeue_timeout: float = 5.0,
) -> dict[str, Any]:
    """Queue up to ``limit`` stale candidates, drain the queue, and summarize the run.

    The summary ends with ``coverage``: active candidates with and without an
    embedding after the run.
    """
    # taken before the read so an edit racing the query still counts as newer
    snapshot_at = datetime.now(UTC)
    candidates = await candidate_store.find_candidates_needing_embeddings(limit=limit)
    queue = EmbeddingJobQueue(max_retries=max_retries)
    stats = PoolStats()

    if candidates:
        for profile in candidates:
            queue.enqueue(
                profile.id,
                build_profile_text(profile),
                source=JobSource.BACKFILL,
                snapshot_at=snapshot_at,
            )
        logger.info("Queued %d candidates for embedding", len(candidates))

        pool = EmbeddingWorkerPool(
            queue,
            embedder,
            vector_store,
            worker_count=min(worker_count, len(candidates)),
            dequeue_timeout=dequeue_timeout,
            backoff_base=backoff_base,
            expected_dimensions=getattr(embedder, "dimensions", EMBEDDING_DIMENSIONS),
        )
        stats = await pool.run_until_drained()
    else:
        logger.info("No candidates need embeddings")

    coverage = await candidate_store.embedding_coverage()
    logger.info(
        "Embedding coverage: %d of %d active candidates",
        coverage["with_embedding"],
        coverage["active_candidates"],
    )

    return {
        "queued": len(candidates),
        "stored": stats.stored,
        "missing_candidates": stats.missing_candidates,
        "retries": stats.retried,
        "dead_lettered": stats.dead_lettered,
        "tokens": stats.tokens,
        "cost_usd": round(stats.cost_usd, 6),
        "dead_letters": [
            {"candidate_id": record.job.candidate_id, "reason": record.reason}
            for record in queue.dead_letters()
        ],
        "coverage": coverage,
    }
