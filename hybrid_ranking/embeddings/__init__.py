"""Embedding job pipeline: queue, worker pool and the embedding operation."""

from hybrid_ranking.embeddings.backfill import run_embedding_backfill
from hybrid_ranking.embeddings.embed_text import EmbedTextResult, embed_text
from hybrid_ranking.embeddings.jobs import DeadLetter, EmbeddingJob, JobSource
from hybrid_ranking.embeddings.profile_text import build_profile_text
from hybrid_ranking.embeddings.queue import EmbeddingJobQueue
from hybrid_ranking.embeddings.worker import EmbeddingWorkerPool, JobOutcome, PoolStats

__all__ = [
    "DeadLetter",
    "EmbedTextResult",
    "EmbeddingJob",
    "EmbeddingJobQueue",
    "EmbeddingWorkerPool",
    "JobOutcome",
    "JobSource",
    "PoolStats",
    "build_profile_text",
    "embed_text",
    "run_embedding_backfill",
]
