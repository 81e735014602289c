"""Fixed-size pool of asyncio workers that drain the embedding job queue.

Each worker loop:

1. dequeues a job (waiting at most ``dequeue_timeout``; sleeping
   ``idle_poll_interval`` when the queue is empty),
2. embeds the job's profile text,
3. overwrites the candidate's embedding and metadata in the vector store.

TransientExternalError and unexpected exceptions are retried with
exponential backoff plus jitter until the job's retry budget is spent;
MalformedInputError dead-letters the job at once. The stop signal is only
observed between jobs.
"""

import asyncio
import enum
import logging
import random
from dataclasses import dataclass

from hybrid_ranking.domain import EmbeddingMetadata
from hybrid_ranking.embeddings.embed_text import EmbeddingGenerator, embed_text
from hybrid_ranking.embeddings.jobs import EmbeddingJob
from hybrid_ranking.embeddings.queue import EmbeddingJobQueue
from hybrid_ranking.errors import MalformedInputError, TransientExternalError
from hybrid_ranking.models.candidates import EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)


class JobOutcome(str, enum.Enum):
    STORED = "stored"
    MISSING_CANDIDATE = "missing_candidate"
    RETRIED = "retried"
    DEAD_LETTERED = "dead_lettered"


@dataclass
class PoolStats:
    stored: int = 0
    missing_candidates: int = 0
    retried: int = 0
    dead_lettered: int = 0
    tokens: int = 0
    cost_usd: float = 0.0

    def record(self, outcome: JobOutcome) -> None:
        if outcome is JobOutcome.STORED:
            self.stored += 1
        elif outcome is JobOutcome.MISSING_CANDIDATE:
            self.missing_candidates += 1
        elif outcome is JobOutcome.RETRIED:
            self.retried += 1
        else:
            self.dead_lettered += 1


class EmbeddingWorkerPool:
    def __init__(
        self,
        queue: EmbeddingJobQueue,
        generator: EmbeddingGenerator,
        vector_store,
        worker_count: int = 4,
        dequeue_timeout: float = 5.0,
        idle_poll_interval: float = 2.0,
        backoff_base: float = 1.0,
        backoff_max: float = 60.0,
        expected_dimensions: int = EMBEDDING_DIMENSIONS,
        rng: random.Random | None = None,
    ):
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self.queue = queue
        self.generator = generator
        self.vector_store = vector_store
        self.worker_count = worker_count
        self.dequeue_timeout = dequeue_timeout
        self.idle_poll_interval = idle_poll_interval
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.expected_dimensions = expected_dimensions
        self.stats = PoolStats()
        self._rng = rng or random.Random()
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def backoff_seconds(self, retry_count: int) -> float:
        """Exponential delay for the given attempt, with up to 50% random jitter."""
        delay = min(self.backoff_max, self.backoff_base * (2**retry_count))
        return delay / 2 + self._rng.uniform(0, delay / 2)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(self._worker_loop(worker_id), name=f"embedding-worker-{worker_id}")
            for worker_id in range(self.worker_count)
        ]
        logger.info("Started %d embedding workers", self.worker_count)

    async def stop(self) -> None:
        """Signal the workers and wait for each to finish its current job."""
        self._stop.set()
        self.queue.wake(self.worker_count)
        await asyncio.gather(*self._tasks)
        self._tasks = []
        logger.info("Embedding workers stopped")

    async def run_until_drained(self) -> PoolStats:
        """Start the pool, wait for the queue to drain, then stop the pool."""
        self.start()
        try:
            await self.queue.wait_drained()
        finally:
            await self.stop()
            self.queue.close()
        return self.stats

    async def _worker_loop(self, worker_id: int) -> None:
        while not self._stop.is_set():
            job = await self.queue.dequeue(timeout=self.dequeue_timeout)
            if job is None:
                if not self._stop.is_set():
                    await self._idle()
                continue
            outcome = await self.process_job(job)
            logger.debug("Worker %d: candidate %s -> %s", worker_id, job.candidate_id, outcome)

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), self.idle_poll_interval)
        except TimeoutError:
            pass

    async def process_job(self, job: EmbeddingJob) -> JobOutcome:
        """Embed and store one job, routing failures to retry or dead-letter."""
        try:
            result = await embed_text(
                self.generator,
                [job.profile_text],
                expected_dimensions=self.expected_dimensions,
                operation="embed_profile",
            )
            metadata = EmbeddingMetadata(
                model=result.model,
                generated_at=job.snapshot_at,
                token_count=result.input_tokens,
            )
            stored = await self.vector_store.upsert_embedding(
                job.candidate_id, result.embeddings[0], metadata
            )
        except MalformedInputError as exc:
            self.queue.dead_letter(job, f"Non-retryable: {exc}")
            outcome = JobOutcome.DEAD_LETTERED
        except TransientExternalError as exc:
            outcome = self._retry_or_dead_letter(job, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error embedding candidate %s", job.candidate_id)
            outcome = self._retry_or_dead_letter(job, f"{type(exc).__name__}: {exc}")
        else:
            self.stats.tokens += result.input_tokens
            self.stats.cost_usd += result.cost_usd
            self.queue.complete(job)
            outcome = JobOutcome.STORED if stored else JobOutcome.MISSING_CANDIDATE

        self.stats.record(outcome)
        return outcome

    def _retry_or_dead_letter(self, job: EmbeddingJob, error: str) -> JobOutcome:
        if not job.can_retry:
            self.queue.dead_letter(job, f"Max retries ({job.max_retries}) exceeded: {error}")
            return JobOutcome.DEAD_LETTERED
        delay = self.backoff_seconds(job.retry_count)
        logger.warning(
            "Embedding candidate %s failed (attempt %d/%d), retrying in %.1fs: %s",
            job.candidate_id,
            job.retry_count + 1,
            job.max_retries + 1,
            delay,
            error,
        )
        self.queue.requeue(job.retry(error), delay)
        return JobOutcome.RETRIED
