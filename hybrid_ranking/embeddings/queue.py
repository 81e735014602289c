"""In-process embedding job queue with delayed requeue and a dead-letter list.

A job counts as outstanding from enqueue until it is completed or
dead-lettered; a retried job replaces its predecessor and stays outstanding
while it waits out its backoff delay.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime

from hybrid_ranking.embeddings.jobs import DEFAULT_MAX_RETRIES, DeadLetter, EmbeddingJob, JobSource

logger = logging.getLogger(__name__)


class EmbeddingJobQueue:
    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES):
        self.max_retries = max_retries
        self._queue: asyncio.Queue[EmbeddingJob | None] = asyncio.Queue()
        self._outstanding = 0
        self._drained = asyncio.Event()
        self._drained.set()
        self._dead_letters: list[DeadLetter] = []
        self._pending_timers: set[asyncio.TimerHandle] = set()

    @property
    def outstanding(self) -> int:
        return self._outstanding

    def enqueue(
        self,
        candidate_id: str,
        profile_text: str,
        source: JobSource = JobSource.MANUAL,
        snapshot_at: datetime | None = None,
    ) -> EmbeddingJob:
        """Queue a job; ``snapshot_at`` defaults to now (when the text was read)."""
        job = EmbeddingJob(
            candidate_id=candidate_id,
            profile_text=profile_text,
            max_retries=self.max_retries,
            source=source,
        )
        if snapshot_at is not None:
            job = replace(job, snapshot_at=snapshot_at)
        self._outstanding += 1
        self._drained.clear()
        self._queue.put_nowait(job)
        return job

    def requeue(self, job: EmbeddingJob, delay: float = 0.0) -> None:
        """Put a retried job back, after ``delay`` seconds if positive."""
        if delay <= 0:
            self._queue.put_nowait(job)
            return
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def _put() -> None:
            self._pending_timers.discard(handle)
            self._queue.put_nowait(job)

        handle = loop.call_later(delay, _put)
        self._pending_timers.add(handle)

    async def dequeue(self, timeout: float) -> EmbeddingJob | None:
        """Next job, or None if nothing arrived within ``timeout`` (or on wake-up)."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except TimeoutError:
            return None

    def wake(self, waiters: int) -> None:
        """Release up to ``waiters`` blocked dequeue calls with None."""
        for _ in range(waiters):
            self._queue.put_nowait(None)

    def complete(self, job: EmbeddingJob) -> None:
        self._settle()

    def dead_letter(self, job: EmbeddingJob, reason: str) -> DeadLetter:
        record = DeadLetter(job=job, reason=reason)
        self._dead_letters.append(record)
        logger.error(
            "Embedding job for candidate %s dead-lettered after %d retries: %s",
            job.candidate_id,
            job.retry_count,
            reason,
        )
        self._settle()
        return record

    def dead_letters(self) -> list[DeadLetter]:
        return list(self._dead_letters)

    async def wait_drained(self) -> None:
        """Block until every enqueued job has been completed or dead-lettered."""
        await self._drained.wait()

    def close(self) -> None:
        """Cancel pending delayed requeues and discard unconsumed wake-up sentinels."""
        for handle in self._pending_timers:
            handle.cancel()
        self._pending_timers.clear()
        leftover = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None:
                leftover.append(item)
        for job in leftover:
            self._queue.put_nowait(job)

    def _settle(self) -> None:
        self._outstanding = max(0, self._outstanding - 1)
        if self._outstanding == 0:
            self._drained.set()
